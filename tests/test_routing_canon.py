from __future__ import annotations

from pathlib import Path

import pytest

from tcrproc.contracts import FAMILY_ORDER, GOVERNMENT_CONTRACT, PARAMETERIZER_CONTRACT, TCR_CONTRACT
from tcrproc.errors import ConfigError
from tcrproc.payloads import PAYLOAD_SCHEMAS
from tcrproc.routing import EventRoutes, build_event_routes, load_event_routes, verify_routes


def test_default_canon_covers_every_family_and_schema(routes: EventRoutes) -> None:
    assert routes.families() == frozenset(FAMILY_ORDER)
    # every routed pair decodes, and every schema is routed
    assert routes.keys() == frozenset(PAYLOAD_SCHEMAS.keys())
    verify_routes(routes, FAMILY_ORDER)


def test_lookup_normalizes_event_names(routes: EventRoutes) -> None:
    assert routes.family_for(TCR_CONTRACT, "_Application") == "registry"
    assert routes.family_for(TCR_CONTRACT, " ChallengeFailed_ ") == "registry"
    assert routes.family_for(TCR_CONTRACT, "Transfer") is None
    assert routes.family_for("UnknownContract", "Application") is None


def test_same_event_name_routes_by_contract(routes: EventRoutes) -> None:
    assert routes.family_for(TCR_CONTRACT, "NewChallenge") == "registry"
    assert routes.family_for(PARAMETERIZER_CONTRACT, "NewChallenge") == "parameterizer"
    assert routes.family_for(GOVERNMENT_CONTRACT, "ProposalExpired") == "parameterizer"


def test_pair_claimed_by_two_families_is_rejected() -> None:
    raw = {
        "families": {
            "registry": {TCR_CONTRACT: ["Application"]},
            "content": {TCR_CONTRACT: ["_Application"]},
        }
    }
    with pytest.raises(ConfigError) as e:
        build_event_routes(raw)
    assert "routed to both" in str(e.value)


def test_unknown_family_and_bad_shape_are_rejected() -> None:
    with pytest.raises(ConfigError):
        build_event_routes({"families": {"audit": {TCR_CONTRACT: ["Application"]}}})
    with pytest.raises(ConfigError):
        build_event_routes({"families": {"registry": {TCR_CONTRACT: "Application"}}})
    with pytest.raises(ConfigError):
        build_event_routes({"version": 1})
    with pytest.raises(ConfigError):
        build_event_routes({"families": {}})


def test_verify_routes_checks_both_directions() -> None:
    routes = build_event_routes({"families": {"registry": {TCR_CONTRACT: ["Application"]}}})

    with pytest.raises(ConfigError) as missing:
        verify_routes(routes, [])
    assert "without a processor" in str(missing.value)

    with pytest.raises(ConfigError) as idle:
        verify_routes(routes, ["registry", "token"])
    assert "without routes" in str(idle.value)

    verify_routes(routes, ["registry"])


def test_routed_event_without_schema_is_rejected() -> None:
    routes = build_event_routes({"families": {"registry": {TCR_CONTRACT: ["Application", "Airdrop"]}}})
    with pytest.raises(ConfigError) as e:
        verify_routes(routes, ["registry"])
    assert "Airdrop" in str(e.value)


def test_load_event_routes_from_env_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / "routes.yaml"
    p.write_text("families:\n  token:\n    CVLTokenContract:\n      - Transfer\n", encoding="utf-8")
    monkeypatch.setenv("TCRPROC_EVENT_ROUTES_PATH", str(p))

    routes = load_event_routes()
    assert routes.source == str(p)
    assert routes.families() == frozenset({"token"})


def test_load_event_routes_reports_unreadable_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_event_routes(str(tmp_path / "missing.yaml"))

    bad = tmp_path / "bad.yaml"
    bad.write_text("families: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_event_routes(str(bad))
