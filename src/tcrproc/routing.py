# src/tcrproc/routing.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from tcrproc.contracts import FAMILY_ORDER
from tcrproc.errors import ConfigError
from tcrproc.model.event import normalize_event_name
from tcrproc.payloads import PAYLOAD_SCHEMAS

RouteKey = Tuple[str, str]

_DEFAULT_CANON = Path(__file__).resolve().parent / "canon" / "events.yaml"


@dataclass(frozen=True)
class EventRoutes:
    """Event-to-family lookup table, built once at startup.

    Keys are (contract_name, normalized_event_name).
    """

    by_key: Mapping[RouteKey, str]
    source: str = ""

    def family_for(self, contract_name: str, event_name: str) -> Optional[str]:
        return self.by_key.get((str(contract_name or ""), normalize_event_name(event_name)))

    def names_for(self, family: str) -> FrozenSet[str]:
        return frozenset(name for (_, name), fam in self.by_key.items() if fam == family)

    def contracts_for(self, family: str) -> FrozenSet[str]:
        return frozenset(contract for (contract, _), fam in self.by_key.items() if fam == family)

    def families(self) -> FrozenSet[str]:
        return frozenset(self.by_key.values())

    def keys(self) -> FrozenSet[RouteKey]:
        return frozenset(self.by_key.keys())


def build_event_routes(raw: Any, *, source: str = "") -> EventRoutes:
    """Build routes from a parsed canon document.

    Fails when a (contract, event) pair is claimed by more than one family or
    a family is not one of the known processor families.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("families"), dict):
        raise ConfigError(f"event routes canon must have a 'families' mapping: {source or '<inline>'}")

    by_key: Dict[RouteKey, str] = {}
    for family, contracts in raw["families"].items():
        fam = str(family).strip()
        if fam not in FAMILY_ORDER:
            raise ConfigError(f"unknown processor family in event routes: {fam!r}")
        if not isinstance(contracts, dict):
            raise ConfigError(f"family {fam!r} must map contract names to event lists")
        for contract, names in contracts.items():
            if not isinstance(names, list):
                raise ConfigError(f"{fam}.{contract} must be a list of event names")
            for name in names:
                key = (str(contract).strip(), normalize_event_name(str(name)))
                prev = by_key.get(key)
                if prev is not None and prev != fam:
                    raise ConfigError(f"event {key[0]}.{key[1]} routed to both {prev!r} and {fam!r}")
                by_key[key] = fam

    if not by_key:
        raise ConfigError("event routes canon is empty")
    return EventRoutes(by_key=dict(by_key), source=source)


def load_event_routes(path: Optional[str] = None) -> EventRoutes:
    import yaml

    p = Path(path or os.environ.get("TCRPROC_EVENT_ROUTES_PATH") or _DEFAULT_CANON)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read event routes canon {str(p)!r}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in event routes canon {str(p)!r}: {e}") from e
    return build_event_routes(raw, source=str(p))


def verify_routes(routes: EventRoutes, processor_families: Iterable[str]) -> None:
    """Startup check that routing is exhaustive in both directions.

    - every routed event has a payload schema
    - every routed family has a registered processor
    - every registered processor has at least one route
    """
    missing_schema = sorted(f"{c}.{n}" for (c, n) in routes.keys() if (c, n) not in PAYLOAD_SCHEMAS)
    if missing_schema:
        raise ConfigError(f"routed events without a payload schema: {missing_schema}")

    registered = set(processor_families)
    unhandled = sorted(routes.families() - registered)
    if unhandled:
        raise ConfigError(f"routed families without a processor: {unhandled}")

    idle = sorted(registered - routes.families())
    if idle:
        raise ConfigError(f"processors registered without routes: {idle}")
