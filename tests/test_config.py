from __future__ import annotations

from pathlib import Path

import pytest

from tcrproc.config import default_processor_config, load_processor_config, validate_processor_config
from tcrproc.errors import ConfigError


def test_defaults_are_valid() -> None:
    cfg = default_processor_config()
    validate_processor_config(cfg)
    assert cfg.mode == "prod"
    assert cfg.cron_enabled is False
    assert cfg.advance_on_error is False


def test_env_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / "processor.yaml"
    p.write_text(
        "mode: dev\nevents_topic: tcr-events\ncron_interval_ms: 5000\npublisher: memory\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("TCRPROC_CRON_INTERVAL_MS", "1500")
    monkeypatch.setenv("TCRPROC_CRON_ENABLED", "yes")
    monkeypatch.setenv("TCRPROC_ADVANCE_ON_ERROR", "1")
    monkeypatch.delenv("TCRPROC_MODE", raising=False)
    monkeypatch.delenv("TCRPROC_PUBLISHER", raising=False)

    cfg = load_processor_config(config_path=str(p))

    assert cfg.mode == "dev"
    assert cfg.events_topic == "tcr-events"
    assert cfg.publisher == "memory"
    assert cfg.cron_interval_ms == 1500
    assert cfg.cron_enabled is True
    assert cfg.advance_on_error is True


def test_json_config_file_via_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / "processor.json"
    p.write_text('{"multisig_topic": "owners", "api_port": "9090"}', encoding="utf-8")
    monkeypatch.setenv("TCRPROC_CONFIG_PATH", str(p))
    monkeypatch.delenv("TCRPROC_API_PORT", raising=False)

    cfg = load_processor_config()
    assert cfg.multisig_topic == "owners"
    assert cfg.api_port == 9090


def test_memory_publisher_rejected_in_prod(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TCRPROC_MODE", "prod")
    monkeypatch.setenv("TCRPROC_PUBLISHER", "memory")
    with pytest.raises(ConfigError):
        load_processor_config()


@pytest.mark.parametrize(
    "env, value",
    [
        ("TCRPROC_MODE", "staging"),
        ("TCRPROC_PUBLISHER", "kafka"),
        ("TCRPROC_METADATA_SCRAPER", "browser"),
        ("TCRPROC_CRON_INTERVAL_MS", "10"),
        ("TCRPROC_CRON_FAIL_FAST_AFTER", "1"),
        ("TCRPROC_API_PORT", "70000"),
        ("TCRPROC_EVENT_ROUTES_PATH", "/nonexistent/routes.yaml"),
    ],
)
def test_invalid_values_fail_fast(monkeypatch: pytest.MonkeyPatch, env: str, value: str) -> None:
    monkeypatch.setenv(env, value)
    with pytest.raises(ConfigError):
        load_processor_config()


def test_config_file_must_be_a_mapping(tmp_path: Path) -> None:
    p = tmp_path / "processor.yaml"
    p.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_processor_config(config_path=str(p))
