# src/tcrproc/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from tcrproc.errors import ConfigError

Json = Dict[str, Any]

_ENV_PREFIX = "TCRPROC_"

_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_PUBLISHERS = {"log", "memory", "none"}
_ALLOWED_SCRAPERS = {"none", "http"}


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _as_float(v: Any, default: float) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return float(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    return str(v).strip()


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class ProcessorConfig:
    mode: str  # "dev" | "testnet" | "prod"

    # Empty db_path keeps all aggregates in memory.
    db_path: str
    events_path: str
    event_routes_path: str

    # Empty topic disables publishing for that stream.
    events_topic: str
    multisig_topic: str
    publisher: str

    cron_enabled: bool
    cron_interval_ms: int
    fail_fast_after: int
    error_backoff_min_ms: int
    error_backoff_max_ms: int
    advance_on_error: bool

    metadata_scraper: str
    scraper_timeout_s: float

    api_host: str
    api_port: int
    log_level: str


def default_processor_config() -> ProcessorConfig:
    return ProcessorConfig(
        mode="prod",
        db_path="",
        events_path="",
        event_routes_path="",
        events_topic="",
        multisig_topic="",
        publisher="log",
        cron_enabled=False,
        cron_interval_ms=30_000,
        fail_fast_after=10,
        error_backoff_min_ms=250,
        error_backoff_max_ms=10_000,
        advance_on_error=False,
        metadata_scraper="none",
        scraper_timeout_s=10.0,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def validate_processor_config(cfg: ProcessorConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ConfigError(f"mode must be one of {sorted(_ALLOWED_MODES)}; got: {cfg.mode!r}")

    if cfg.publisher not in _ALLOWED_PUBLISHERS:
        raise ConfigError(f"publisher must be one of {sorted(_ALLOWED_PUBLISHERS)}; got: {cfg.publisher!r}")

    if mode == "prod" and cfg.publisher == "memory":
        raise ConfigError("publisher 'memory' drops messages on restart and is not allowed in prod")

    if cfg.metadata_scraper not in _ALLOWED_SCRAPERS:
        raise ConfigError(
            f"metadata_scraper must be one of {sorted(_ALLOWED_SCRAPERS)}; got: {cfg.metadata_scraper!r}"
        )

    if int(cfg.cron_interval_ms) < 250:
        raise ConfigError(f"cron_interval_ms must be >= 250; got: {cfg.cron_interval_ms}")

    if int(cfg.fail_fast_after) < 3:
        raise ConfigError(f"fail_fast_after must be >= 3; got: {cfg.fail_fast_after}")

    if int(cfg.error_backoff_min_ms) < 50:
        raise ConfigError(f"error_backoff_min_ms must be >= 50; got: {cfg.error_backoff_min_ms}")

    if int(cfg.error_backoff_max_ms) < int(cfg.error_backoff_min_ms):
        raise ConfigError("error_backoff_max_ms must be >= error_backoff_min_ms")

    if float(cfg.scraper_timeout_s) <= 0:
        raise ConfigError(f"scraper_timeout_s must be > 0; got: {cfg.scraper_timeout_s}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ConfigError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if cfg.event_routes_path and not Path(cfg.event_routes_path).is_file():
        raise ConfigError(f"event_routes_path does not exist or is not a file: {cfg.event_routes_path!r}")


def _coerce(cfg: ProcessorConfig, raw: Json) -> ProcessorConfig:
    """Overlay raw values (file or env) onto cfg, coercing by field type."""
    updates: Json = {}
    for f in fields(ProcessorConfig):
        if f.name not in raw:
            continue
        cur = getattr(cfg, f.name)
        v = raw[f.name]
        if isinstance(cur, bool):
            updates[f.name] = _as_bool(v, cur)
        elif isinstance(cur, int):
            updates[f.name] = _as_int(v, cur)
        elif isinstance(cur, float):
            updates[f.name] = _as_float(v, cur)
        else:
            updates[f.name] = _as_str(v, cur)
    if "mode" in updates:
        updates["mode"] = updates["mode"].lower()
    if "publisher" in updates:
        updates["publisher"] = updates["publisher"].lower()
    if "metadata_scraper" in updates:
        updates["metadata_scraper"] = updates["metadata_scraper"].lower()
    return replace(cfg, **updates)


_ENV_NAMES = {
    "mode": "MODE",
    "db_path": "DB_PATH",
    "events_path": "EVENTS_PATH",
    "event_routes_path": "EVENT_ROUTES_PATH",
    "events_topic": "EVENTS_TOPIC",
    "multisig_topic": "MULTISIG_TOPIC",
    "publisher": "PUBLISHER",
    "cron_enabled": "CRON_ENABLED",
    "cron_interval_ms": "CRON_INTERVAL_MS",
    "fail_fast_after": "CRON_FAIL_FAST_AFTER",
    "error_backoff_min_ms": "CRON_ERROR_BACKOFF_MIN_MS",
    "error_backoff_max_ms": "CRON_ERROR_BACKOFF_MAX_MS",
    "advance_on_error": "ADVANCE_ON_ERROR",
    "metadata_scraper": "METADATA_SCRAPER",
    "scraper_timeout_s": "SCRAPER_TIMEOUT_S",
    "api_host": "API_HOST",
    "api_port": "API_PORT",
    "log_level": "LOG_LEVEL",
}


def _env_overrides() -> Json:
    out: Json = {}
    for field_name, suffix in _ENV_NAMES.items():
        v = os.environ.get(_ENV_PREFIX + suffix)
        if v is not None and v.strip() != "":
            out[field_name] = v
    return out


def read_processor_config_file(path: str) -> Json:
    """Read a JSON or YAML config file into a dict (no validation)."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        import yaml

        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("processor config must be a mapping")
    return raw


def load_processor_config(*, config_path: Optional[str] = None) -> ProcessorConfig:
    """Defaults, then the optional config file, then TCRPROC_* env vars."""
    cfg = default_processor_config()

    p = config_path or os.environ.get("TCRPROC_CONFIG_PATH")
    if p:
        cfg = _coerce(cfg, read_processor_config_file(p))

    cfg = _coerce(cfg, _env_overrides())
    validate_processor_config(cfg)
    return cfg
