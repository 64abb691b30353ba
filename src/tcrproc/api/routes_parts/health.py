from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

from tcrproc import __version__
from tcrproc.api.routes_parts.common import _runtime
from tcrproc.metrics import snapshot

router = APIRouter()

Json = Dict[str, Any]


def _cron_status(request: Request) -> Json:
    loop = getattr(request.app.state, "cron", None)
    if loop is None:
        return {"enabled": False, "running": False, "unhealthy": False}
    return loop.status()


@router.get("/health")
def health(request: Request) -> Json:
    # must not depend on persistence being reachable
    cron = _cron_status(request)
    return {
        "ok": not cron.get("unhealthy", False),
        "service": "tcr-events-processor",
        "version": __version__,
        "ts_ms": int(time.time() * 1000),
        "runtime_attached": getattr(request.app.state, "runtime", None) is not None,
        "cron": {"running": cron.get("running"), "unhealthy": cron.get("unhealthy")},
    }


@router.get("/status")
def status(request: Request) -> Json:
    """Processing status: watermark, cron loop and in-process counters."""
    rt = _runtime(request)
    cron_store = rt.persisters.cron
    hashes = cron_store.event_hashes_at_last_timestamp()
    return {
        "ok": True,
        "mode": rt.cfg.mode,
        "routes": rt.routes.source,
        "watermark": {
            "last_timestamp": cron_store.last_timestamp(),
            "event_hashes_at_last_timestamp": len(hashes),
        },
        "cron": _cron_status(request),
        "counters": snapshot()["counters"],
    }
