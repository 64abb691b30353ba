from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tcrproc import __version__
from tcrproc.api.errors import ApiError, api_error_handler
from tcrproc.api.middleware import RequestLogMiddleware
from tcrproc.api.routes import public_router
from tcrproc.config import load_processor_config
from tcrproc.cron import ProcessorCron
from tcrproc.runtime import build_runtime as _build_runtime
from tcrproc.structured_logging import configure_structured_logging, log_event

log = logging.getLogger("tcrproc.api")


def build_runtime(cfg):
    """Build the processing runtime for the API.

    Module-level so tests can monkeypatch `tcrproc.api.app.build_runtime`.
    """
    return _build_runtime(cfg)


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load config, build persisters and the engine, and
        start the cron loop on startup when TCRPROC_CRON_ENABLED is set
      - False: no runtime; callers (tests) attach `app.state.runtime` themselves
    """
    cfg = load_processor_config() if boot_runtime else None
    mode = cfg.mode if cfg is not None else (os.environ.get("TCRPROC_MODE") or "prod").strip().lower()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        loop = None
        rt = getattr(app.state, "runtime", None)
        if rt is not None and rt.cfg.cron_enabled:
            loop = ProcessorCron(engine=rt.engine, source=rt.source, cron=rt.persisters.cron, cfg=rt.cfg)
            if loop.start():
                log_event(log, "cron_started", interval_ms=rt.cfg.cron_interval_ms)
        app.state.cron = loop
        yield
        if loop is not None:
            loop.stop()
        if app.state.owns_runtime and rt is not None:
            rt.close()

    if mode == "prod":
        app = FastAPI(
            title="TCR Events Processor",
            version=__version__,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="TCR Events Processor", version=__version__, lifespan=_lifespan)

    if cfg is not None:
        configure_structured_logging(cfg.log_level)
        app.state.runtime = build_runtime(cfg)
        app.state.owns_runtime = True
    else:
        app.state.runtime = None
        app.state.owns_runtime = False

    # cron loop is attached by lifespan
    app.state.cron = None

    app.add_middleware(RequestLogMiddleware)
    app.add_exception_handler(ApiError, api_error_handler)
    app.include_router(public_router)

    return app
