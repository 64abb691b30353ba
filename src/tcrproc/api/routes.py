from __future__ import annotations

from fastapi import APIRouter

from tcrproc.api.routes_parts.governance import router as governance_router
from tcrproc.api.routes_parts.health import router as health_router
from tcrproc.api.routes_parts.listings import router as listings_router
from tcrproc.api.routes_parts.metrics import router as metrics_router
from tcrproc.api.routes_parts.tokens import router as tokens_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(listings_router, prefix="/v1", tags=["listings"])
public_router.include_router(governance_router, prefix="/v1", tags=["governance"])
public_router.include_router(tokens_router, prefix="/v1", tags=["tokens"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
