from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

from tcrproc.api.routes_parts.common import _address, _many, _one, _persisters
from tcrproc.model import ContentRevisionCriteria, GovernanceEventCriteria, ListingCriteria

router = APIRouter()

Json = Dict[str, Any]


@router.get("/listings")
def listings(request: Request) -> Json:
    crit = ListingCriteria.from_query(request.query_params)
    items = _many(lambda: _persisters(request).listings.by_criteria(crit, now_ts=int(time.time())))
    return {"ok": True, "count": len(items), "items": [x.to_json() for x in items]}


@router.get("/listings/{address}")
def listing(address: str, request: Request) -> Json:
    addr = _address(address)
    item = _one("listing", addr, lambda: _persisters(request).listings.by_id(addr))
    return {"ok": True, "listing": item.to_json()}


@router.get("/listings/{address}/governance-events")
def listing_governance_events(address: str, request: Request) -> Json:
    addr = _address(address)
    q = dict(request.query_params)
    q["listing_address"] = addr
    crit = GovernanceEventCriteria.from_query(q)
    items = _many(lambda: _persisters(request).governance_events.by_criteria(crit))
    return {"ok": True, "count": len(items), "items": [x.to_json() for x in items]}


@router.get("/listings/{address}/revisions")
def listing_revisions(address: str, request: Request) -> Json:
    addr = _address(address)
    q = dict(request.query_params)
    q["listing_address"] = addr
    crit = ContentRevisionCriteria.from_query(q)
    items = _many(lambda: _persisters(request).content_revisions.by_criteria(crit))
    return {"ok": True, "count": len(items), "items": [x.to_json() for x in items]}
