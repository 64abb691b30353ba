from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from tcrproc.api.errors import ApiError
from tcrproc.api.routes_parts.common import _address, _many, _persisters
from tcrproc.model import TokenMovementCriteria

router = APIRouter()

Json = Dict[str, Any]


@router.get("/token-purchases")
def token_purchases(request: Request) -> Json:
    crit = TokenMovementCriteria.from_query(request.query_params)
    if not crit.to_address:
        raise ApiError.bad_request("missing_to", "query parameter 'to' is required", {})
    crit = TokenMovementCriteria(
        to_address=_address(crit.to_address),
        from_address=crit.from_address,
        offset=crit.offset,
        count=crit.count,
    )
    items = _many(lambda: _persisters(request).token_purchases.by_criteria(crit))
    return {
        "ok": True,
        "count": len(items),
        "items": [dict(t.to_json(), amount_in_token=str(t.amount_in_token())) for t in items],
    }


@router.get("/multisigs/{address}/owners")
def multisig_owners(address: str, request: Request) -> Json:
    addr = _address(address)
    owners = _many(lambda: _persisters(request).multisig_owners.by_multisig(addr))
    return {"ok": True, "multisig": addr, "owners": [o.owner_address for o in owners]}
