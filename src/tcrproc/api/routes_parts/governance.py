from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from tcrproc.api.errors import ApiError
from tcrproc.api.routes_parts.common import _many, _one, _persisters
from tcrproc.model import ChallengeCriteria

router = APIRouter()

Json = Dict[str, Any]


def _int_id(kind: str, raw: str) -> int:
    try:
        v = int(str(raw).strip(), 0)
    except ValueError:
        raise ApiError.bad_request(f"invalid_{kind}_id", f"{kind} id must be an integer", {"id": raw}) from None
    if v < 0:
        raise ApiError.bad_request(f"invalid_{kind}_id", f"{kind} id must not be negative", {"id": raw})
    return v


@router.get("/challenges")
def challenges(request: Request) -> Json:
    crit = ChallengeCriteria.from_query(request.query_params)
    items = _many(lambda: _persisters(request).challenges.by_criteria(crit))
    return {"ok": True, "count": len(items), "items": [c.to_json(embed=True) for c in items]}


@router.get("/challenges/{challenge_id}")
def challenge(challenge_id: str, request: Request) -> Json:
    cid = _int_id("challenge", challenge_id)
    item = _one("challenge", cid, lambda: _persisters(request).challenges.by_id(cid))
    return {"ok": True, "challenge": item.to_json(embed=True)}


@router.get("/polls/{poll_id}")
def poll(poll_id: str, request: Request) -> Json:
    pid = _int_id("poll", poll_id)
    item = _one("poll", pid, lambda: _persisters(request).polls.by_id(pid))
    return {"ok": True, "poll": item.to_json()}


@router.get("/parameter-proposals/{prop_id}")
def parameter_proposal(prop_id: str, request: Request) -> Json:
    key = str(prop_id or "").strip().lower()
    item = _one("parameter_proposal", key, lambda: _persisters(request).parameter_proposals.by_id(key))
    return {"ok": True, "proposal": item.to_json()}


@router.get("/parameters")
def parameters(request: Request) -> Json:
    pers = _persisters(request)
    return {
        "ok": True,
        "parameters": [p.to_json() for p in _many(pers.parameters.all)],
        "government_parameters": [p.to_json() for p in _many(pers.government_parameters.all)],
    }
