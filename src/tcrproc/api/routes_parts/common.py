from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, TypeVar

from fastapi import Request

from tcrproc.api.errors import ApiError
from tcrproc.errors import NoResultsError
from tcrproc.persistence import Persisters

Json = Dict[str, Any]
T = TypeVar("T")

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")


def _runtime(request: Request):
    rt = getattr(request.app.state, "runtime", None)
    if rt is None:
        raise ApiError.internal("not_ready", "runtime not attached to app.state", {})
    return rt


def _persisters(request: Request) -> Persisters:
    return _runtime(request).persisters


def _address(raw: str) -> str:
    a = str(raw or "").strip().lower()
    if not _ADDRESS_RE.match(a):
        raise ApiError.bad_request("invalid_address", "expected 0x followed by 40 hex characters", {"address": raw})
    return a


def _one(kind: str, key: Any, fn: Callable[[], T]) -> T:
    try:
        return fn()
    except NoResultsError:
        raise ApiError.not_found(f"{kind}_not_found", f"{kind} not found", {"key": str(key)}) from None


def _many(fn: Callable[[], List[T]]) -> List[T]:
    try:
        return fn()
    except NoResultsError:
        return []
