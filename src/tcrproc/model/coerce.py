from __future__ import annotations

from typing import Any, Optional, Tuple


def as_int(v: Any, default: int = 0) -> int:
    if v is None or v == "":
        return int(default)
    if isinstance(v, str) and v.lower().startswith("0x"):
        return int(v, 16)
    return int(v)


def opt_int(v: Any) -> Optional[int]:
    if v is None or v == "":
        return None
    return as_int(v)


def as_str(v: Any) -> str:
    return "" if v is None else str(v)


def as_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def opt_bool(v: Any) -> Optional[bool]:
    if v is None:
        return None
    return as_bool(v)


def as_str_tuple(v: Any) -> Tuple[str, ...]:
    if not isinstance(v, (list, tuple)):
        return ()
    return tuple(str(x) for x in v if str(x).strip())
