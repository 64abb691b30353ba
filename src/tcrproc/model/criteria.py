"""Retrieval filters for the persistence ports.

Each criteria object knows how to select and order an in-memory sequence of
entities; stores that cannot push filters down use `select()` directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence, TypeVar

from tcrproc.model.challenge import Challenge
from tcrproc.model.content import ContentRevision
from tcrproc.model.governance_event import GovernanceEvent
from tcrproc.model.listing import GovernanceState, Listing
from tcrproc.model.token import _TokenMovement

T = TypeVar("T")

MAX_COUNT = 500
DEFAULT_COUNT = 50

SORT_NAME = "name"
SORT_CREATED = "created"
SORT_APPLIED = "applied"
SORT_WHITELISTED = "whitelisted"
_SORTS = {SORT_NAME, SORT_CREATED, SORT_APPLIED, SORT_WHITELISTED}

_REJECTED_STATES = {
    GovernanceState.APP_REMOVED,
    GovernanceState.REMOVED,
    GovernanceState.CHALLENGE_SUCCEEDED,
    GovernanceState.FAILED_CHALLENGE_OVERTURNED,
    GovernanceState.TOUCH_AND_REMOVED,
}


def _clamp_count(n: int) -> int:
    return max(1, min(MAX_COUNT, int(n)))


def _q_int(q: Mapping[str, Any], key: str, default: int) -> int:
    v = q.get(key)
    if v is None or str(v).strip() == "":
        return int(default)
    try:
        return int(str(v).strip())
    except ValueError:
        return int(default)


def _q_bool(q: Mapping[str, Any], key: str) -> bool:
    v = q.get(key)
    if v is None:
        return False
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def _q_opt_bool(q: Mapping[str, Any], key: str) -> Optional[bool]:
    if q.get(key) is None:
        return None
    return _q_bool(q, key)


def _page(items: List[T], offset: int, count: int) -> List[T]:
    start = max(0, int(offset))
    return items[start : start + _clamp_count(count)]


def _in_range(ts: int, from_ts: int, before_ts: int) -> bool:
    if from_ts and ts < from_ts:
        return False
    if before_ts and ts >= before_ts:
        return False
    return True


@dataclass(frozen=True)
class ListingCriteria:
    offset: int = 0
    count: int = DEFAULT_COUNT
    whitelisted_only: bool = False
    rejected_only: bool = False
    active_challenge: bool = False
    current_application: bool = False
    created_from_ts: int = 0
    created_before_ts: int = 0
    sort_by: str = SORT_CREATED
    sort_desc: bool = False

    def matches(self, listing: Listing, *, now_ts: int = 0) -> bool:
        if self.whitelisted_only and not listing.whitelisted:
            return False
        if self.rejected_only and (listing.whitelisted or listing.governance_state not in _REJECTED_STATES):
            return False
        if self.active_challenge and not listing.has_active_challenge:
            return False
        if self.current_application:
            if listing.whitelisted or listing.app_expiry is None:
                return False
            if now_ts and listing.app_expiry <= now_ts:
                return False
        return _in_range(listing.created_ts, self.created_from_ts, self.created_before_ts)

    def _sort_key(self) -> Callable[[Listing], Any]:
        if self.sort_by == SORT_NAME:
            return lambda x: (x.name.lower(), x.address)
        if self.sort_by == SORT_APPLIED:
            return lambda x: (x.application_date_ts, x.address)
        if self.sort_by == SORT_WHITELISTED:
            return lambda x: (x.approval_date_ts, x.address)
        return lambda x: (x.created_ts, x.address)

    def select(self, listings: Sequence[Listing], *, now_ts: int = 0) -> List[Listing]:
        out = [x for x in listings if self.matches(x, now_ts=now_ts)]
        out.sort(key=self._sort_key(), reverse=bool(self.sort_desc))
        return _page(out, self.offset, self.count)

    @staticmethod
    def from_query(q: Mapping[str, Any]) -> "ListingCriteria":
        sort_by = str(q.get("sort_by") or SORT_CREATED).strip().lower()
        if sort_by not in _SORTS:
            sort_by = SORT_CREATED
        return ListingCriteria(
            offset=max(0, _q_int(q, "offset", 0)),
            count=_clamp_count(_q_int(q, "count", DEFAULT_COUNT)),
            whitelisted_only=_q_bool(q, "whitelisted_only"),
            rejected_only=_q_bool(q, "rejected_only"),
            active_challenge=_q_bool(q, "active_challenge"),
            current_application=_q_bool(q, "current_application"),
            created_from_ts=max(0, _q_int(q, "created_from_ts", 0)),
            created_before_ts=max(0, _q_int(q, "created_before_ts", 0)),
            sort_by=sort_by,
            sort_desc=_q_bool(q, "sort_desc"),
        )


@dataclass(frozen=True)
class ContentRevisionCriteria:
    listing_address: str = ""
    content_id: Optional[int] = None
    revision_id: Optional[int] = None
    offset: int = 0
    count: int = DEFAULT_COUNT
    latest_only: bool = False
    from_ts: int = 0
    before_ts: int = 0

    def matches(self, rev: ContentRevision) -> bool:
        if self.listing_address and rev.listing_address != self.listing_address:
            return False
        if self.content_id is not None and rev.content_id != self.content_id:
            return False
        if self.revision_id is not None and rev.revision_id != self.revision_id:
            return False
        return _in_range(rev.revision_date_ts, self.from_ts, self.before_ts)

    def select(self, revisions: Sequence[ContentRevision]) -> List[ContentRevision]:
        out = [r for r in revisions if self.matches(r)]
        out.sort(key=lambda r: (r.listing_address, r.content_id, r.revision_id))
        if self.latest_only:
            latest: dict = {}
            for r in out:
                latest[(r.listing_address, r.content_id)] = r
            out = list(latest.values())
        return _page(out, self.offset, self.count)

    @staticmethod
    def from_query(q: Mapping[str, Any]) -> "ContentRevisionCriteria":
        content_id = q.get("content_id")
        revision_id = q.get("revision_id")
        return ContentRevisionCriteria(
            listing_address=str(q.get("listing_address") or "").strip().lower(),
            content_id=_q_int(q, "content_id", 0) if content_id is not None else None,
            revision_id=_q_int(q, "revision_id", 0) if revision_id is not None else None,
            offset=max(0, _q_int(q, "offset", 0)),
            count=_clamp_count(_q_int(q, "count", DEFAULT_COUNT)),
            latest_only=_q_bool(q, "latest_only"),
            from_ts=max(0, _q_int(q, "from_ts", 0)),
            before_ts=max(0, _q_int(q, "before_ts", 0)),
        )


@dataclass(frozen=True)
class GovernanceEventCriteria:
    listing_address: str = ""
    offset: int = 0
    count: int = DEFAULT_COUNT
    created_from_ts: int = 0
    created_before_ts: int = 0

    def select(self, events: Sequence[GovernanceEvent]) -> List[GovernanceEvent]:
        out = [
            e
            for e in events
            if (not self.listing_address or e.listing_address == self.listing_address)
            and _in_range(e.creation_date_ts, self.created_from_ts, self.created_before_ts)
        ]
        out.sort(key=lambda e: (e.creation_date_ts, e.block_data.block_number, e.block_data.index))
        return _page(out, self.offset, self.count)

    @staticmethod
    def from_query(q: Mapping[str, Any]) -> "GovernanceEventCriteria":
        return GovernanceEventCriteria(
            listing_address=str(q.get("listing_address") or "").strip().lower(),
            offset=max(0, _q_int(q, "offset", 0)),
            count=_clamp_count(_q_int(q, "count", DEFAULT_COUNT)),
            created_from_ts=max(0, _q_int(q, "created_from_ts", 0)),
            created_before_ts=max(0, _q_int(q, "created_before_ts", 0)),
        )


@dataclass(frozen=True)
class TokenMovementCriteria:
    to_address: str = ""
    from_address: str = ""
    offset: int = 0
    count: int = DEFAULT_COUNT

    def select(self, items: Sequence[_TokenMovement]) -> list:
        out = [
            t
            for t in items
            if (not self.to_address or t.to_address == self.to_address)
            and (not self.from_address or t.from_address == self.from_address)
        ]
        out.sort(key=lambda t: (t.transfer_date, t.block_data.block_number, t.block_data.index))
        return _page(out, self.offset, self.count)

    @staticmethod
    def from_query(q: Mapping[str, Any]) -> "TokenMovementCriteria":
        return TokenMovementCriteria(
            to_address=str(q.get("to") or q.get("to_address") or "").strip().lower(),
            from_address=str(q.get("from") or q.get("from_address") or "").strip().lower(),
            offset=max(0, _q_int(q, "offset", 0)),
            count=_clamp_count(_q_int(q, "count", DEFAULT_COUNT)),
        )


@dataclass(frozen=True)
class ChallengeCriteria:
    listing_address: str = ""
    resolved: Optional[bool] = None
    offset: int = 0
    count: int = DEFAULT_COUNT

    def select(self, challenges: Sequence[Challenge]) -> List[Challenge]:
        out = [
            c
            for c in challenges
            if (not self.listing_address or c.listing_address == self.listing_address)
            and (self.resolved is None or c.resolved == self.resolved)
        ]
        out.sort(key=lambda c: c.challenge_id)
        return _page(out, self.offset, self.count)

    @staticmethod
    def from_query(q: Mapping[str, Any]) -> "ChallengeCriteria":
        return ChallengeCriteria(
            listing_address=str(q.get("listing_address") or "").strip().lower(),
            resolved=_q_opt_bool(q, "resolved"),
            offset=max(0, _q_int(q, "offset", 0)),
            count=_clamp_count(_q_int(q, "count", DEFAULT_COUNT)),
        )
