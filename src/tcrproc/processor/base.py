# src/tcrproc/processor/base.py
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from tcrproc.errors import NoResultsError, ProcessError, not_found
from tcrproc.model import (
    Challenge,
    ChallengePatch,
    Event,
    GovernanceEvent,
    Listing,
    Poll,
    PollPatch,
)
from tcrproc.model.patch import UNSET
from tcrproc.payloads import EventPayload, decode_payload
from tcrproc.persistence import Persisters
from tcrproc.routing import EventRoutes
from tcrproc.structured_logging import log_event

Handler = Callable[[Any, Event, Any], None]


class DomainProcessor:
    """One processor per contract family.

    Subclasses set `family` and a `_HANDLERS` table keyed by normalized
    event name. `process` returns False without touching persistence when
    the routing table does not send the event to this family.
    """

    family: str = ""
    _HANDLERS: Mapping[str, Handler] = {}

    def __init__(self, persisters: Persisters, *, routes: EventRoutes) -> None:
        self.persisters = persisters
        self.routes = routes
        self.log = logging.getLogger(f"tcrproc.processor.{self.family}")

    def handler(self, contract_name: str, event_name: str) -> Optional[Handler]:
        return self._HANDLERS.get(event_name)

    def process(self, event: Event) -> bool:
        name = event.name
        if self.routes.family_for(event.contract_name, name) != self.family:
            return False

        fn = self.handler(event.contract_name, name)
        if fn is None:
            raise ProcessError("no_handler", f"{self.family} has no handler for {event.contract_name}.{name}")

        payload = decode_payload(event.contract_name, name, event.payload)
        fn(self, event, payload)
        log_event(
            self.log,
            "event_applied",
            level=logging.DEBUG,
            family=self.family,
            event_type=name,
            event_hash=event.event_hash,
        )
        return True


# --- lookups shared by the registry, voting and parameterizer families ------


def require_listing(persisters: Persisters, address: str) -> Listing:
    try:
        return persisters.listings.by_id(address)
    except NoResultsError:
        raise not_found("listing_not_found", address=address) from None


def require_challenge(persisters: Persisters, challenge_id: int) -> Challenge:
    try:
        return persisters.challenges.by_id(challenge_id)
    except NoResultsError:
        raise not_found("challenge_not_found", challenge_id=int(challenge_id)) from None


def ensure_challenge(persisters: Persisters, challenge: Challenge) -> Challenge:
    try:
        return persisters.challenges.by_id(challenge.challenge_id)
    except NoResultsError:
        persisters.challenges.create(challenge)
        return challenge


def ensure_poll(persisters: Persisters, poll_id: int, commit_end_date: int, reveal_end_date: int, ts: int) -> Poll:
    """Create the poll for a challenge unless PollCreated already made it."""
    try:
        return persisters.polls.by_id(poll_id)
    except NoResultsError:
        poll = Poll(
            poll_id=int(poll_id),
            commit_end_date=int(commit_end_date),
            reveal_end_date=int(reveal_end_date),
            last_updated_ts=int(ts),
        )
        persisters.polls.create(poll)
        return poll


def set_poll_passed(persisters: Persisters, poll_id: int, passed: bool, ts: int) -> None:
    try:
        persisters.polls.update(poll_id, PollPatch(is_passed=passed, last_updated_ts=int(ts)))
    except NoResultsError:
        persisters.polls.create(Poll(poll_id=int(poll_id), is_passed=passed, last_updated_ts=int(ts)))


def resolve_challenge(
    persisters: Persisters,
    challenge_id: int,
    ts: int,
    *,
    reward_pool: Optional[int] = None,
    total_tokens: Optional[int] = None,
) -> Challenge:
    require_challenge(persisters, challenge_id)
    patch = ChallengePatch(
        resolved=True,
        reward_pool=UNSET if reward_pool is None else int(reward_pool),
        total_tokens=UNSET if total_tokens is None else int(total_tokens),
        last_updated_ts=int(ts),
    )
    return persisters.challenges.update(challenge_id, patch)


def record_governance_event(
    persisters: Persisters,
    event: Event,
    payload: EventPayload,
    *,
    listing_address: str,
    sender: str = "",
) -> bool:
    """Append the audit record for a registry action. False when already recorded."""
    try:
        persisters.governance_events.by_id(event.event_hash)
        return False
    except NoResultsError:
        pass
    persisters.governance_events.create(
        GovernanceEvent(
            event_hash=event.event_hash,
            listing_address=listing_address,
            governance_event_type=event.name,
            sender_address=sender or "",
            metadata=payload.to_metadata(),
            creation_date_ts=int(event.timestamp),
            last_updated_date_ts=int(event.timestamp),
            block_data=event.block_data(),
        )
    )
    return True

