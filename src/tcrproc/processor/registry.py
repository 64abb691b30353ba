# src/tcrproc/processor/registry.py
from __future__ import annotations

"""
Registry-governance semantics for the TCR contract.

Every successful transition appends one GovernanceEvent keyed by the source
event hash, so replaying the same log never duplicates the audit trail.
"""

import logging

from tcrproc.contracts import FAMILY_REGISTRY
from tcrproc.errors import NoResultsError, not_found
from tcrproc.model import Appeal, AppealPatch, Challenge, Event, GovernanceState, Listing
from tcrproc.model.challenge import CHALLENGE_TYPE_APPEAL, CHALLENGE_TYPE_REGISTRY
from tcrproc.model.listing import transition
from tcrproc.model.patch import UNSET
from tcrproc.payloads import (
    AppealGrantedPayload,
    AppealRequestedPayload,
    ApplicationPayload,
    ChallengeResolvedPayload,
    DepositPayload,
    GrantedAppealChallengedPayload,
    GrantedAppealResolvedPayload,
    ListingPayload,
    NewChallengePayload,
    RewardClaimedPayload,
    WithdrawalPayload,
)
from tcrproc.processor.base import (
    DomainProcessor,
    ensure_challenge,
    ensure_poll,
    record_governance_event,
    require_challenge,
    require_listing,
    resolve_challenge,
)
from tcrproc.structured_logging import log_event

S = GovernanceState


def _audit(p: "RegistryProcessor", ev: Event, pl: ListingPayload, sender: str = "") -> None:
    record_governance_event(p.persisters, ev, pl, listing_address=pl.listing_address, sender=sender)


def _set_state(p: "RegistryProcessor", ev: Event, pl: ListingPayload, state: GovernanceState, **changes) -> Listing:
    require_listing(p.persisters, pl.listing_address)
    return p.persisters.listings.update(pl.listing_address, transition(state, ev.timestamp, **changes))


def _application(p: "RegistryProcessor", ev: Event, pl: ApplicationPayload) -> None:
    ts = int(ev.timestamp)
    listings = p.persisters.listings
    try:
        existing = listings.by_id(pl.listing_address)
    except NoResultsError:
        listings.create(
            Listing(
                address=pl.listing_address,
                whitelisted=False,
                governance_state=S.APPLIED,
                owner_addresses=(pl.applicant,),
                application_date_ts=ts,
                last_governance_state_update_ts=ts,
                app_expiry=int(pl.app_end_date),
                unstaked_deposit=int(pl.deposit),
                created_ts=ts,
                last_updated_ts=ts,
            )
        )
    else:
        owners = existing.owner_addresses
        if pl.applicant not in owners:
            owners = owners + (pl.applicant,)
        listings.update(
            pl.listing_address,
            transition(
                S.APPLIED,
                ts,
                whitelisted=False,
                owner_addresses=owners,
                application_date_ts=ts,
                app_expiry=int(pl.app_end_date),
                unstaked_deposit=int(pl.deposit),
                challenge_id=None,
            ),
        )
    _audit(p, ev, pl, pl.applicant)


def _new_challenge(p: "RegistryProcessor", ev: Event, pl: NewChallengePayload) -> None:
    ts = int(ev.timestamp)
    listing = require_listing(p.persisters, pl.listing_address)
    ensure_challenge(
        p.persisters,
        Challenge(
            challenge_id=int(pl.challenge_id),
            listing_address=pl.listing_address,
            challenge_type=CHALLENGE_TYPE_REGISTRY,
            statement=pl.data,
            reward_pool=int(pl.reward_pool),
            challenger=pl.challenger,
            stake=int(pl.stake),
            last_updated_ts=ts,
        ),
    )
    ensure_poll(p.persisters, pl.challenge_id, pl.commit_end_date, pl.reveal_end_date, ts)

    changes = {"challenge_id": int(pl.challenge_id)}
    # the stake leaves the unstaked deposit once per challenge
    if listing.challenge_id != int(pl.challenge_id) and listing.unstaked_deposit is not None and pl.stake:
        changes["unstaked_deposit"] = max(0, int(listing.unstaked_deposit) - int(pl.stake))
    p.persisters.listings.update(pl.listing_address, transition(S.CHALLENGED, ts, **changes))
    _audit(p, ev, pl, pl.challenger)


def _challenge_resolved(p: "RegistryProcessor", ev: Event, pl: ChallengeResolvedPayload, *, listing_wins: bool, state: GovernanceState) -> None:
    require_listing(p.persisters, pl.listing_address)
    resolve_challenge(
        p.persisters,
        pl.challenge_id,
        ev.timestamp,
        reward_pool=pl.reward_pool,
        total_tokens=pl.total_tokens,
    )
    _set_state(p, ev, pl, state, whitelisted=listing_wins, challenge_id=None)
    _audit(p, ev, pl)


def _challenge_failed(p: "RegistryProcessor", ev: Event, pl: ChallengeResolvedPayload) -> None:
    _challenge_resolved(p, ev, pl, listing_wins=True, state=S.CHALLENGE_FAILED)


def _challenge_succeeded(p: "RegistryProcessor", ev: Event, pl: ChallengeResolvedPayload) -> None:
    _challenge_resolved(p, ev, pl, listing_wins=False, state=S.REMOVED)


def _failed_challenge_overturned(p: "RegistryProcessor", ev: Event, pl: ChallengeResolvedPayload) -> None:
    _challenge_resolved(p, ev, pl, listing_wins=False, state=S.FAILED_CHALLENGE_OVERTURNED)


def _successful_challenge_overturned(p: "RegistryProcessor", ev: Event, pl: ChallengeResolvedPayload) -> None:
    _challenge_resolved(p, ev, pl, listing_wins=True, state=S.SUCCESSFUL_CHALLENGE_OVERTURNED)


def _application_whitelisted(p: "RegistryProcessor", ev: Event, pl: ListingPayload) -> None:
    _set_state(p, ev, pl, S.APP_WHITELISTED, whitelisted=True, approval_date_ts=int(ev.timestamp))
    _audit(p, ev, pl)


def _reset(p: "RegistryProcessor", ev: Event, pl: ListingPayload, state: GovernanceState) -> None:
    _set_state(p, ev, pl, state, whitelisted=False, app_expiry=None, unstaked_deposit=0, challenge_id=None)
    _audit(p, ev, pl)


def _application_removed(p: "RegistryProcessor", ev: Event, pl: ListingPayload) -> None:
    _reset(p, ev, pl, S.APP_REMOVED)


def _listing_removed(p: "RegistryProcessor", ev: Event, pl: ListingPayload) -> None:
    _reset(p, ev, pl, S.REMOVED)


def _listing_withdrawn(p: "RegistryProcessor", ev: Event, pl: ListingPayload) -> None:
    _set_state(p, ev, pl, S.WITHDRAWN)
    _audit(p, ev, pl)


def _touch_and_removed(p: "RegistryProcessor", ev: Event, pl: ListingPayload) -> None:
    _set_state(p, ev, pl, S.TOUCH_AND_REMOVED)
    _audit(p, ev, pl)


def _deposit(p: "RegistryProcessor", ev: Event, pl: DepositPayload) -> None:
    _set_state(p, ev, pl, S.DEPOSIT, unstaked_deposit=int(pl.new_total))
    _audit(p, ev, pl)


def _withdrawal(p: "RegistryProcessor", ev: Event, pl: WithdrawalPayload) -> None:
    _set_state(p, ev, pl, S.WITHDRAWAL, unstaked_deposit=int(pl.new_total))
    _audit(p, ev, pl)


def _appeal_requested(p: "RegistryProcessor", ev: Event, pl: AppealRequestedPayload) -> None:
    require_listing(p.persisters, pl.listing_address)
    try:
        p.persisters.appeals.by_id(pl.challenge_id)
    except NoResultsError:
        p.persisters.appeals.create(
            Appeal(
                original_challenge_id=int(pl.challenge_id),
                requester=pl.requester,
                appeal_fee_paid=int(pl.appeal_fee_paid),
                appeal_phase_expiry=int(pl.appeal_phase_expiry),
                statement=pl.data,
                last_updated_ts=int(ev.timestamp),
            )
        )
    _set_state(p, ev, pl, S.APPEAL_REQUESTED)
    _audit(p, ev, pl, pl.requester)


def _require_appeal(p: "RegistryProcessor", challenge_id: int) -> Appeal:
    try:
        return p.persisters.appeals.by_id(challenge_id)
    except NoResultsError:
        raise not_found("appeal_not_found", challenge_id=int(challenge_id)) from None


def _appeal_granted(p: "RegistryProcessor", ev: Event, pl: AppealGrantedPayload) -> None:
    require_listing(p.persisters, pl.listing_address)
    _require_appeal(p, pl.challenge_id)
    p.persisters.appeals.update(
        pl.challenge_id,
        AppealPatch(
            appeal_granted=True,
            appeal_open_to_challenge_expiry=int(pl.appeal_open_to_challenge_expiry) or UNSET,
            last_updated_ts=int(ev.timestamp),
        ),
    )
    _set_state(p, ev, pl, S.APPEAL_GRANTED)
    _audit(p, ev, pl)


def _granted_appeal_challenged(p: "RegistryProcessor", ev: Event, pl: GrantedAppealChallengedPayload) -> None:
    ts = int(ev.timestamp)
    require_listing(p.persisters, pl.listing_address)
    _require_appeal(p, pl.challenge_id)
    ensure_challenge(
        p.persisters,
        Challenge(
            challenge_id=int(pl.appeal_challenge_id),
            listing_address=pl.listing_address,
            challenge_type=CHALLENGE_TYPE_APPEAL,
            statement=pl.data,
            challenger=pl.challenger or "",
            last_updated_ts=ts,
        ),
    )
    if pl.commit_end_date or pl.reveal_end_date:
        ensure_poll(p.persisters, pl.appeal_challenge_id, pl.commit_end_date, pl.reveal_end_date, ts)
    p.persisters.appeals.update(
        pl.challenge_id,
        AppealPatch(appeal_challenge_id=int(pl.appeal_challenge_id), last_updated_ts=ts),
    )
    _set_state(p, ev, pl, S.GRANTED_APPEAL_CHALLENGED)
    _audit(p, ev, pl, pl.challenger or "")


def _granted_appeal_resolved(p: "RegistryProcessor", ev: Event, pl: GrantedAppealResolvedPayload, state: GovernanceState) -> None:
    require_listing(p.persisters, pl.listing_address)
    resolve_challenge(
        p.persisters,
        pl.appeal_challenge_id,
        ev.timestamp,
        reward_pool=pl.reward_pool,
        total_tokens=pl.total_tokens,
    )
    _set_state(p, ev, pl, state)
    _audit(p, ev, pl)


def _granted_appeal_confirmed(p: "RegistryProcessor", ev: Event, pl: GrantedAppealResolvedPayload) -> None:
    _granted_appeal_resolved(p, ev, pl, S.GRANTED_APPEAL_CONFIRMED)


def _granted_appeal_overturned(p: "RegistryProcessor", ev: Event, pl: GrantedAppealResolvedPayload) -> None:
    _granted_appeal_resolved(p, ev, pl, S.GRANTED_APPEAL_OVERTURNED)


def _reward_claimed(p: "RegistryProcessor", ev: Event, pl: RewardClaimedPayload) -> None:
    challenge = require_challenge(p.persisters, pl.challenge_id)
    if not challenge.listing_address:
        log_event(
            p.log,
            "reward_claimed_without_listing",
            level=logging.DEBUG,
            challenge_id=int(pl.challenge_id),
            event_hash=ev.event_hash,
        )
        return
    record_governance_event(p.persisters, ev, pl, listing_address=challenge.listing_address, sender=pl.voter)


_HANDLERS = {
    "Application": _application,
    "Challenge": _new_challenge,
    "NewChallenge": _new_challenge,
    "ChallengeFailed": _challenge_failed,
    "ChallengeSucceeded": _challenge_succeeded,
    "FailedChallengeOverturned": _failed_challenge_overturned,
    "SuccessfulChallengeOverturned": _successful_challenge_overturned,
    "ApplicationWhitelisted": _application_whitelisted,
    "ApplicationRemoved": _application_removed,
    "ListingRemoved": _listing_removed,
    "ListingWithdrawn": _listing_withdrawn,
    "TouchAndRemoved": _touch_and_removed,
    "Deposit": _deposit,
    "Withdrawal": _withdrawal,
    "AppealRequested": _appeal_requested,
    "AppealGranted": _appeal_granted,
    "GrantedAppealChallenged": _granted_appeal_challenged,
    "GrantedAppealConfirmed": _granted_appeal_confirmed,
    "GrantedAppealOverturned": _granted_appeal_overturned,
    "RewardClaimed": _reward_claimed,
}


class RegistryProcessor(DomainProcessor):
    family = FAMILY_REGISTRY
    _HANDLERS = _HANDLERS
