from __future__ import annotations

from typing import Callable, Type

import pytest

from tcrproc.contracts import (
    MULTISIG_CONTRACT,
    NEWSROOM_CONTRACT,
    PARAMETERIZER_CONTRACT,
    PLCR_CONTRACT,
    TCR_CONTRACT,
    TOKEN_CONTRACT,
)
from tcrproc.errors import ProcessError
from tcrproc.model import Event, GovernanceEventCriteria, GovernanceState
from tcrproc.persistence import MemoryStore, Persisters, build_persisters
from tcrproc.processor import (
    ContentProcessor,
    MultiSigProcessor,
    ParameterizerProcessor,
    RegistryProcessor,
    TokenProcessor,
    VotingProcessor,
)
from tcrproc.processor.base import DomainProcessor
from tcrproc.routing import EventRoutes

LISTING = "0x" + "11" * 20
APPLICANT = "0x" + "22" * 20
CHALLENGER = "0x" + "33" * 20
REQUESTER = "0x" + "44" * 20


def _apply(make_event: Callable[..., Event], ts: int = 100, deposit: int = 1000) -> Event:
    return make_event(
        TCR_CONTRACT,
        "_Application",
        {"ListingAddress": LISTING, "Deposit": deposit, "AppEndDate": ts + 500, "Applicant": APPLICANT},
        ts=ts,
    )


def _challenge(make_event: Callable[..., Event], cid: int = 7, ts: int = 200, stake: int = 400, name: str = "_Challenge") -> Event:
    return make_event(
        TCR_CONTRACT,
        name,
        {
            "ListingAddress": LISTING,
            "ChallengeID": cid,
            "Data": "ipfs://statement",
            "CommitEndDate": ts + 100,
            "RevealEndDate": ts + 200,
            "Challenger": CHALLENGER,
            "Stake": stake,
        },
        ts=ts,
    )


def _events_for(persisters: Persisters) -> list:
    return persisters.governance_events.by_criteria(GovernanceEventCriteria(listing_address=LISTING))


def test_application_challenge_then_failed(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = RegistryProcessor(persisters, routes=routes)

    assert proc.process(_apply(make_event)) is True
    listing = persisters.listings.by_id(LISTING)
    assert listing.governance_state is GovernanceState.APPLIED
    assert listing.whitelisted is False
    assert listing.owner_addresses == (APPLICANT,)
    assert listing.unstaked_deposit == 1000
    assert listing.app_expiry == 600

    assert proc.process(_challenge(make_event)) is True
    listing = persisters.listings.by_id(LISTING)
    assert listing.governance_state is GovernanceState.CHALLENGED
    assert listing.challenge_id == 7
    assert listing.unstaked_deposit == 600
    ch = persisters.challenges.by_id(7)
    assert ch.challenger == CHALLENGER
    assert ch.poll is not None and ch.poll.reveal_end_date == 400

    failed = make_event(
        TCR_CONTRACT,
        "_ChallengeFailed",
        {"ListingAddress": LISTING, "ChallengeID": 7, "RewardPool": 50, "TotalTokens": 900},
        ts=300,
    )
    assert proc.process(failed) is True
    listing = persisters.listings.by_id(LISTING)
    assert listing.governance_state is GovernanceState.CHALLENGE_FAILED
    assert listing.whitelisted is True
    assert listing.challenge_id is None
    assert listing.last_governance_state_update_ts == 300
    ch = persisters.challenges.by_id(7)
    assert ch.resolved is True
    assert (ch.reward_pool, ch.total_tokens) == (50, 900)

    kinds = sorted(e.governance_event_type for e in _events_for(persisters))
    assert kinds == ["Application", "Challenge", "ChallengeFailed"]


def test_stake_leaves_deposit_once_per_challenge(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = RegistryProcessor(persisters, routes=routes)
    proc.process(_apply(make_event))
    proc.process(_challenge(make_event, name="Challenge"))
    # the same challenge reported again under its other event name
    proc.process(_challenge(make_event, name="NewChallenge"))

    assert persisters.listings.by_id(LISTING).unstaked_deposit == 600


def test_challenge_succeeded_removes_listing(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = RegistryProcessor(persisters, routes=routes)
    proc.process(_apply(make_event))
    proc.process(_challenge(make_event))
    proc.process(make_event(TCR_CONTRACT, "ChallengeSucceeded", {"ListingAddress": LISTING, "ChallengeID": 7}, ts=400))

    listing = persisters.listings.by_id(LISTING)
    assert listing.governance_state is GovernanceState.REMOVED
    assert listing.whitelisted is False
    assert listing.challenge_id is None
    # totals absent from the payload keep their stored values
    assert persisters.challenges.by_id(7).reward_pool == 0


def test_whitelist_withdraw_and_deposits(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = RegistryProcessor(persisters, routes=routes)
    proc.process(_apply(make_event))

    proc.process(make_event(TCR_CONTRACT, "ApplicationWhitelisted", {"ListingAddress": LISTING}, ts=700))
    listing = persisters.listings.by_id(LISTING)
    assert listing.whitelisted is True
    assert listing.approval_date_ts == 700

    proc.process(make_event(TCR_CONTRACT, "Deposit", {"ListingAddress": LISTING, "Added": 5, "NewTotal": 1005}, ts=710))
    assert persisters.listings.by_id(LISTING).unstaked_deposit == 1005

    proc.process(
        make_event(TCR_CONTRACT, "Withdrawal", {"ListingAddress": LISTING, "Withdrew": 5, "UnstakedDeposit": 1000}, ts=720)
    )
    listing = persisters.listings.by_id(LISTING)
    assert listing.unstaked_deposit == 1000
    assert listing.governance_state is GovernanceState.WITHDRAWAL

    proc.process(make_event(TCR_CONTRACT, "ListingRemoved", {"ListingAddress": LISTING}, ts=730))
    listing = persisters.listings.by_id(LISTING)
    assert listing.governance_state is GovernanceState.REMOVED
    assert listing.whitelisted is False
    assert listing.unstaked_deposit == 0
    assert listing.app_expiry is None


def test_appeal_flow(persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]) -> None:
    proc = RegistryProcessor(persisters, routes=routes)
    proc.process(_apply(make_event))
    proc.process(_challenge(make_event))
    proc.process(
        make_event(
            TCR_CONTRACT,
            "AppealRequested",
            {"ListingAddress": LISTING, "ChallengeID": 7, "AppealFeePaid": 30, "Requester": REQUESTER},
            ts=500,
        )
    )
    proc.process(
        make_event(
            TCR_CONTRACT,
            "AppealGranted",
            {"ListingAddress": LISTING, "ChallengeID": 7, "AppealOpenToChallengeExpiry": 900},
            ts=510,
        )
    )
    proc.process(
        make_event(
            TCR_CONTRACT,
            "GrantedAppealChallenged",
            {
                "ListingAddress": LISTING,
                "ChallengeID": 7,
                "AppealChallengeID": 8,
                "Challenger": CHALLENGER,
                "CommitEndDate": 600,
                "RevealEndDate": 700,
            },
            ts=520,
        )
    )
    proc.process(
        make_event(
            TCR_CONTRACT,
            "GrantedAppealConfirmed",
            {"ListingAddress": LISTING, "ChallengeID": 7, "AppealChallengeID": 8, "RewardPool": 3},
            ts=800,
        )
    )

    appeal = persisters.appeals.by_id(7)
    assert appeal.requester == REQUESTER
    assert appeal.appeal_granted is True
    assert appeal.appeal_open_to_challenge_expiry == 900
    assert appeal.appeal_challenge_id == 8

    appeal_challenge = persisters.challenges.by_id(8)
    assert appeal_challenge.challenge_type == "appeal"
    assert appeal_challenge.resolved is True
    assert appeal_challenge.reward_pool == 3
    assert persisters.challenges.by_id(7).appeal is not None

    listing = persisters.listings.by_id(LISTING)
    assert listing.governance_state is GovernanceState.GRANTED_APPEAL_CONFIRMED


def test_missing_listing_is_not_found(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = RegistryProcessor(persisters, routes=routes)
    with pytest.raises(ProcessError) as e:
        proc.process(make_event(TCR_CONTRACT, "ApplicationWhitelisted", {"ListingAddress": LISTING}))
    assert e.value.code == "not_found"
    assert e.value.reason == "listing_not_found"

    proc.process(_apply(make_event))
    with pytest.raises(ProcessError) as e2:
        proc.process(make_event(TCR_CONTRACT, "AppealGranted", {"ListingAddress": LISTING, "ChallengeID": 99}))
    assert e2.value.reason == "appeal_not_found"


def test_replayed_event_does_not_duplicate_audit(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = RegistryProcessor(persisters, routes=routes)
    ev = _apply(make_event)
    proc.process(ev)
    proc.process(ev)

    assert len(_events_for(persisters)) == 1
    audit = _events_for(persisters)[0]
    assert audit.event_hash == ev.event_hash
    assert audit.sender_address == APPLICANT
    assert audit.metadata["Deposit"] == 1000
    assert audit.block_data.tx_hash == ev.tx_hash


@pytest.mark.parametrize(
    "processor_cls, contract, event_type",
    [
        (RegistryProcessor, TOKEN_CONTRACT, "Transfer"),
        (VotingProcessor, TCR_CONTRACT, "_Application"),
        (ParameterizerProcessor, PLCR_CONTRACT, "_VoteRevealed"),
        (TokenProcessor, MULTISIG_CONTRACT, "OwnerAddition"),
        (MultiSigProcessor, NEWSROOM_CONTRACT, "RevisionUpdated"),
        (ContentProcessor, PARAMETERIZER_CONTRACT, "_ProposalExpired"),
    ],
)
def test_foreign_family_event_is_not_claimed(
    recording_store: MemoryStore,
    routes: EventRoutes,
    make_event: Callable[..., Event],
    processor_cls: Type[DomainProcessor],
    contract: str,
    event_type: str,
) -> None:
    proc = processor_cls(build_persisters(recording_store), routes=routes)
    ev = make_event(contract, event_type, {"From": LISTING, "To": APPLICANT, "Value": 1})

    assert proc.process(ev) is False
    assert recording_store.calls == []
