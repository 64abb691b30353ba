from __future__ import annotations

import pytest

from tcrproc.errors import ProcessError
from tcrproc.model import (
    Challenge,
    ChallengePatch,
    GovernanceState,
    Listing,
    ListingPatch,
    ParameterProposal,
    ParameterProposalPatch,
    Poll,
    PollPatch,
)
from tcrproc.model.listing import transition


def test_changed_fields_lists_only_touched_fields() -> None:
    patch = ListingPatch(name="Daily", challenge_id=None)
    assert patch.changed_fields() == ("name", "challenge_id")
    assert patch.changes() == {"name": "Daily", "challenge_id": None}
    assert bool(ListingPatch()) is False


def test_apply_keeps_untouched_fields() -> None:
    listing = Listing(address="0xabc", name="Old", whitelisted=True, unstaked_deposit=10)
    out = ListingPatch(name="New").apply(listing)
    assert out.name == "New"
    assert out.whitelisted is True
    assert out.unstaked_deposit == 10


def test_transition_stamps_state_time() -> None:
    patch = transition(GovernanceState.CHALLENGED, 77, challenge_id=3)
    assert patch.governance_state is GovernanceState.CHALLENGED
    assert patch.last_governance_state_update_ts == 77
    assert patch.last_updated_ts == 77
    assert patch.challenge_id == 3


def test_resolved_challenge_cannot_reopen() -> None:
    ch = Challenge(challenge_id=1, resolved=True)
    with pytest.raises(ProcessError) as e:
        ChallengePatch(resolved=False).apply(ch)
    assert e.value.code == "conflict"
    assert ChallengePatch(resolved=True, reward_pool=9).apply(ch).reward_pool == 9


def test_proposal_terminal_states_are_exclusive() -> None:
    accepted = ParameterProposal(prop_id="p", accepted=True)
    expired = ParameterProposal(prop_id="q", expired=True)

    with pytest.raises(ProcessError) as e1:
        ParameterProposalPatch(expired=True).apply(accepted)
    assert e1.value.reason == "proposal_already_accepted"

    with pytest.raises(ProcessError) as e2:
        ParameterProposalPatch(accepted=True).apply(expired)
    assert e2.value.reason == "proposal_already_expired"

    with pytest.raises(ProcessError):
        ParameterProposalPatch(accepted=False).apply(accepted)


def test_vote_tallies_never_decrease() -> None:
    poll = Poll(poll_id=5, votes_for=10, votes_against=4)

    with pytest.raises(ProcessError) as e:
        PollPatch(votes_for=9).apply(poll)
    assert e.value.reason == "votes_for_decreased"

    with pytest.raises(ProcessError):
        poll.add_votes(-1, 0)

    added = poll.add_votes(3, 2).apply(poll)
    assert (added.votes_for, added.votes_against) == (13, 6)
