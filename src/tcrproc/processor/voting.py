# src/tcrproc/processor/voting.py
from __future__ import annotations

from tcrproc.contracts import FAMILY_VOTING
from tcrproc.errors import NoResultsError, not_found
from tcrproc.model import Event, Poll, PollPatch
from tcrproc.payloads import PollCreatedPayload, VoteRevealedPayload
from tcrproc.processor.base import DomainProcessor


def _poll_created(p: "VotingProcessor", ev: Event, pl: PollCreatedPayload) -> None:
    ts = int(ev.timestamp)
    polls = p.persisters.polls
    try:
        polls.by_id(pl.poll_id)
    except NoResultsError:
        polls.create(
            Poll(
                poll_id=int(pl.poll_id),
                commit_end_date=int(pl.commit_end_date),
                reveal_end_date=int(pl.reveal_end_date),
                vote_quorum=int(pl.vote_quorum),
                last_updated_ts=ts,
            )
        )
        return
    # a challenge already created the poll; fill in what it could not know
    polls.update(
        pl.poll_id,
        PollPatch(
            vote_quorum=int(pl.vote_quorum),
            commit_end_date=int(pl.commit_end_date),
            reveal_end_date=int(pl.reveal_end_date),
            last_updated_ts=ts,
        ),
    )


def _vote_revealed(p: "VotingProcessor", ev: Event, pl: VoteRevealedPayload) -> None:
    try:
        p.persisters.polls.add_votes(
            pl.poll_id, int(pl.votes_for), int(pl.votes_against), event_hash=ev.event_hash
        )
    except NoResultsError:
        raise not_found("poll_not_found", poll_id=int(pl.poll_id)) from None


_HANDLERS = {
    "PollCreated": _poll_created,
    "VoteRevealed": _vote_revealed,
}


class VotingProcessor(DomainProcessor):
    family = FAMILY_VOTING
    _HANDLERS = _HANDLERS
