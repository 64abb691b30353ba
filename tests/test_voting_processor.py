from __future__ import annotations

import threading
from typing import Callable

import pytest

from tcrproc.contracts import PLCR_CONTRACT
from tcrproc.errors import ProcessError
from tcrproc.model import Event, Poll
from tcrproc.persistence import Persisters
from tcrproc.processor import VotingProcessor
from tcrproc.routing import EventRoutes


def _reveal(make_event: Callable[..., Event], poll_id: int, votes_for: int, votes_against: int) -> Event:
    return make_event(
        PLCR_CONTRACT,
        "_VoteRevealed",
        {"PollID": poll_id, "VotesFor": votes_for, "VotesAgainst": votes_against, "NumTokens": 1, "Choice": 1},
    )


def test_poll_created_then_votes_accumulate(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = VotingProcessor(persisters, routes=routes)
    proc.process(
        make_event(
            PLCR_CONTRACT,
            "_PollCreated",
            {"PollID": 3, "VoteQuorum": 50, "CommitEndDate": 10, "RevealEndDate": 20},
        )
    )
    proc.process(_reveal(make_event, 3, 100, 0))
    proc.process(_reveal(make_event, 3, 0, 40))

    poll = persisters.polls.by_id(3)
    assert poll.vote_quorum == 50
    assert (poll.votes_for, poll.votes_against) == (100, 40)


def test_poll_created_fills_poll_made_by_a_challenge(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    persisters.polls.create(Poll(poll_id=9, votes_for=5))
    proc = VotingProcessor(persisters, routes=routes)
    proc.process(
        make_event(PLCR_CONTRACT, "PollCreated", {"PollID": 9, "VoteQuorum": 66, "CommitEndDate": 1, "RevealEndDate": 2})
    )

    poll = persisters.polls.by_id(9)
    assert poll.vote_quorum == 66
    assert poll.reveal_end_date == 2
    assert poll.votes_for == 5


def test_reveal_on_unknown_poll_is_not_found(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = VotingProcessor(persisters, routes=routes)
    with pytest.raises(ProcessError) as e:
        proc.process(_reveal(make_event, 404, 1, 1))
    assert e.value.code == "not_found"
    assert e.value.reason == "poll_not_found"


def test_concurrent_reveals_do_not_lose_votes(persisters: Persisters) -> None:
    persisters.polls.create(Poll(poll_id=1))

    def worker() -> None:
        for _ in range(50):
            persisters.polls.add_votes(1, 1, 2)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    poll = persisters.polls.by_id(1)
    assert (poll.votes_for, poll.votes_against) == (200, 400)


def test_redelivered_reveal_is_counted_once(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    persisters.polls.create(Poll(poll_id=7))
    proc = VotingProcessor(persisters, routes=routes)
    reveal = _reveal(make_event, 7, 10, 3)

    assert proc.process(reveal) is True
    assert proc.process(reveal) is True

    poll = persisters.polls.by_id(7)
    assert (poll.votes_for, poll.votes_against) == (10, 3)
    assert poll.revealed_event_hashes == (reveal.event_hash,)

    # a different reveal on the same poll still counts
    proc.process(_reveal(make_event, 7, 1, 0))
    assert persisters.polls.by_id(7).votes_for == 11
