# tests/test_cron_watermark.py
from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Callable, List

import pytest

from tcrproc.config import default_processor_config
from tcrproc.contracts import PLCR_CONTRACT, TCR_CONTRACT, TOKEN_CONTRACT
from tcrproc.cron import ProcessorCron, main, next_watermark, run_processor_once
from tcrproc.engine import EventProcessor
from tcrproc.errors import DecodeError
from tcrproc.model import Event
from tcrproc.persistence import Persisters
from tcrproc.processor import build_processors
from tcrproc.routing import EventRoutes
from tcrproc.source import InMemoryEventSource, JsonlEventSource

SELLER = "0x" + "c1" * 20
BUYER = "0x" + "c2" * 20
LISTING = "0x" + "11" * 20


def _transfer(make_event: Callable[..., Event], value: int, ts: int) -> Event:
    return make_event(TOKEN_CONTRACT, "Transfer", {"From": SELLER, "To": BUYER, "Value": value}, ts=ts)


def _engine(persisters: Persisters, routes: EventRoutes) -> EventProcessor:
    return EventProcessor(build_processors(persisters, routes=routes), routes=routes)


def test_next_watermark_moves_forward_only(make_event: Callable[..., Event]) -> None:
    a = _transfer(make_event, 1, 100)
    b = _transfer(make_event, 2, 200)
    c = _transfer(make_event, 3, 200)

    assert next_watermark([], 50, set()) is None
    assert next_watermark([None], 50, set()) is None
    assert next_watermark([a, b, c], 50, {"old"}) == (200, {b.event_hash, c.event_hash})
    # same timestamp: hashes accumulate
    assert next_watermark([c], 200, {b.event_hash}) == (200, {b.event_hash, c.event_hash})
    assert next_watermark([a], 200, {b.event_hash}) is None


def test_run_once_advances_and_skips_seen_events(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    source = InMemoryEventSource([_transfer(make_event, 1, 100), _transfer(make_event, 2, 200)])
    engine = _engine(persisters, routes)

    first = run_processor_once(engine, source, persisters.cron)
    assert first.handled == 2
    assert persisters.cron.last_timestamp() == 200

    # nothing new: the event at the watermark is excluded by hash
    second = run_processor_once(engine, source, persisters.cron)
    assert second.total == 0

    source.append(_transfer(make_event, 3, 200))
    third = run_processor_once(engine, source, persisters.cron)
    assert third.handled == 1
    assert len(persisters.cron.event_hashes_at_last_timestamp()) == 2
    assert len(persisters.token_transfers.by_to_address(BUYER)) == 3


def test_failed_batch_holds_the_watermark(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    orphan = make_event(TCR_CONTRACT, "ApplicationWhitelisted", {"ListingAddress": LISTING}, ts=300)
    source = InMemoryEventSource([_transfer(make_event, 1, 100), orphan])
    engine = _engine(persisters, routes)

    res = run_processor_once(engine, source, persisters.cron)
    assert not res.ok
    assert persisters.cron.last_timestamp() == 0

    res = run_processor_once(engine, source, persisters.cron, advance_on_error=True)
    assert not res.ok
    assert persisters.cron.last_timestamp() == 300


def test_cron_counts_failures_and_recovers(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    cfg = replace(default_processor_config(), cron_enabled=True, error_backoff_min_ms=100, error_backoff_max_ms=350)
    orphan = make_event(TCR_CONTRACT, "ApplicationWhitelisted", {"ListingAddress": LISTING}, ts=300)
    source = InMemoryEventSource([orphan])
    loop = ProcessorCron(engine=_engine(persisters, routes), source=source, cron=persisters.cron, cfg=cfg)

    assert loop.run_once() is False
    assert loop.run_once() is False
    st = loop.status()
    assert st["consecutive_failures"] == 2
    assert "listing_not_found" in st["last_error"]
    assert loop._backoff_s() == pytest.approx(0.2)
    loop._consecutive_failures = 5
    assert loop._backoff_s() == pytest.approx(0.35)
    loop._consecutive_failures = 2

    # an empty pass counts as a success
    loop._source = InMemoryEventSource([])
    assert loop.run_once() is True
    assert loop.status()["consecutive_failures"] == 0
    assert loop.status()["last_error"] == ""


def test_cron_trips_unhealthy_after_repeated_failures(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    class _Exploding:
        def retrieve_events(self, from_ts, exclude_hashes) -> List[Event]:
            raise RuntimeError("source offline")

    cfg = replace(
        default_processor_config(),
        cron_enabled=True,
        cron_interval_ms=250,
        fail_fast_after=3,
        error_backoff_min_ms=50,
        error_backoff_max_ms=50,
    )
    loop = ProcessorCron(engine=_engine(persisters, routes), source=_Exploding(), cron=persisters.cron, cfg=cfg)
    assert loop.start() is True
    loop._t.join(timeout=10.0)

    assert loop.unhealthy is True
    assert loop.running is False
    assert loop.status()["consecutive_failures"] == 3
    loop.stop()


def test_disabled_cron_does_not_start(persisters: Persisters, routes: EventRoutes) -> None:
    loop = ProcessorCron(
        engine=_engine(persisters, routes),
        source=InMemoryEventSource(),
        cron=persisters.cron,
        cfg=default_processor_config(),
    )
    assert loop.start() is False
    assert loop.started is False


def test_jsonl_source_reads_and_filters(tmp_path: Path, make_event: Callable[..., Event]) -> None:
    a = _transfer(make_event, 1, 100)
    b = _transfer(make_event, 2, 50)
    path = tmp_path / "events.jsonl"
    path.write_text(
        "# captured events\n" + json.dumps(a.to_json()) + "\n\n" + json.dumps(b.to_json()) + "\n",
        encoding="utf-8",
    )

    src = JsonlEventSource(str(path))
    assert [e.event_hash for e in src.retrieve_events(0, set())] == [b.event_hash, a.event_hash]
    assert src.retrieve_events(60, set()) == [a]
    assert src.retrieve_events(0, {a.event_hash, b.event_hash}) == []
    assert JsonlEventSource(str(tmp_path / "missing.jsonl")).retrieve_events(0, set()) == []

    path.write_text('{"event_type": "Transfer"}\n', encoding="utf-8")
    with pytest.raises(DecodeError) as e:
        src.retrieve_events(0, set())
    assert e.value.details["line"] == 1


def test_main_once_processes_event_file(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    make_event: Callable[..., Event],
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TCRPROC_PUBLISHER", "none")
    monkeypatch.setattr("tcrproc.cron.configure_structured_logging", lambda level=None: None)
    path = tmp_path / "events.jsonl"
    path.write_text(json.dumps(_transfer(make_event, 1, 100).to_json()) + "\n", encoding="utf-8")

    rc = main(["--once", "--events", str(path)])

    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["handled"] == 1
    assert out["errors"] == []


def test_replayed_batch_does_not_recount_reveals(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    created = make_event(
        PLCR_CONTRACT, "_PollCreated", {"PollID": 7, "VoteQuorum": 50, "CommitEndDate": 10, "RevealEndDate": 20}, ts=100
    )
    reveal = make_event(
        PLCR_CONTRACT,
        "_VoteRevealed",
        {"PollID": 7, "VotesFor": 10, "VotesAgainst": 3, "NumTokens": 1, "Choice": 1},
        ts=110,
    )
    malformed = make_event(TOKEN_CONTRACT, "Transfer", {"From": SELLER}, ts=120)
    source = InMemoryEventSource([created, reveal, malformed])
    engine = _engine(persisters, routes)

    for _ in range(3):
        res = run_processor_once(engine, source, persisters.cron)
        assert not res.ok
        assert persisters.cron.last_timestamp() == 0

    poll = persisters.polls.by_id(7)
    assert (poll.votes_for, poll.votes_against) == (10, 3)
