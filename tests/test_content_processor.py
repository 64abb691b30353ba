from __future__ import annotations

import logging
from typing import Callable

import pytest

from tcrproc.contracts import NEWSROOM_CONTRACT
from tcrproc.model import Event, article_payload_hash
from tcrproc.persistence import Persisters
from tcrproc.processor import ContentProcessor
from tcrproc.routing import EventRoutes
from tcrproc.scraper import ScraperContent, ScraperMetadata

NEWSROOM = "0x" + "77" * 20
EDITOR = "0x" + "88" * 20
NEW_OWNER = "0x" + "99" * 20


class _FixedScraper:
    def __init__(self) -> None:
        self.calls = 0

    def scrape_metadata(self, uri: str) -> ScraperMetadata:
        self.calls += 1
        return ScraperMetadata(uri=uri, title="Charter", data={"revisionContentHash": "0xfeed"})

    def scrape_content(self, uri: str) -> ScraperContent:
        return ScraperContent(uri=uri, text="body text", author="Jo")


class _BrokenScraper:
    def scrape_metadata(self, uri: str) -> ScraperMetadata:
        raise RuntimeError("gateway down")


def _revision(make_event: Callable[..., Event], content_id: int, revision_id: int, ts: int = 100) -> Event:
    return make_event(
        NEWSROOM_CONTRACT,
        "_RevisionUpdated",
        {"Editor": EDITOR, "ContentID": content_id, "RevisionID": revision_id, "URI": f"https://example.org/{content_id}/{revision_id}"},
        ts=ts,
        address=NEWSROOM,
    )


def test_charter_revision_patches_listing(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    scraper = _FixedScraper()
    proc = ContentProcessor(persisters, routes=routes, metadata_scraper=scraper, content_scraper=scraper)
    proc.process(_revision(make_event, 0, 2))

    rev = persisters.content_revisions.by_id(NEWSROOM, 0, 2)
    assert rev.payload == {"title": "Charter", "revisionContentHash": "0xfeed", "text": "body text", "author": "Jo"}
    assert rev.payload_hash == article_payload_hash(rev.payload)

    listing = persisters.listings.by_id(NEWSROOM)
    assert listing.charter is not None
    assert listing.charter.revision_id == 2
    assert listing.charter.content_hash == rev.payload_hash
    assert listing.contributor_addresses == (EDITOR,)


def test_non_charter_revision_leaves_charter(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = ContentProcessor(persisters, routes=routes)
    proc.process(_revision(make_event, 0, 1))
    proc.process(_revision(make_event, 5, 1, ts=200))

    assert persisters.listings.by_id(NEWSROOM).charter.content_id == 0
    assert persisters.content_revisions.by_id(NEWSROOM, 5, 1).payload == {}


def test_existing_revision_is_not_scraped_again(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    scraper = _FixedScraper()
    proc = ContentProcessor(persisters, routes=routes, metadata_scraper=scraper)
    proc.process(_revision(make_event, 3, 1))
    proc.process(_revision(make_event, 3, 1))
    assert scraper.calls == 1


def test_scrape_failure_stores_empty_payload(
    persisters: Persisters,
    routes: EventRoutes,
    make_event: Callable[..., Event],
    caplog: pytest.LogCaptureFixture,
) -> None:
    proc = ContentProcessor(persisters, routes=routes, metadata_scraper=_BrokenScraper())
    with caplog.at_level(logging.WARNING, logger="tcrproc.processor.content"):
        assert proc.process(_revision(make_event, 0, 0)) is True

    rev = persisters.content_revisions.by_id(NEWSROOM, 0, 0)
    assert rev.payload == {}
    assert rev.payload_hash == article_payload_hash({})
    assert any("scrape_failed" in r.getMessage() for r in caplog.records)


def test_name_and_ownership_changes(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = ContentProcessor(persisters, routes=routes)
    proc.process(make_event(NEWSROOM_CONTRACT, "_NameChanged", {"NewName": "The Daily"}, address=NEWSROOM))
    proc.process(
        make_event(
            NEWSROOM_CONTRACT,
            "_OwnershipTransferred",
            {"PreviousOwner": EDITOR, "NewOwner": NEW_OWNER},
            address=NEWSROOM,
        )
    )

    listing = persisters.listings.by_id(NEWSROOM)
    assert listing.name == "The Daily"
    assert listing.owner_addresses == (NEW_OWNER,)


def test_payload_hash_ignores_key_order() -> None:
    a = article_payload_hash({"title": "x", "n": 1})
    b = article_payload_hash({"n": 1, "title": "x"})
    assert a == b
    assert a != article_payload_hash({"title": "y", "n": 1})
