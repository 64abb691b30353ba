# src/tcrproc/processor/content.py
from __future__ import annotations

import logging
from typing import Optional

from tcrproc.contracts import FAMILY_CONTENT
from tcrproc.errors import NoResultsError
from tcrproc.model import ArticlePayload, Charter, ContentRevision, Event, Listing, ListingPatch
from tcrproc.model.content import CHARTER_CONTENT_ID, PayloadHasher, article_payload_hash
from tcrproc.payloads import NameChangedPayload, OwnershipTransferredPayload, RevisionUpdatedPayload
from tcrproc.persistence import Persisters
from tcrproc.processor.base import DomainProcessor
from tcrproc.routing import EventRoutes
from tcrproc.scraper import ContentScraper, MetadataScraper, NullScraper
from tcrproc.structured_logging import log_event


def _listing_for(p: "ContentProcessor", address: str, ts: int) -> Listing:
    """Newsroom events may arrive before the TCR application; create a bare listing then."""
    listings = p.persisters.listings
    try:
        return listings.by_id(address)
    except NoResultsError:
        listing = Listing(address=address, created_ts=int(ts), last_updated_ts=int(ts))
        listings.create(listing)
        return listing


def _revision_updated(p: "ContentProcessor", ev: Event, pl: RevisionUpdatedPayload) -> None:
    ts = int(ev.timestamp)
    address = ev.contract_address
    listing = _listing_for(p, address, ts)
    revisions = p.persisters.content_revisions

    try:
        revision = revisions.by_id(address, pl.content_id, pl.revision_id)
    except NoResultsError:
        payload = p.article_payload(pl.uri, event_hash=ev.event_hash)
        revision = ContentRevision(
            listing_address=address,
            content_id=int(pl.content_id),
            revision_id=int(pl.revision_id),
            editor_address=pl.editor,
            payload=payload,
            payload_hash=p.hasher(payload),
            revision_uri=pl.uri,
            revision_date_ts=ts,
            event_hash=ev.event_hash,
        )
        revisions.create(revision)

    changes = {}
    if pl.editor not in listing.contributor_addresses:
        changes["contributor_addresses"] = listing.contributor_addresses + (pl.editor,)
    if int(pl.content_id) == CHARTER_CONTENT_ID:
        charter = Charter(
            uri=pl.uri,
            content_id=CHARTER_CONTENT_ID,
            revision_id=int(pl.revision_id),
            author=pl.editor,
            content_hash=revision.payload_hash,
            timestamp=revision.revision_date_ts,
        )
        if listing.charter != charter:
            changes["charter"] = charter
    if changes:
        p.persisters.listings.update(address, ListingPatch(last_updated_ts=ts, **changes))


def _name_changed(p: "ContentProcessor", ev: Event, pl: NameChangedPayload) -> None:
    listing = _listing_for(p, ev.contract_address, ev.timestamp)
    if listing.name != pl.new_name:
        p.persisters.listings.update(
            ev.contract_address, ListingPatch(name=pl.new_name, last_updated_ts=int(ev.timestamp))
        )


def _ownership_transferred(p: "ContentProcessor", ev: Event, pl: OwnershipTransferredPayload) -> None:
    listing = _listing_for(p, ev.contract_address, ev.timestamp)
    owners = tuple(o for o in listing.owner_addresses if o != pl.previous_owner)
    if pl.new_owner not in owners:
        owners = owners + (pl.new_owner,)
    if owners != listing.owner_addresses:
        p.persisters.listings.update(
            ev.contract_address, ListingPatch(owner_addresses=owners, last_updated_ts=int(ev.timestamp))
        )


_HANDLERS = {
    "RevisionUpdated": _revision_updated,
    "NameChanged": _name_changed,
    "OwnershipTransferred": _ownership_transferred,
}


class ContentProcessor(DomainProcessor):
    """Newsroom content: revisions, the charter, name and ownership."""

    family = FAMILY_CONTENT
    _HANDLERS = _HANDLERS

    def __init__(
        self,
        persisters: Persisters,
        *,
        routes: EventRoutes,
        metadata_scraper: Optional[MetadataScraper] = None,
        content_scraper: Optional[ContentScraper] = None,
        hasher: PayloadHasher = article_payload_hash,
    ) -> None:
        super().__init__(persisters, routes=routes)
        self.metadata_scraper: MetadataScraper = metadata_scraper or NullScraper()
        self.content_scraper = content_scraper
        self.hasher = hasher

    def article_payload(self, uri: str, *, event_hash: str = "") -> ArticlePayload:
        """Scraped metadata for a revision URI. Scraping is best effort: failures yield {}."""
        try:
            payload = self.metadata_scraper.scrape_metadata(uri).to_payload()
            if self.content_scraper is not None:
                content = self.content_scraper.scrape_content(uri)
                if content.text:
                    payload.setdefault("text", content.text)
                if content.author:
                    payload.setdefault("author", content.author)
        except Exception as e:
            log_event(
                self.log,
                "scrape_failed",
                level=logging.WARNING,
                uri=uri,
                event_hash=event_hash,
                error=f"{type(e).__name__}:{e}",
            )
            return {}
        return payload
