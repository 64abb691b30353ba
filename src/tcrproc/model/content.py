from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Tuple

from tcrproc.model.coerce import as_int, as_str
from tcrproc.model.event import canonical_json

Json = Dict[str, Any]

# Article metadata as scraped from the revision URI.
ArticlePayload = Dict[str, Any]

PayloadHasher = Callable[[ArticlePayload], str]

CHARTER_CONTENT_ID = 0


def article_payload_hash(payload: ArticlePayload) -> str:
    """Order-independent digest of an article payload.

    Each entry contributes `key + str(value)`; entries are sorted before
    hashing so the digest does not depend on map iteration order.
    """
    parts = sorted(f"{k}{v if isinstance(v, str) else canonical_json(v)}" for k, v in (payload or {}).items())
    return hashlib.sha256(canonical_json(parts).encode("utf-8")).hexdigest()


def revision_key(listing_address: str, content_id: int, revision_id: int) -> str:
    return f"{listing_address}:{int(content_id)}:{int(revision_id)}"


@dataclass(frozen=True)
class ContentRevision:
    listing_address: str
    content_id: int
    revision_id: int
    editor_address: str = ""
    payload: ArticlePayload = field(default_factory=dict)
    payload_hash: str = ""
    revision_uri: str = ""
    revision_date_ts: int = 0
    event_hash: str = ""

    @property
    def key(self) -> str:
        return revision_key(self.listing_address, self.content_id, self.revision_id)

    @property
    def identity(self) -> Tuple[str, int, int]:
        return (self.listing_address, int(self.content_id), int(self.revision_id))

    def to_json(self) -> Json:
        return {
            "listing_address": self.listing_address,
            "content_id": int(self.content_id),
            "revision_id": int(self.revision_id),
            "editor_address": self.editor_address,
            "payload": dict(self.payload),
            "payload_hash": self.payload_hash,
            "revision_uri": self.revision_uri,
            "revision_date_ts": int(self.revision_date_ts),
            "event_hash": self.event_hash,
        }

    @staticmethod
    def from_json(obj: Json) -> "ContentRevision":
        payload = obj.get("payload")
        return ContentRevision(
            listing_address=as_str(obj.get("listing_address")),
            content_id=as_int(obj.get("content_id")),
            revision_id=as_int(obj.get("revision_id")),
            editor_address=as_str(obj.get("editor_address")),
            payload=dict(payload) if isinstance(payload, dict) else {},
            payload_hash=as_str(obj.get("payload_hash")),
            revision_uri=as_str(obj.get("revision_uri")),
            revision_date_ts=as_int(obj.get("revision_date_ts")),
            event_hash=as_str(obj.get("event_hash")),
        )
