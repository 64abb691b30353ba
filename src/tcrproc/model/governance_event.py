from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Union

from tcrproc.model.coerce import as_int, as_str
from tcrproc.model.event import BlockData
from tcrproc.model.patch import UNSET, Patch, Unset

Json = Dict[str, Any]


@dataclass(frozen=True)
class GovernanceEvent:
    """Append-only audit record of one registry action on a listing.

    Keyed by the source event hash so a replayed log never appends twice.
    """

    event_hash: str
    listing_address: str
    governance_event_type: str
    sender_address: str = ""
    metadata: Json = field(default_factory=dict)
    creation_date_ts: int = 0
    last_updated_date_ts: int = 0
    block_data: BlockData = field(default_factory=BlockData)

    def to_json(self) -> Json:
        return {
            "event_hash": self.event_hash,
            "listing_address": self.listing_address,
            "governance_event_type": self.governance_event_type,
            "sender_address": self.sender_address,
            "metadata": dict(self.metadata),
            "creation_date_ts": int(self.creation_date_ts),
            "last_updated_date_ts": int(self.last_updated_date_ts),
            "block_data": self.block_data.to_json(),
        }

    @staticmethod
    def from_json(obj: Json) -> "GovernanceEvent":
        meta = obj.get("metadata")
        return GovernanceEvent(
            event_hash=as_str(obj.get("event_hash")),
            listing_address=as_str(obj.get("listing_address")),
            governance_event_type=as_str(obj.get("governance_event_type")),
            sender_address=as_str(obj.get("sender_address")),
            metadata=dict(meta) if isinstance(meta, dict) else {},
            creation_date_ts=as_int(obj.get("creation_date_ts")),
            last_updated_date_ts=as_int(obj.get("last_updated_date_ts")),
            block_data=BlockData.from_json(obj.get("block_data")),
        )


@dataclass(frozen=True)
class GovernanceEventPatch(Patch):
    last_updated_date_ts: Union[int, Unset] = UNSET
