from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

Json = Dict[str, Any]


def normalize_event_name(name: str) -> str:
    """Strip the source naming markers (leading/trailing spaces and underscores)."""
    return str(name or "").strip(" _")


def _json_default(v: Any) -> Any:
    if isinstance(v, (bytes, bytearray)):
        return "0x" + bytes(v).hex()
    raise TypeError(f"not JSON serializable: {type(v).__name__}")


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def _as_int(v: Any) -> int:
    if v is None or v == "":
        return 0
    if isinstance(v, str) and v.lower().startswith("0x"):
        return int(v, 16)
    return int(v)


@dataclass(frozen=True)
class BlockData:
    """Transaction provenance for a persisted record."""

    block_number: int = 0
    tx_hash: str = ""
    tx_index: int = 0
    block_hash: str = ""
    index: int = 0

    def to_json(self) -> Json:
        return {
            "block_number": int(self.block_number),
            "tx_hash": self.tx_hash,
            "tx_index": int(self.tx_index),
            "block_hash": self.block_hash,
            "index": int(self.index),
        }

    @staticmethod
    def from_json(obj: Optional[Json]) -> "BlockData":
        if not isinstance(obj, dict):
            return BlockData()
        return BlockData(
            block_number=_as_int(obj.get("block_number")),
            tx_hash=str(obj.get("tx_hash") or ""),
            tx_index=_as_int(obj.get("tx_index")),
            block_hash=str(obj.get("block_hash") or ""),
            index=_as_int(obj.get("index")),
        )


@dataclass(frozen=True)
class Event:
    """One decoded contract log event as delivered by the upstream source.

    `payload` is the loosely-typed field map; processors decode it through a
    payload schema before touching any value.
    """

    event_type: str
    contract_name: str
    contract_address: str
    timestamp: int
    payload: Json = field(default_factory=dict)
    block_number: int = 0
    tx_hash: str = ""
    tx_index: int = 0
    block_hash: str = ""
    log_index: int = 0
    event_hash: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "contract_address", str(self.contract_address or "").strip().lower())
        if not self.event_hash:
            object.__setattr__(self, "event_hash", self.compute_hash())

    @property
    def name(self) -> str:
        return normalize_event_name(self.event_type)

    def compute_hash(self) -> str:
        body = {
            "event_type": self.event_type,
            "contract_address": self.contract_address,
            "tx_hash": self.tx_hash,
            "block_hash": self.block_hash,
            "log_index": int(self.log_index),
            "payload": self.payload,
        }
        return hashlib.sha256(canonical_json(body).encode("utf-8")).hexdigest()

    def block_data(self) -> BlockData:
        return BlockData(
            block_number=int(self.block_number),
            tx_hash=self.tx_hash,
            tx_index=int(self.tx_index),
            block_hash=self.block_hash,
            index=int(self.log_index),
        )

    def to_json(self) -> Json:
        return {
            "event_type": self.event_type,
            "contract_name": self.contract_name,
            "contract_address": self.contract_address,
            "timestamp": int(self.timestamp),
            "payload": dict(self.payload),
            "block_number": int(self.block_number),
            "tx_hash": self.tx_hash,
            "tx_index": int(self.tx_index),
            "block_hash": self.block_hash,
            "log_index": int(self.log_index),
            "event_hash": self.event_hash,
        }

    @staticmethod
    def from_json(obj: Json) -> "Event":
        if not isinstance(obj, dict):
            raise ValueError("event must be an object")
        event_type = str(obj.get("event_type") or obj.get("eventType") or "").strip()
        contract_name = str(obj.get("contract_name") or obj.get("contractName") or "").strip()
        if not event_type or not contract_name:
            raise ValueError("event_type and contract_name are required")
        payload = obj.get("payload")
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValueError("payload must be an object")
        return Event(
            event_type=event_type,
            contract_name=contract_name,
            contract_address=str(obj.get("contract_address") or obj.get("contractAddress") or ""),
            timestamp=_as_int(obj.get("timestamp")),
            payload=dict(payload),
            block_number=_as_int(obj.get("block_number")),
            tx_hash=str(obj.get("tx_hash") or ""),
            tx_index=_as_int(obj.get("tx_index")),
            block_hash=str(obj.get("block_hash") or ""),
            log_index=_as_int(obj.get("log_index")),
            event_hash=str(obj.get("event_hash") or obj.get("hash") or ""),
        )
