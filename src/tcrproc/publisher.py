from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Protocol, Tuple

from tcrproc.structured_logging import log_event

Json = Dict[str, Any]

log = logging.getLogger("tcrproc.pubsub")


class Publisher(Protocol):
    def publish(self, topic: str, message: Json) -> None: ...


class InMemoryPublisher:
    """Keeps every published (topic, message) pair. Optionally fails on demand."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.messages: List[Tuple[str, Json]] = []
        self.fail_with: Optional[Exception] = None

    def publish(self, topic: str, message: Json) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.messages.append((str(topic), dict(message)))

    def for_topic(self, topic: str) -> List[Json]:
        with self._lock:
            return [m for t, m in self.messages if t == topic]


class LogPublisher:
    """Writes each message as a structured `pubsub_publish` log line."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._log = logger or log

    def publish(self, topic: str, message: Json) -> None:
        log_event(self._log, "pubsub_publish", topic=str(topic), message=dict(message))


def build_publisher(kind: str) -> Optional[Publisher]:
    k = str(kind or "").strip().lower()
    if k == "none":
        return None
    if k == "memory":
        return InMemoryPublisher()
    return LogPublisher()


def registry_event_message(tx_hash: str) -> Json:
    return {"txHash": str(tx_hash)}


def multisig_owner_message(action: str, owner_address: str, multisig_address: str) -> Json:
    return {"action": str(action), "ownerAddr": str(owner_address), "multiSigAddr": str(multisig_address)}
