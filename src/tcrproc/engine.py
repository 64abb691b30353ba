# src/tcrproc/engine.py
from __future__ import annotations

"""
Dispatching engine.

Routes each event of a batch to the one processor whose family owns the
(contract, event name) pair, keeps going past per-event failures, and
publishes a notification for every registry event that was applied.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tcrproc.contracts import FAMILY_ORDER, FAMILY_REGISTRY
from tcrproc.errors import ConfigError
from tcrproc.metrics import inc_counter
from tcrproc.model import Event
from tcrproc.processor.base import DomainProcessor
from tcrproc.publisher import Publisher, registry_event_message
from tcrproc.routing import EventRoutes, verify_routes
from tcrproc.structured_logging import log_event

log = logging.getLogger("tcrproc.engine")


@dataclass(frozen=True)
class EventFailure:
    index: int
    event_hash: str
    event_type: str
    error: Exception


@dataclass(frozen=True)
class BatchResult:
    total: int = 0
    handled: int = 0
    skipped: int = 0
    published: int = 0
    errors: Tuple[EventFailure, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def last_error(self) -> Optional[Exception]:
        return self.errors[-1].error if self.errors else None

    def to_json(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "handled": self.handled,
            "skipped": self.skipped,
            "published": self.published,
            "errors": [
                {"index": f.index, "event_hash": f.event_hash, "event_type": f.event_type, "error": str(f.error)}
                for f in self.errors
            ],
        }


def _ordered(processors: Sequence[DomainProcessor]) -> List[DomainProcessor]:
    by_family: Dict[str, DomainProcessor] = {}
    for proc in processors:
        fam = str(proc.family or "")
        if fam not in FAMILY_ORDER:
            raise ConfigError(f"processor {type(proc).__name__} has unknown family {fam!r}")
        if fam in by_family:
            raise ConfigError(f"two processors registered for family {fam!r}")
        by_family[fam] = proc
    return [by_family[f] for f in FAMILY_ORDER if f in by_family]


class EventProcessor:
    """Applies batches of decoded events through the domain processors.

    A batch runs under `lock` from start to finish. Engines that must not
    interleave share one lock; independent engines each get their own.
    """

    def __init__(
        self,
        processors: Sequence[DomainProcessor],
        *,
        publisher: Optional[Publisher] = None,
        events_topic: str = "",
        lock: Optional[threading.Lock] = None,
        routes: Optional[EventRoutes] = None,
    ) -> None:
        ordered = _ordered(processors)
        if not ordered:
            raise ConfigError("event processor needs at least one domain processor")

        self.processors = ordered
        self.routes = routes or ordered[0].routes
        self.publisher = publisher
        self.events_topic = str(events_topic or "")
        self.lock = lock if lock is not None else threading.Lock()
        self._by_family = {p.family: p for p in ordered}

        verify_routes(self.routes, self._by_family.keys())
        for (contract, name), family in self.routes.by_key.items():
            if self._by_family[family].handler(contract, name) is None:
                raise ConfigError(f"{family} processor has no handler for routed event {contract}.{name}")

    def process(self, events: Sequence[Optional[Event]]) -> BatchResult:
        handled = skipped = published = 0
        errors: List[EventFailure] = []

        with self.lock:
            for i, ev in enumerate(events):
                if ev is None:
                    skipped += 1
                    log_event(log, "event_skipped_null", level=logging.DEBUG, index=i)
                    continue

                family = self.routes.family_for(ev.contract_name, ev.name)
                if family is None:
                    skipped += 1
                    inc_counter("events_unclaimed_total")
                    log_event(
                        log,
                        "event_unclaimed",
                        level=logging.DEBUG,
                        index=i,
                        event_type=ev.name,
                        contract=ev.contract_name,
                        event_hash=ev.event_hash,
                    )
                    continue

                try:
                    claimed = self._by_family[family].process(ev)
                except Exception as e:
                    errors.append(EventFailure(index=i, event_hash=ev.event_hash, event_type=ev.name, error=e))
                    inc_counter("events_failed_total")
                    log_event(
                        log,
                        "event_failed",
                        level=logging.ERROR,
                        index=i,
                        family=family,
                        event_type=ev.name,
                        contract=ev.contract_name,
                        event_hash=ev.event_hash,
                        error=f"{type(e).__name__}:{e}",
                    )
                    continue

                if not claimed:
                    skipped += 1
                    continue

                handled += 1
                inc_counter("events_processed_total")
                if family == FAMILY_REGISTRY and self._publish_registry_event(ev):
                    published += 1

        result = BatchResult(
            total=len(events),
            handled=handled,
            skipped=skipped,
            published=published,
            errors=tuple(errors),
        )
        log_event(
            log,
            "batch_processed",
            level=logging.INFO if result.total else logging.DEBUG,
            total=result.total,
            handled=result.handled,
            skipped=result.skipped,
            published=result.published,
            failed=len(result.errors),
        )
        return result

    def _publish_registry_event(self, ev: Event) -> bool:
        if not self.events_topic or self.publisher is None:
            return False
        try:
            self.publisher.publish(self.events_topic, registry_event_message(ev.tx_hash))
        except Exception as e:
            inc_counter("events_publish_errors_total")
            log_event(
                log,
                "event_publish_failed",
                level=logging.WARNING,
                topic=self.events_topic,
                event_hash=ev.event_hash,
                error=f"{type(e).__name__}:{e}",
            )
            return False
        inc_counter("events_published_total")
        return True
