# src/tcrproc/runtime.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from tcrproc.config import ProcessorConfig
from tcrproc.engine import EventProcessor
from tcrproc.persistence import Persisters, persisters_for_path
from tcrproc.processor import build_processors
from tcrproc.publisher import Publisher, build_publisher
from tcrproc.routing import EventRoutes, load_event_routes
from tcrproc.scraper import MetadataScraper, build_metadata_scraper
from tcrproc.source import EventSource, InMemoryEventSource, JsonlEventSource
from tcrproc.structured_logging import log_event

log = logging.getLogger("tcrproc.runtime")


@dataclass
class Runtime:
    """Everything a processing run needs, wired from one config."""

    cfg: ProcessorConfig
    persisters: Persisters
    routes: EventRoutes
    publisher: Optional[Publisher]
    engine: EventProcessor
    source: EventSource

    def close(self) -> None:
        self.persisters.close()


def build_runtime(
    cfg: ProcessorConfig,
    *,
    persisters: Optional[Persisters] = None,
    source: Optional[EventSource] = None,
    publisher: Optional[Publisher] = None,
    metadata_scraper: Optional[MetadataScraper] = None,
) -> Runtime:
    routes = load_event_routes(cfg.event_routes_path or None)
    pers = persisters if persisters is not None else persisters_for_path(cfg.db_path)
    pub = publisher if publisher is not None else build_publisher(cfg.publisher)
    scraper = metadata_scraper or build_metadata_scraper(cfg.metadata_scraper, timeout_s=cfg.scraper_timeout_s)

    processors = build_processors(
        pers,
        routes=routes,
        publisher=pub,
        multisig_topic=cfg.multisig_topic,
        metadata_scraper=scraper,
    )
    engine = EventProcessor(processors, publisher=pub, events_topic=cfg.events_topic, routes=routes)

    if source is None:
        source = JsonlEventSource(cfg.events_path) if cfg.events_path else InMemoryEventSource()

    log_event(
        log,
        "runtime_built",
        mode=cfg.mode,
        db_path=cfg.db_path or ":memory:",
        events_path=cfg.events_path,
        routes=routes.source,
        publisher=cfg.publisher,
        events_topic=cfg.events_topic,
        multisig_topic=cfg.multisig_topic,
    )
    return Runtime(cfg=cfg, persisters=pers, routes=routes, publisher=pub, engine=engine, source=source)
