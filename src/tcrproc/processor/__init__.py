"""Domain sub-processors, one per contract family."""

from __future__ import annotations

from typing import List, Optional

from tcrproc.persistence import Persisters
from tcrproc.processor.base import DomainProcessor
from tcrproc.processor.content import ContentProcessor
from tcrproc.processor.multisig import MultiSigProcessor
from tcrproc.processor.parameterizer import ParameterizerProcessor
from tcrproc.processor.registry import RegistryProcessor
from tcrproc.processor.token import TokenProcessor
from tcrproc.processor.voting import VotingProcessor
from tcrproc.publisher import Publisher
from tcrproc.routing import EventRoutes
from tcrproc.scraper import ContentScraper, MetadataScraper


def build_processors(
    persisters: Persisters,
    *,
    routes: EventRoutes,
    publisher: Optional[Publisher] = None,
    multisig_topic: str = "",
    metadata_scraper: Optional[MetadataScraper] = None,
    content_scraper: Optional[ContentScraper] = None,
) -> List[DomainProcessor]:
    """All six processors in dispatch priority order."""
    return [
        ContentProcessor(
            persisters,
            routes=routes,
            metadata_scraper=metadata_scraper,
            content_scraper=content_scraper,
        ),
        RegistryProcessor(persisters, routes=routes),
        VotingProcessor(persisters, routes=routes),
        ParameterizerProcessor(persisters, routes=routes),
        TokenProcessor(persisters, routes=routes),
        MultiSigProcessor(persisters, routes=routes, publisher=publisher, topic=multisig_topic),
    ]


__all__ = [
    "ContentProcessor",
    "DomainProcessor",
    "MultiSigProcessor",
    "ParameterizerProcessor",
    "RegistryProcessor",
    "TokenProcessor",
    "VotingProcessor",
    "build_processors",
]
