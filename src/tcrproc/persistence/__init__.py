"""Persistence ports and the reference stores that implement them."""

from __future__ import annotations

from dataclasses import dataclass, fields

from tcrproc.errors import NoResultsError
from tcrproc.persistence.memory import MemoryStore
from tcrproc.persistence.ports import (
    AppealPersister,
    ChallengePersister,
    ContentRevisionPersister,
    CronPersister,
    DocumentStore,
    GovernanceEventPersister,
    GovernmentParameterProposalPersister,
    ListingPersister,
    MultiSigOwnerPersister,
    MultiSigPersister,
    ParameterPersister,
    ParameterProposalPersister,
    PollPersister,
    TokenPurchasePersister,
    TokenTransferPersister,
)
from tcrproc.persistence.repos import (
    AppealRepo,
    ChallengeRepo,
    ContentRevisionRepo,
    CronRepo,
    GovernanceEventRepo,
    GovernmentParameterProposalRepo,
    ListingRepo,
    MultiSigOwnerRepo,
    MultiSigRepo,
    ParameterProposalRepo,
    ParameterRepo,
    PollRepo,
    TokenPurchaseRepo,
    TokenTransferRepo,
)
from tcrproc.persistence.sqlite_store import SqliteStore


@dataclass
class Persisters:
    listings: ListingPersister
    challenges: ChallengePersister
    polls: PollPersister
    appeals: AppealPersister
    parameter_proposals: ParameterProposalPersister
    government_parameter_proposals: GovernmentParameterProposalPersister
    parameters: ParameterPersister
    government_parameters: ParameterPersister
    token_purchases: TokenPurchasePersister
    token_transfers: TokenTransferPersister
    multisigs: MultiSigPersister
    multisig_owners: MultiSigOwnerPersister
    content_revisions: ContentRevisionPersister
    governance_events: GovernanceEventPersister
    cron: CronPersister

    def close(self) -> None:
        for f in fields(self):
            getattr(self, f.name).close()


def build_persisters(store: DocumentStore) -> Persisters:
    polls = PollRepo(store)
    appeals = AppealRepo(store)
    return Persisters(
        listings=ListingRepo(store),
        challenges=ChallengeRepo(store, polls=polls, appeals=appeals),
        polls=polls,
        appeals=appeals,
        parameter_proposals=ParameterProposalRepo(store),
        government_parameter_proposals=GovernmentParameterProposalRepo(store),
        parameters=ParameterRepo(store, kind="parameter"),
        government_parameters=ParameterRepo(store, kind="government_parameter"),
        token_purchases=TokenPurchaseRepo(store),
        token_transfers=TokenTransferRepo(store),
        multisigs=MultiSigRepo(store),
        multisig_owners=MultiSigOwnerRepo(store),
        content_revisions=ContentRevisionRepo(store),
        governance_events=GovernanceEventRepo(store),
        cron=CronRepo(store),
    )


def memory_persisters() -> Persisters:
    return build_persisters(MemoryStore())


def sqlite_persisters(path: str) -> Persisters:
    return build_persisters(SqliteStore(path=path))


def persisters_for_path(db_path: str) -> Persisters:
    """In-memory when db_path is empty, SQLite otherwise."""
    if not str(db_path or "").strip():
        return memory_persisters()
    return sqlite_persisters(db_path)


__all__ = [
    "MemoryStore",
    "NoResultsError",
    "Persisters",
    "SqliteStore",
    "build_persisters",
    "memory_persisters",
    "persisters_for_path",
    "sqlite_persisters",
]
