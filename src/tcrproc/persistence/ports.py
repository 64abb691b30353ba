"""Persistence port contracts consumed by the processors.

Every lookup raises NoResultsError on an empty result. Updates take a Patch
and write only the fields it names.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Protocol, Sequence, Set

from tcrproc.model import (
    Appeal,
    AppealPatch,
    Challenge,
    ChallengeCriteria,
    ChallengePatch,
    ContentRevision,
    ContentRevisionCriteria,
    GovernanceEvent,
    GovernanceEventCriteria,
    GovernanceEventPatch,
    GovernmentParameterProposal,
    GovernmentParameterProposalPatch,
    Listing,
    ListingCriteria,
    ListingPatch,
    MultiSig,
    MultiSigOwner,
    MultiSigPatch,
    Parameter,
    ParameterProposal,
    ParameterProposalPatch,
    Poll,
    PollPatch,
    TokenMovementCriteria,
    TokenPurchase,
    TokenTransfer,
)

Json = Dict[str, Any]


class DocumentStore(Protocol):
    """Keyed JSON document storage shared by all persisters.

    `index` is one optional secondary lookup value per document.
    """

    def get(self, kind: str, key: str) -> Json: ...

    def insert(self, kind: str, key: str, doc: Json, *, index: str = "") -> None: ...

    def put(self, kind: str, key: str, doc: Json, *, index: str = "") -> None: ...

    def update(self, kind: str, key: str, fn: Callable[[Json], Json]) -> Json: ...

    def delete(self, kind: str, key: str) -> bool: ...

    def find(self, kind: str, index: str) -> List[Json]: ...

    def scan(self, kind: str) -> List[Json]: ...

    def close(self) -> None: ...


class ListingPersister(Protocol):
    def by_id(self, address: str) -> Listing: ...

    def by_ids(self, addresses: Sequence[str]) -> List[Listing]: ...

    def by_criteria(self, criteria: ListingCriteria, *, now_ts: int = 0) -> List[Listing]: ...

    def create(self, listing: Listing) -> None: ...

    def update(self, address: str, patch: ListingPatch) -> Listing: ...

    def delete(self, address: str) -> None: ...

    def close(self) -> None: ...


class ChallengePersister(Protocol):
    def by_id(self, challenge_id: int) -> Challenge: ...

    def by_ids(self, challenge_ids: Sequence[int]) -> List[Challenge]: ...

    def by_criteria(self, criteria: ChallengeCriteria) -> List[Challenge]: ...

    def create(self, challenge: Challenge) -> None: ...

    def update(self, challenge_id: int, patch: ChallengePatch) -> Challenge: ...

    def delete(self, challenge_id: int) -> None: ...

    def close(self) -> None: ...


class PollPersister(Protocol):
    def by_id(self, poll_id: int) -> Poll: ...

    def by_ids(self, poll_ids: Sequence[int]) -> List[Poll]: ...

    def create(self, poll: Poll) -> None: ...

    def update(self, poll_id: int, patch: PollPatch) -> Poll: ...

    def add_votes(self, poll_id: int, votes_for: int, votes_against: int, *, event_hash: str = "") -> Poll: ...

    def delete(self, poll_id: int) -> None: ...

    def close(self) -> None: ...


class AppealPersister(Protocol):
    def by_id(self, challenge_id: int) -> Appeal: ...

    def create(self, appeal: Appeal) -> None: ...

    def update(self, challenge_id: int, patch: AppealPatch) -> Appeal: ...

    def delete(self, challenge_id: int) -> None: ...

    def close(self) -> None: ...


class ParameterProposalPersister(Protocol):
    def by_id(self, prop_id: str) -> ParameterProposal: ...

    def by_name(self, name: str, *, open_only: bool = False) -> List[ParameterProposal]: ...

    def create(self, proposal: ParameterProposal) -> None: ...

    def update(self, prop_id: str, patch: ParameterProposalPatch) -> ParameterProposal: ...

    def delete(self, prop_id: str) -> None: ...

    def close(self) -> None: ...


class GovernmentParameterProposalPersister(Protocol):
    def by_id(self, prop_id: str) -> GovernmentParameterProposal: ...

    def create(self, proposal: GovernmentParameterProposal) -> None: ...

    def update(self, prop_id: str, patch: GovernmentParameterProposalPatch) -> GovernmentParameterProposal: ...

    def delete(self, prop_id: str) -> None: ...

    def close(self) -> None: ...


class ParameterPersister(Protocol):
    def by_id(self, name: str) -> Parameter: ...

    def all(self) -> List[Parameter]: ...

    def put(self, parameter: Parameter) -> None: ...

    def close(self) -> None: ...


class TokenPurchasePersister(Protocol):
    def by_to_address(self, to_address: str) -> List[TokenPurchase]: ...

    def by_criteria(self, criteria: TokenMovementCriteria) -> List[TokenPurchase]: ...

    def create(self, purchase: TokenPurchase) -> None: ...

    def close(self) -> None: ...


class TokenTransferPersister(Protocol):
    def by_to_address(self, to_address: str) -> List[TokenTransfer]: ...

    def by_criteria(self, criteria: TokenMovementCriteria) -> List[TokenTransfer]: ...

    def create(self, transfer: TokenTransfer) -> None: ...

    def close(self) -> None: ...


class MultiSigPersister(Protocol):
    def by_id(self, contract_address: str) -> MultiSig: ...

    def create(self, multisig: MultiSig) -> None: ...

    def update(self, contract_address: str, patch: MultiSigPatch) -> MultiSig: ...

    def delete(self, contract_address: str) -> None: ...

    def close(self) -> None: ...


class MultiSigOwnerPersister(Protocol):
    def by_id(self, key: str) -> MultiSigOwner: ...

    def by_multisig(self, multisig_address: str) -> List[MultiSigOwner]: ...

    def create(self, owner: MultiSigOwner) -> None: ...

    def delete(self, key: str) -> None: ...

    def close(self) -> None: ...


class ContentRevisionPersister(Protocol):
    def by_id(self, listing_address: str, content_id: int, revision_id: int) -> ContentRevision: ...

    def by_criteria(self, criteria: ContentRevisionCriteria) -> List[ContentRevision]: ...

    def create(self, revision: ContentRevision) -> None: ...

    def delete(self, listing_address: str, content_id: int, revision_id: int) -> None: ...

    def close(self) -> None: ...


class GovernanceEventPersister(Protocol):
    def by_id(self, event_hash: str) -> GovernanceEvent: ...

    def by_criteria(self, criteria: GovernanceEventCriteria) -> List[GovernanceEvent]: ...

    def create(self, event: GovernanceEvent) -> None: ...

    def update(self, event_hash: str, patch: GovernanceEventPatch) -> GovernanceEvent: ...

    def delete(self, event_hash: str) -> None: ...

    def close(self) -> None: ...


class CronPersister(Protocol):
    def last_timestamp(self) -> int: ...

    def event_hashes_at_last_timestamp(self) -> Set[str]: ...

    def update_watermark(self, timestamp: int, event_hashes: Set[str]) -> None: ...

    def close(self) -> None: ...

