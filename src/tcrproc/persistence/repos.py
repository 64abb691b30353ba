"""Persister implementations over a DocumentStore.

Each repository owns one document kind. Updates are field-level: the patch
is validated against the stored entity, then only the keys it names are
written back, inside the store's own read-modify-write transaction.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, List, Sequence, Set, TypeVar

from tcrproc.errors import NoResultsError
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
    Patch,
    Poll,
    PollPatch,
    TokenMovementCriteria,
    TokenPurchase,
    TokenTransfer,
)
from tcrproc.model.content import revision_key
from tcrproc.persistence.ports import DocumentStore

Json = Dict[str, Any]
E = TypeVar("E")


def _non_empty(kind: str, items: List[E], key: Any = None) -> List[E]:
    if not items:
        raise NoResultsError(kind, key)
    return items


class _Repo:
    kind = ""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def _patch(self, key: Any, patch: Patch, decode: Callable[[Json], E]) -> E:
        if not patch:
            return decode(self._store.get(self.kind, str(key)))
        return self._patch_with(key, lambda _current: patch, decode)

    def _patch_with(self, key: Any, make_patch: Callable[[E], Patch], decode: Callable[[Json], E]) -> E:
        """Build the patch from the stored entity and write its fields in one store transaction."""

        def _merge(doc: Json) -> Json:
            current = decode(doc)
            patch = make_patch(current)
            updated = patch.apply(current).to_json()  # type: ignore[attr-defined]
            out = dict(doc)
            for name in patch.changed_fields():
                out[name] = updated[name]
            return out

        return decode(self._store.update(self.kind, str(key), _merge))

    def delete(self, key: Any) -> None:
        if not self._store.delete(self.kind, str(key)):
            raise NoResultsError(self.kind, key)

    def close(self) -> None:
        self._store.close()


class ListingRepo(_Repo):
    kind = "listing"

    def by_id(self, address: str) -> Listing:
        return Listing.from_json(self._store.get(self.kind, address))

    def by_ids(self, addresses: Sequence[str]) -> List[Listing]:
        out: List[Listing] = []
        for addr in addresses:
            try:
                out.append(self.by_id(addr))
            except NoResultsError:
                continue
        return _non_empty(self.kind, out)

    def by_criteria(self, criteria: ListingCriteria, *, now_ts: int = 0) -> List[Listing]:
        listings = [Listing.from_json(d) for d in self._store.scan(self.kind)]
        return _non_empty(self.kind, criteria.select(listings, now_ts=now_ts))

    def create(self, listing: Listing) -> None:
        self._store.insert(self.kind, listing.address, listing.to_json())

    def update(self, address: str, patch: ListingPatch) -> Listing:
        return self._patch(address, patch, Listing.from_json)


class PollRepo(_Repo):
    kind = "poll"

    def by_id(self, poll_id: int) -> Poll:
        return Poll.from_json(self._store.get(self.kind, str(int(poll_id))))

    def by_ids(self, poll_ids: Sequence[int]) -> List[Poll]:
        out: List[Poll] = []
        for pid in poll_ids:
            try:
                out.append(self.by_id(pid))
            except NoResultsError:
                continue
        return _non_empty(self.kind, out)

    def create(self, poll: Poll) -> None:
        self._store.insert(self.kind, str(int(poll.poll_id)), poll.to_json())

    def update(self, poll_id: int, patch: PollPatch) -> Poll:
        return self._patch(int(poll_id), patch, Poll.from_json)

    def add_votes(self, poll_id: int, votes_for: int, votes_against: int, *, event_hash: str = "") -> Poll:
        """Add reveal deltas against the stored tallies.

        The dedup check and the increment share one store transaction, so a
        redelivered reveal is never counted twice.
        """
        return self._patch_with(
            int(poll_id),
            lambda poll: poll.add_votes(votes_for, votes_against, event_hash=event_hash),
            Poll.from_json,
        )


class AppealRepo(_Repo):
    kind = "appeal"

    def by_id(self, challenge_id: int) -> Appeal:
        return Appeal.from_json(self._store.get(self.kind, str(int(challenge_id))))

    def create(self, appeal: Appeal) -> None:
        self._store.insert(self.kind, str(int(appeal.original_challenge_id)), appeal.to_json())

    def update(self, challenge_id: int, patch: AppealPatch) -> Appeal:
        return self._patch(int(challenge_id), patch, Appeal.from_json)


class ChallengeRepo(_Repo):
    """Challenges joined with their poll (same id) and appeal (keyed by challenge id)."""

    kind = "challenge"

    def __init__(self, store: DocumentStore, *, polls: PollRepo, appeals: AppealRepo) -> None:
        super().__init__(store)
        self._polls = polls
        self._appeals = appeals

    def _join(self, challenge: Challenge) -> Challenge:
        poll = None
        appeal = None
        try:
            poll = self._polls.by_id(challenge.challenge_id)
        except NoResultsError:
            pass
        try:
            appeal = self._appeals.by_id(challenge.challenge_id)
        except NoResultsError:
            pass
        return replace(challenge, poll=poll, appeal=appeal)

    def by_id(self, challenge_id: int) -> Challenge:
        return self._join(Challenge.from_json(self._store.get(self.kind, str(int(challenge_id)))))

    def by_ids(self, challenge_ids: Sequence[int]) -> List[Challenge]:
        out: List[Challenge] = []
        for cid in challenge_ids:
            try:
                out.append(self.by_id(cid))
            except NoResultsError:
                continue
        return _non_empty(self.kind, out)

    def by_criteria(self, criteria: ChallengeCriteria) -> List[Challenge]:
        items = [Challenge.from_json(d) for d in self._store.scan(self.kind)]
        return _non_empty(self.kind, [self._join(c) for c in criteria.select(items)])

    def create(self, challenge: Challenge) -> None:
        self._store.insert(
            self.kind,
            str(int(challenge.challenge_id)),
            challenge.to_json(),
            index=challenge.listing_address,
        )

    def update(self, challenge_id: int, patch: ChallengePatch) -> Challenge:
        self._patch(int(challenge_id), patch, Challenge.from_json)
        return self.by_id(challenge_id)


class ParameterProposalRepo(_Repo):
    kind = "parameter_proposal"

    def by_id(self, prop_id: str) -> ParameterProposal:
        return ParameterProposal.from_json(self._store.get(self.kind, prop_id))

    def by_name(self, name: str, *, open_only: bool = False) -> List[ParameterProposal]:
        items = [ParameterProposal.from_json(d) for d in self._store.find(self.kind, name)]
        if open_only:
            items = [p for p in items if p.is_open]
        return _non_empty(self.kind, items, name)

    def create(self, proposal: ParameterProposal) -> None:
        self._store.insert(self.kind, proposal.prop_id, proposal.to_json(), index=proposal.name)

    def update(self, prop_id: str, patch: ParameterProposalPatch) -> ParameterProposal:
        return self._patch(prop_id, patch, ParameterProposal.from_json)


class GovernmentParameterProposalRepo(_Repo):
    kind = "government_parameter_proposal"

    def by_id(self, prop_id: str) -> GovernmentParameterProposal:
        return GovernmentParameterProposal.from_json(self._store.get(self.kind, prop_id))

    def create(self, proposal: GovernmentParameterProposal) -> None:
        self._store.insert(self.kind, proposal.prop_id, proposal.to_json(), index=proposal.name)

    def update(self, prop_id: str, patch: GovernmentParameterProposalPatch) -> GovernmentParameterProposal:
        return self._patch(prop_id, patch, GovernmentParameterProposal.from_json)


class ParameterRepo(_Repo):
    def __init__(self, store: DocumentStore, *, kind: str) -> None:
        super().__init__(store)
        self.kind = kind

    def by_id(self, name: str) -> Parameter:
        return Parameter.from_json(self._store.get(self.kind, name))

    def all(self) -> List[Parameter]:
        items = sorted((Parameter.from_json(d) for d in self._store.scan(self.kind)), key=lambda p: p.name)
        return _non_empty(self.kind, items)

    def put(self, parameter: Parameter) -> None:
        self._store.put(self.kind, parameter.name, parameter.to_json())


def _movement_key(m: Any) -> str:
    bd = m.block_data
    return f"{bd.tx_hash}:{bd.index}:{m.to_address}:{m.from_address}:{int(m.amount)}:{int(m.transfer_date)}"


class TokenPurchaseRepo(_Repo):
    kind = "token_purchase"

    def by_to_address(self, to_address: str) -> List[TokenPurchase]:
        items = [TokenPurchase.from_json(d) for d in self._store.find(self.kind, to_address)]
        return _non_empty(self.kind, items, to_address)

    def by_criteria(self, criteria: TokenMovementCriteria) -> List[TokenPurchase]:
        items = [TokenPurchase.from_json(d) for d in self._store.scan(self.kind)]
        return _non_empty(self.kind, criteria.select(items))

    def create(self, purchase: TokenPurchase) -> None:
        self._store.insert(self.kind, _movement_key(purchase), purchase.to_json(), index=purchase.to_address)


class TokenTransferRepo(_Repo):
    kind = "token_transfer"

    def by_to_address(self, to_address: str) -> List[TokenTransfer]:
        items = [TokenTransfer.from_json(d) for d in self._store.find(self.kind, to_address)]
        return _non_empty(self.kind, items, to_address)

    def by_criteria(self, criteria: TokenMovementCriteria) -> List[TokenTransfer]:
        items = [TokenTransfer.from_json(d) for d in self._store.scan(self.kind)]
        return _non_empty(self.kind, criteria.select(items))

    def create(self, transfer: TokenTransfer) -> None:
        self._store.insert(self.kind, _movement_key(transfer), transfer.to_json(), index=transfer.to_address)


class MultiSigRepo(_Repo):
    kind = "multisig"

    def by_id(self, contract_address: str) -> MultiSig:
        return MultiSig.from_json(self._store.get(self.kind, contract_address))

    def create(self, multisig: MultiSig) -> None:
        self._store.insert(self.kind, multisig.contract_address, multisig.to_json())

    def update(self, contract_address: str, patch: MultiSigPatch) -> MultiSig:
        return self._patch(contract_address, patch, MultiSig.from_json)


class MultiSigOwnerRepo(_Repo):
    kind = "multisig_owner"

    def by_id(self, key: str) -> MultiSigOwner:
        return MultiSigOwner.from_json(self._store.get(self.kind, key))

    def by_multisig(self, multisig_address: str) -> List[MultiSigOwner]:
        items = [MultiSigOwner.from_json(d) for d in self._store.find(self.kind, multisig_address)]
        items.sort(key=lambda o: o.owner_address)
        return _non_empty(self.kind, items, multisig_address)

    def create(self, owner: MultiSigOwner) -> None:
        self._store.insert(self.kind, owner.key, owner.to_json(), index=owner.multisig_address)


class ContentRevisionRepo(_Repo):
    kind = "content_revision"

    def by_id(self, listing_address: str, content_id: int, revision_id: int) -> ContentRevision:
        key = revision_key(listing_address, content_id, revision_id)
        return ContentRevision.from_json(self._store.get(self.kind, key))

    def by_criteria(self, criteria: ContentRevisionCriteria) -> List[ContentRevision]:
        if criteria.listing_address:
            docs = self._store.find(self.kind, criteria.listing_address)
        else:
            docs = self._store.scan(self.kind)
        return _non_empty(self.kind, criteria.select([ContentRevision.from_json(d) for d in docs]))

    def create(self, revision: ContentRevision) -> None:
        self._store.insert(self.kind, revision.key, revision.to_json(), index=revision.listing_address)

    def delete(self, listing_address: str, content_id: int, revision_id: int) -> None:  # type: ignore[override]
        super().delete(revision_key(listing_address, content_id, revision_id))


class GovernanceEventRepo(_Repo):
    kind = "governance_event"

    def by_id(self, event_hash: str) -> GovernanceEvent:
        return GovernanceEvent.from_json(self._store.get(self.kind, event_hash))

    def by_criteria(self, criteria: GovernanceEventCriteria) -> List[GovernanceEvent]:
        if criteria.listing_address:
            docs = self._store.find(self.kind, criteria.listing_address)
        else:
            docs = self._store.scan(self.kind)
        return _non_empty(self.kind, criteria.select([GovernanceEvent.from_json(d) for d in docs]))

    def create(self, event: GovernanceEvent) -> None:
        self._store.insert(self.kind, event.event_hash, event.to_json(), index=event.listing_address)

    def update(self, event_hash: str, patch: GovernanceEventPatch) -> GovernanceEvent:
        return self._patch(event_hash, patch, GovernanceEvent.from_json)


class CronRepo(_Repo):
    """Watermark: the newest processed timestamp and the event hashes seen at it."""

    kind = "cron"
    _KEY = "watermark"

    def _doc(self) -> Json:
        try:
            return self._store.get(self.kind, self._KEY)
        except NoResultsError:
            return {}

    def last_timestamp(self) -> int:
        return int(self._doc().get("last_timestamp") or 0)

    def event_hashes_at_last_timestamp(self) -> Set[str]:
        hashes = self._doc().get("event_hashes")
        return set(str(h) for h in hashes) if isinstance(hashes, list) else set()

    def update_watermark(self, timestamp: int, event_hashes: Set[str]) -> None:
        doc = {"last_timestamp": int(timestamp), "event_hashes": sorted(str(h) for h in event_hashes)}
        self._store.put(self.kind, self._KEY, doc)
