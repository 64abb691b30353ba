# src/tcrproc/processor/multisig.py
from __future__ import annotations

import logging
from typing import Optional

from tcrproc.contracts import FAMILY_MULTISIG
from tcrproc.errors import NoResultsError
from tcrproc.metrics import inc_counter
from tcrproc.model import Event, MultiSig, MultiSigOwner, MultiSigPatch
from tcrproc.model.multisig import owner_key
from tcrproc.payloads import ContractInstantiationPayload, OwnerChangedPayload
from tcrproc.persistence import Persisters
from tcrproc.processor.base import DomainProcessor
from tcrproc.publisher import Publisher, multisig_owner_message
from tcrproc.routing import EventRoutes
from tcrproc.structured_logging import log_event


def _multisig_for(p: "MultiSigProcessor", address: str) -> MultiSig:
    try:
        return p.persisters.multisigs.by_id(address)
    except NoResultsError:
        ms = MultiSig(contract_address=address)
        p.persisters.multisigs.create(ms)
        return ms


def _contract_instantiation(p: "MultiSigProcessor", ev: Event, pl: ContractInstantiationPayload) -> None:
    try:
        p.persisters.multisigs.by_id(pl.instantiation)
        return
    except NoResultsError:
        pass
    owners = tuple(dict.fromkeys(pl.owners))
    p.persisters.multisigs.create(MultiSig(contract_address=pl.instantiation, owner_addresses=owners))
    for owner in owners:
        try:
            p.persisters.multisig_owners.by_id(owner_key(owner, pl.instantiation))
        except NoResultsError:
            p.persisters.multisig_owners.create(MultiSigOwner(owner_address=owner, multisig_address=pl.instantiation))


def _owner_addition(p: "MultiSigProcessor", ev: Event, pl: OwnerChangedPayload) -> None:
    address = ev.contract_address
    ms = _multisig_for(p, address)
    try:
        p.persisters.multisig_owners.by_id(owner_key(pl.owner, address))
        return
    except NoResultsError:
        pass
    p.persisters.multisig_owners.create(MultiSigOwner(owner_address=pl.owner, multisig_address=address))
    p.persisters.multisigs.update(address, MultiSigPatch(owner_addresses=ms.with_owner(pl.owner)))
    p.publish_owner_change("added", pl.owner, address, event_hash=ev.event_hash)


def _owner_removal(p: "MultiSigProcessor", ev: Event, pl: OwnerChangedPayload) -> None:
    address = ev.contract_address
    try:
        p.persisters.multisig_owners.delete(owner_key(pl.owner, address))
    except NoResultsError:
        return
    try:
        ms = p.persisters.multisigs.by_id(address)
    except NoResultsError:
        ms = None
    if ms is not None:
        p.persisters.multisigs.update(address, MultiSigPatch(owner_addresses=ms.without_owner(pl.owner)))
    p.publish_owner_change("removed", pl.owner, address, event_hash=ev.event_hash)


_HANDLERS = {
    "ContractInstantiation": _contract_instantiation,
    "OwnerAddition": _owner_addition,
    "OwnerRemoval": _owner_removal,
}


class MultiSigProcessor(DomainProcessor):
    family = FAMILY_MULTISIG
    _HANDLERS = _HANDLERS

    def __init__(
        self,
        persisters: Persisters,
        *,
        routes: EventRoutes,
        publisher: Optional[Publisher] = None,
        topic: str = "",
    ) -> None:
        super().__init__(persisters, routes=routes)
        self.publisher = publisher
        self.topic = str(topic or "")

    def publish_owner_change(self, action: str, owner: str, multisig: str, *, event_hash: str = "") -> None:
        if not self.topic or self.publisher is None:
            return
        try:
            self.publisher.publish(self.topic, multisig_owner_message(action, owner, multisig))
        except Exception as e:
            inc_counter("multisig_publish_errors_total")
            log_event(
                self.log,
                "multisig_publish_failed",
                level=logging.WARNING,
                topic=self.topic,
                action=action,
                event_hash=event_hash,
                error=f"{type(e).__name__}:{e}",
            )
