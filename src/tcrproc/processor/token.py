# src/tcrproc/processor/token.py
from __future__ import annotations

from typing import List, Sequence

from tcrproc.contracts import FAMILY_TOKEN
from tcrproc.errors import NoResultsError
from tcrproc.model import Event, TokenPurchase, TokenTransfer
from tcrproc.payloads import TransferPayload
from tcrproc.processor.base import DomainProcessor
from tcrproc.structured_logging import log_event


def _existing(lookup, to_address: str) -> List:
    try:
        return list(lookup(to_address))
    except NoResultsError:
        return []


def _is_duplicate(candidate, existing: Sequence) -> bool:
    return any(candidate.same_movement(e) for e in existing)


def _transfer(p: "TokenProcessor", ev: Event, pl: TransferPayload) -> None:
    ts = int(ev.timestamp)
    block = ev.block_data()

    purchase = TokenPurchase(
        to_address=pl.to_address,
        from_address=pl.from_address,
        amount=int(pl.value),
        transfer_date=ts,
        block_data=block,
    )
    if _is_duplicate(purchase, _existing(p.persisters.token_purchases.by_to_address, pl.to_address)):
        log_event(p.log, "token_purchase_duplicate", to=pl.to_address, event_hash=ev.event_hash)
    else:
        p.persisters.token_purchases.create(purchase)

    transfer = TokenTransfer(
        to_address=pl.to_address,
        from_address=pl.from_address,
        amount=int(pl.value),
        transfer_date=ts,
        block_data=block,
        event_hash=ev.event_hash,
    )
    if _is_duplicate(transfer, _existing(p.persisters.token_transfers.by_to_address, pl.to_address)):
        log_event(p.log, "token_transfer_duplicate", to=pl.to_address, event_hash=ev.event_hash)
    else:
        p.persisters.token_transfers.create(transfer)


_HANDLERS = {"Transfer": _transfer}


class TokenProcessor(DomainProcessor):
    family = FAMILY_TOKEN
    _HANDLERS = _HANDLERS
