from __future__ import annotations

from decimal import Decimal
from typing import Callable

from tcrproc.contracts import TOKEN_CONTRACT
from tcrproc.model import Event
from tcrproc.persistence import Persisters
from tcrproc.processor import TokenProcessor
from tcrproc.routing import EventRoutes

SELLER = "0x" + "c1" * 20
BUYER = "0x" + "c2" * 20


def _transfer(make_event: Callable[..., Event], value: int, ts: int = 100, **kw) -> Event:
    return make_event(TOKEN_CONTRACT, "Transfer", {"From": SELLER, "To": BUYER, "Value": value}, ts=ts, **kw)


def test_transfer_records_purchase_and_transfer(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = TokenProcessor(persisters, routes=routes)
    ev = _transfer(make_event, 3 * 10**18)
    proc.process(ev)

    [purchase] = persisters.token_purchases.by_to_address(BUYER)
    assert purchase.purchaser_address == BUYER
    assert purchase.source_address == SELLER
    assert purchase.amount_in_token() == Decimal(3)

    [transfer] = persisters.token_transfers.by_to_address(BUYER)
    assert transfer.event_hash == ev.event_hash
    assert transfer.block_data.tx_hash == ev.tx_hash


def test_redelivered_transfer_is_stored_once(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = TokenProcessor(persisters, routes=routes)
    # same movement arriving from a second log position
    proc.process(_transfer(make_event, 10, tx_hash="0x" + "01" * 32, log_index=1))
    proc.process(_transfer(make_event, 10, tx_hash="0x" + "02" * 32, log_index=4))

    assert len(persisters.token_purchases.by_to_address(BUYER)) == 1
    assert len(persisters.token_transfers.by_to_address(BUYER)) == 1


def test_distinct_movements_are_kept(
    persisters: Persisters, routes: EventRoutes, make_event: Callable[..., Event]
) -> None:
    proc = TokenProcessor(persisters, routes=routes)
    proc.process(_transfer(make_event, 10, ts=100))
    proc.process(_transfer(make_event, 10, ts=101))
    proc.process(_transfer(make_event, 11, ts=101))

    assert len(persisters.token_purchases.by_to_address(BUYER)) == 3
    assert len(persisters.token_transfers.by_to_address(BUYER)) == 3
