from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict

from tcrproc.model.coerce import as_int, as_str
from tcrproc.model.event import BlockData

Json = Dict[str, Any]

# Token amounts are stored in the smallest unit (18 decimals).
TOKEN_DIVISOR = 10**18


def to_token_units(amount: int) -> Decimal:
    return Decimal(int(amount)) / Decimal(TOKEN_DIVISOR)


@dataclass(frozen=True)
class _TokenMovement:
    to_address: str
    from_address: str
    amount: int
    transfer_date: int
    block_data: BlockData = field(default_factory=BlockData)

    def amount_in_token(self) -> Decimal:
        return to_token_units(self.amount)

    def same_movement(self, other: "_TokenMovement") -> bool:
        """Value equality on account pair, amount and timestamp."""
        return (
            self.to_address == other.to_address
            and self.from_address == other.from_address
            and int(self.amount) == int(other.amount)
            and int(self.transfer_date) == int(other.transfer_date)
        )

    def _base_json(self) -> Json:
        return {
            "to_address": self.to_address,
            "from_address": self.from_address,
            "amount": int(self.amount),
            "transfer_date": int(self.transfer_date),
            "block_data": self.block_data.to_json(),
        }


@dataclass(frozen=True)
class TokenPurchase(_TokenMovement):
    """A token movement into a purchaser account (`to_address`)."""

    @property
    def purchaser_address(self) -> str:
        return self.to_address

    @property
    def source_address(self) -> str:
        return self.from_address

    def to_json(self) -> Json:
        return self._base_json()

    @staticmethod
    def from_json(obj: Json) -> "TokenPurchase":
        return TokenPurchase(
            to_address=as_str(obj.get("to_address")),
            from_address=as_str(obj.get("from_address")),
            amount=as_int(obj.get("amount")),
            transfer_date=as_int(obj.get("transfer_date")),
            block_data=BlockData.from_json(obj.get("block_data")),
        )


@dataclass(frozen=True)
class TokenTransfer(_TokenMovement):
    event_hash: str = ""

    def to_json(self) -> Json:
        out = self._base_json()
        out["event_hash"] = self.event_hash
        return out

    @staticmethod
    def from_json(obj: Json) -> "TokenTransfer":
        return TokenTransfer(
            to_address=as_str(obj.get("to_address")),
            from_address=as_str(obj.get("from_address")),
            amount=as_int(obj.get("amount")),
            transfer_date=as_int(obj.get("transfer_date")),
            block_data=BlockData.from_json(obj.get("block_data")),
            event_hash=as_str(obj.get("event_hash")),
        )
