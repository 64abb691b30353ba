from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

from tcrproc.model.coerce import as_str, as_str_tuple
from tcrproc.model.patch import UNSET, Patch, Unset

Json = Dict[str, Any]


def owner_key(owner_address: str, multisig_address: str) -> str:
    return f"{owner_address}-{multisig_address}"


@dataclass(frozen=True)
class MultiSig:
    contract_address: str
    owner_addresses: Tuple[str, ...] = ()

    def with_owner(self, owner: str) -> Tuple[str, ...]:
        if owner in self.owner_addresses:
            return self.owner_addresses
        return self.owner_addresses + (owner,)

    def without_owner(self, owner: str) -> Tuple[str, ...]:
        return tuple(o for o in self.owner_addresses if o != owner)

    def to_json(self) -> Json:
        return {"contract_address": self.contract_address, "owner_addresses": list(self.owner_addresses)}

    @staticmethod
    def from_json(obj: Json) -> "MultiSig":
        return MultiSig(
            contract_address=as_str(obj.get("contract_address")),
            owner_addresses=as_str_tuple(obj.get("owner_addresses")),
        )


@dataclass(frozen=True)
class MultiSigPatch(Patch):
    owner_addresses: Union[Tuple[str, ...], Unset] = UNSET


@dataclass(frozen=True)
class MultiSigOwner:
    owner_address: str
    multisig_address: str

    @property
    def key(self) -> str:
        return owner_key(self.owner_address, self.multisig_address)

    def to_json(self) -> Json:
        return {"key": self.key, "owner_address": self.owner_address, "multisig_address": self.multisig_address}

    @staticmethod
    def from_json(obj: Json) -> "MultiSigOwner":
        return MultiSigOwner(
            owner_address=as_str(obj.get("owner_address")),
            multisig_address=as_str(obj.get("multisig_address")),
        )
