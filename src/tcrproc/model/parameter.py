from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from tcrproc.errors import conflict
from tcrproc.model.coerce import as_bool, as_int, as_str, opt_int
from tcrproc.model.patch import UNSET, Patch, Unset

Json = Dict[str, Any]


def _check_terminal(entity: Any, accepted: Any, expired: Any) -> None:
    # accepted and expired are mutually exclusive terminal states
    if accepted is True and entity.expired:
        raise conflict("proposal_already_expired", prop_id=entity.prop_id)
    if expired is True and entity.accepted:
        raise conflict("proposal_already_accepted", prop_id=entity.prop_id)
    if accepted is False and entity.accepted:
        raise conflict("proposal_acceptance_is_final", prop_id=entity.prop_id)
    if expired is False and entity.expired:
        raise conflict("proposal_expiry_is_final", prop_id=entity.prop_id)


@dataclass(frozen=True)
class ParameterProposal:
    prop_id: str
    name: str = ""
    value: int = 0
    deposit: int = 0
    app_expiry: int = 0
    challenge_id: Optional[int] = None
    proposer: str = ""
    accepted: bool = False
    expired: bool = False
    last_updated_ts: int = 0

    @property
    def is_open(self) -> bool:
        return not (self.accepted or self.expired)

    def to_json(self) -> Json:
        return {
            "prop_id": self.prop_id,
            "name": self.name,
            "value": int(self.value),
            "deposit": int(self.deposit),
            "app_expiry": int(self.app_expiry),
            "challenge_id": self.challenge_id,
            "proposer": self.proposer,
            "accepted": bool(self.accepted),
            "expired": bool(self.expired),
            "last_updated_ts": int(self.last_updated_ts),
        }

    @staticmethod
    def from_json(obj: Json) -> "ParameterProposal":
        return ParameterProposal(
            prop_id=as_str(obj.get("prop_id")),
            name=as_str(obj.get("name")),
            value=as_int(obj.get("value")),
            deposit=as_int(obj.get("deposit")),
            app_expiry=as_int(obj.get("app_expiry")),
            challenge_id=opt_int(obj.get("challenge_id")),
            proposer=as_str(obj.get("proposer")),
            accepted=as_bool(obj.get("accepted")),
            expired=as_bool(obj.get("expired")),
            last_updated_ts=as_int(obj.get("last_updated_ts")),
        )


@dataclass(frozen=True)
class ParameterProposalPatch(Patch):
    challenge_id: Union[Optional[int], Unset] = UNSET
    accepted: Union[bool, Unset] = UNSET
    expired: Union[bool, Unset] = UNSET
    last_updated_ts: Union[int, Unset] = UNSET

    def check(self, entity: Any) -> None:
        _check_terminal(entity, self.accepted, self.expired)


@dataclass(frozen=True)
class GovernmentParameterProposal:
    prop_id: str
    name: str = ""
    value: int = 0
    app_expiry: int = 0
    poll_id: int = 0
    accepted: bool = False
    expired: bool = False
    last_updated_ts: int = 0

    @property
    def is_open(self) -> bool:
        return not (self.accepted or self.expired)

    def to_json(self) -> Json:
        return {
            "prop_id": self.prop_id,
            "name": self.name,
            "value": int(self.value),
            "app_expiry": int(self.app_expiry),
            "poll_id": int(self.poll_id),
            "accepted": bool(self.accepted),
            "expired": bool(self.expired),
            "last_updated_ts": int(self.last_updated_ts),
        }

    @staticmethod
    def from_json(obj: Json) -> "GovernmentParameterProposal":
        return GovernmentParameterProposal(
            prop_id=as_str(obj.get("prop_id")),
            name=as_str(obj.get("name")),
            value=as_int(obj.get("value")),
            app_expiry=as_int(obj.get("app_expiry")),
            poll_id=as_int(obj.get("poll_id")),
            accepted=as_bool(obj.get("accepted")),
            expired=as_bool(obj.get("expired")),
            last_updated_ts=as_int(obj.get("last_updated_ts")),
        )


@dataclass(frozen=True)
class GovernmentParameterProposalPatch(Patch):
    accepted: Union[bool, Unset] = UNSET
    expired: Union[bool, Unset] = UNSET
    last_updated_ts: Union[int, Unset] = UNSET

    def check(self, entity: Any) -> None:
        _check_terminal(entity, self.accepted, self.expired)


@dataclass(frozen=True)
class Parameter:
    """Current value of a named parameter. Used for both the parameterizer and the government."""

    name: str
    value: int = 0
    last_updated_ts: int = 0

    def to_json(self) -> Json:
        return {"name": self.name, "value": int(self.value), "last_updated_ts": int(self.last_updated_ts)}

    @staticmethod
    def from_json(obj: Json) -> "Parameter":
        return Parameter(
            name=as_str(obj.get("name")),
            value=as_int(obj.get("value")),
            last_updated_ts=as_int(obj.get("last_updated_ts")),
        )
