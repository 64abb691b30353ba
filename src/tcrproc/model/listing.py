from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from tcrproc.model.coerce import as_bool, as_int, as_str, as_str_tuple, opt_int
from tcrproc.model.patch import UNSET, Patch, Unset

Json = Dict[str, Any]


class GovernanceState(str, Enum):
    NONE = "none"
    APPLIED = "applied"
    CHALLENGED = "challenged"
    APP_WHITELISTED = "app_whitelisted"
    APP_REMOVED = "app_removed"
    REMOVED = "removed"
    WITHDRAWN = "withdrawn"

    CHALLENGE_FAILED = "challenge_failed"
    CHALLENGE_SUCCEEDED = "challenge_succeeded"
    FAILED_CHALLENGE_OVERTURNED = "failed_challenge_overturned"
    SUCCESSFUL_CHALLENGE_OVERTURNED = "successful_challenge_overturned"
    APPEAL_REQUESTED = "appeal_requested"
    APPEAL_GRANTED = "appeal_granted"
    GRANTED_APPEAL_CHALLENGED = "granted_appeal_challenged"
    GRANTED_APPEAL_CONFIRMED = "granted_appeal_confirmed"
    GRANTED_APPEAL_OVERTURNED = "granted_appeal_overturned"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TOUCH_AND_REMOVED = "touch_and_removed"

    @classmethod
    def parse(cls, v: Any) -> "GovernanceState":
        try:
            return cls(str(v or "none"))
        except ValueError:
            return cls.NONE


@dataclass(frozen=True)
class Charter:
    """The newsroom charter: revision 0 of the listing's content."""

    uri: str = ""
    content_id: int = 0
    revision_id: int = 0
    signature: str = ""
    author: str = ""
    content_hash: str = ""
    timestamp: int = 0

    def to_json(self) -> Json:
        return {
            "uri": self.uri,
            "content_id": int(self.content_id),
            "revision_id": int(self.revision_id),
            "signature": self.signature,
            "author": self.author,
            "content_hash": self.content_hash,
            "timestamp": int(self.timestamp),
        }

    @staticmethod
    def from_json(obj: Any) -> Optional["Charter"]:
        if not isinstance(obj, dict):
            return None
        return Charter(
            uri=as_str(obj.get("uri")),
            content_id=as_int(obj.get("content_id")),
            revision_id=as_int(obj.get("revision_id")),
            signature=as_str(obj.get("signature")),
            author=as_str(obj.get("author")),
            content_hash=as_str(obj.get("content_hash")),
            timestamp=as_int(obj.get("timestamp")),
        )


@dataclass(frozen=True)
class Listing:
    address: str
    name: str = ""
    whitelisted: bool = False
    governance_state: GovernanceState = GovernanceState.NONE
    url: str = ""
    charter: Optional[Charter] = None
    owner_addresses: Tuple[str, ...] = ()
    contributor_addresses: Tuple[str, ...] = ()
    application_date_ts: int = 0
    approval_date_ts: int = 0
    last_governance_state_update_ts: int = 0
    challenge_id: Optional[int] = None
    app_expiry: Optional[int] = None
    unstaked_deposit: Optional[int] = None
    created_ts: int = 0
    last_updated_ts: int = 0

    @property
    def has_active_challenge(self) -> bool:
        return self.challenge_id is not None and self.challenge_id > 0

    def to_json(self) -> Json:
        return {
            "address": self.address,
            "name": self.name,
            "whitelisted": bool(self.whitelisted),
            "governance_state": self.governance_state.value,
            "url": self.url,
            "charter": self.charter.to_json() if self.charter is not None else None,
            "owner_addresses": list(self.owner_addresses),
            "contributor_addresses": list(self.contributor_addresses),
            "application_date_ts": int(self.application_date_ts),
            "approval_date_ts": int(self.approval_date_ts),
            "last_governance_state_update_ts": int(self.last_governance_state_update_ts),
            "challenge_id": self.challenge_id,
            "app_expiry": self.app_expiry,
            "unstaked_deposit": self.unstaked_deposit,
            "created_ts": int(self.created_ts),
            "last_updated_ts": int(self.last_updated_ts),
        }

    @staticmethod
    def from_json(obj: Json) -> "Listing":
        return Listing(
            address=as_str(obj.get("address")),
            name=as_str(obj.get("name")),
            whitelisted=as_bool(obj.get("whitelisted")),
            governance_state=GovernanceState.parse(obj.get("governance_state")),
            url=as_str(obj.get("url")),
            charter=Charter.from_json(obj.get("charter")),
            owner_addresses=as_str_tuple(obj.get("owner_addresses")),
            contributor_addresses=as_str_tuple(obj.get("contributor_addresses")),
            application_date_ts=as_int(obj.get("application_date_ts")),
            approval_date_ts=as_int(obj.get("approval_date_ts")),
            last_governance_state_update_ts=as_int(obj.get("last_governance_state_update_ts")),
            challenge_id=opt_int(obj.get("challenge_id")),
            app_expiry=opt_int(obj.get("app_expiry")),
            unstaked_deposit=opt_int(obj.get("unstaked_deposit")),
            created_ts=as_int(obj.get("created_ts")),
            last_updated_ts=as_int(obj.get("last_updated_ts")),
        )


@dataclass(frozen=True)
class ListingPatch(Patch):
    name: Union[str, Unset] = UNSET
    whitelisted: Union[bool, Unset] = UNSET
    governance_state: Union[GovernanceState, Unset] = UNSET
    url: Union[str, Unset] = UNSET
    charter: Union[Optional[Charter], Unset] = UNSET
    owner_addresses: Union[Tuple[str, ...], Unset] = UNSET
    contributor_addresses: Union[Tuple[str, ...], Unset] = UNSET
    application_date_ts: Union[int, Unset] = UNSET
    approval_date_ts: Union[int, Unset] = UNSET
    last_governance_state_update_ts: Union[int, Unset] = UNSET
    challenge_id: Union[Optional[int], Unset] = UNSET
    app_expiry: Union[Optional[int], Unset] = UNSET
    unstaked_deposit: Union[Optional[int], Unset] = UNSET
    last_updated_ts: Union[int, Unset] = UNSET


def transition(state: GovernanceState, ts: int, **changes: Any) -> ListingPatch:
    """Patch that moves a listing to `state` and stamps the state-change time."""
    return ListingPatch(
        governance_state=state,
        last_governance_state_update_ts=int(ts),
        last_updated_ts=int(ts),
        **changes,
    )
