# src/tcrproc/payloads.py
"""Typed payload schemas, one per (contract, event name).

Event payloads arrive as loosely-typed maps. Each processor decodes them in a
single step through `decode_payload`; business logic only ever sees the
typed model. Field aliases are the on-chain argument names.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional, Tuple, Type

from pydantic import AliasChoices, BaseModel, BeforeValidator, Field, ValidationError

from tcrproc import contracts as c
from tcrproc.errors import DecodeError

Json = Dict[str, Any]

_HEX = set("0123456789abcdef")


def _hex_body(s: str) -> str:
    s = s.strip().lower()
    return s[2:] if s.startswith("0x") else s


def _address(v: Any) -> str:
    if isinstance(v, (bytes, bytearray)):
        if len(v) != 20:
            raise ValueError("address bytes must be 20 long")
        return "0x" + bytes(v).hex()
    if not isinstance(v, str):
        raise ValueError("address must be a hex string")
    body = _hex_body(v)
    if len(body) != 40 or not set(body) <= _HEX:
        raise ValueError("address must be 20 bytes of hex")
    return "0x" + body


def _uint(v: Any) -> int:
    if isinstance(v, bool):
        raise ValueError("expected an unsigned integer, got bool")
    if isinstance(v, int):
        n = v
    elif isinstance(v, str):
        s = v.strip()
        if not s:
            raise ValueError("expected an unsigned integer, got empty string")
        try:
            n = int(s, 16) if s.lower().startswith("0x") else int(s, 10)
        except ValueError as e:
            raise ValueError(f"not an integer: {s!r}") from e
    else:
        raise ValueError(f"expected an unsigned integer, got {type(v).__name__}")
    if n < 0:
        raise ValueError("expected an unsigned integer, got a negative value")
    return n


def _bytes32(v: Any) -> str:
    if isinstance(v, (list, tuple)):
        if len(v) != 32 or not all(isinstance(x, int) and not isinstance(x, bool) and 0 <= x < 256 for x in v):
            raise ValueError("bytes32 array must hold 32 byte values")
        return "0x" + bytes(v).hex()
    if isinstance(v, (bytes, bytearray)):
        if len(v) != 32:
            raise ValueError("bytes32 must be 32 bytes long")
        return "0x" + bytes(v).hex()
    if not isinstance(v, str):
        raise ValueError("bytes32 must be a hex string")
    body = _hex_body(v)
    if len(body) != 64 or not set(body) <= _HEX:
        raise ValueError("bytes32 must be 32 bytes of hex")
    return "0x" + body


Address = Annotated[str, BeforeValidator(_address)]
Uint = Annotated[int, BeforeValidator(_uint)]
Bytes32 = Annotated[str, BeforeValidator(_bytes32)]


class EventPayload(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    def to_metadata(self) -> Json:
        return self.model_dump(mode="json", by_alias=True)


# --- registry ---------------------------------------------------------------


class ListingPayload(EventPayload):
    listing_address: Address = Field(..., alias="ListingAddress")


class ApplicationPayload(ListingPayload):
    deposit: Uint = Field(..., alias="Deposit")
    app_end_date: Uint = Field(..., alias="AppEndDate")
    data: str = Field("", alias="Data")
    applicant: Address = Field(..., alias="Applicant")


class DepositPayload(ListingPayload):
    added: Uint = Field(0, alias="Added")
    new_total: Uint = Field(..., validation_alias=AliasChoices("NewTotal", "UnstakedDeposit"), serialization_alias="NewTotal")


class WithdrawalPayload(ListingPayload):
    withdrew: Uint = Field(0, alias="Withdrew")
    new_total: Uint = Field(..., validation_alias=AliasChoices("NewTotal", "UnstakedDeposit"), serialization_alias="NewTotal")


class NewChallengePayload(ListingPayload):
    challenge_id: Uint = Field(..., alias="ChallengeID")
    data: str = Field("", alias="Data")
    commit_end_date: Uint = Field(..., alias="CommitEndDate")
    reveal_end_date: Uint = Field(..., alias="RevealEndDate")
    challenger: Address = Field(..., alias="Challenger")
    stake: Uint = Field(0, alias="Stake")
    reward_pool: Uint = Field(0, alias="RewardPool")


class ChallengeResolvedPayload(ListingPayload):
    challenge_id: Uint = Field(..., alias="ChallengeID")
    reward_pool: Optional[Uint] = Field(None, alias="RewardPool")
    total_tokens: Optional[Uint] = Field(None, alias="TotalTokens")


class AppealRequestedPayload(ListingPayload):
    challenge_id: Uint = Field(..., alias="ChallengeID")
    appeal_fee_paid: Uint = Field(..., alias="AppealFeePaid")
    requester: Address = Field(..., alias="Requester")
    data: str = Field("", alias="Data")
    appeal_phase_expiry: Uint = Field(0, alias="AppealPhaseExpiry")


class AppealGrantedPayload(ListingPayload):
    challenge_id: Uint = Field(..., alias="ChallengeID")
    data: str = Field("", alias="Data")
    appeal_open_to_challenge_expiry: Uint = Field(0, alias="AppealOpenToChallengeExpiry")


class GrantedAppealChallengedPayload(ListingPayload):
    challenge_id: Uint = Field(..., alias="ChallengeID")
    appeal_challenge_id: Uint = Field(..., alias="AppealChallengeID")
    data: str = Field("", alias="Data")
    challenger: Optional[Address] = Field(None, alias="Challenger")
    commit_end_date: Uint = Field(0, alias="CommitEndDate")
    reveal_end_date: Uint = Field(0, alias="RevealEndDate")


class GrantedAppealResolvedPayload(ListingPayload):
    challenge_id: Uint = Field(..., alias="ChallengeID")
    appeal_challenge_id: Uint = Field(..., alias="AppealChallengeID")
    reward_pool: Optional[Uint] = Field(None, alias="RewardPool")
    total_tokens: Optional[Uint] = Field(None, alias="TotalTokens")


class RewardClaimedPayload(EventPayload):
    challenge_id: Uint = Field(..., alias="ChallengeID")
    reward: Uint = Field(0, alias="Reward")
    voter: Address = Field(..., alias="Voter")


# --- voting -----------------------------------------------------------------


class PollCreatedPayload(EventPayload):
    poll_id: Uint = Field(..., alias="PollID")
    vote_quorum: Uint = Field(..., alias="VoteQuorum")
    commit_end_date: Uint = Field(..., alias="CommitEndDate")
    reveal_end_date: Uint = Field(..., alias="RevealEndDate")
    creator: Optional[Address] = Field(None, alias="Creator")


class VoteRevealedPayload(EventPayload):
    poll_id: Uint = Field(..., alias="PollID")
    votes_for: Uint = Field(..., alias="VotesFor")
    votes_against: Uint = Field(..., alias="VotesAgainst")
    num_tokens: Uint = Field(0, alias="NumTokens")
    choice: Uint = Field(0, alias="Choice")
    voter: Optional[Address] = Field(None, alias="Voter")


# --- parameterizer / government --------------------------------------------


class PropIDPayload(EventPayload):
    prop_id: Bytes32 = Field(..., alias="PropID")


class ReparameterizationProposalPayload(PropIDPayload):
    name: str = Field(..., alias="Name", min_length=1)
    value: Uint = Field(..., alias="Value")
    deposit: Uint = Field(..., alias="Deposit")
    app_end_date: Uint = Field(..., alias="AppEndDate")
    proposer: Address = Field(..., alias="Proposer")


class ProposalAcceptedPayload(PropIDPayload):
    name: str = Field(..., alias="Name", min_length=1)
    value: Uint = Field(..., alias="Value")


class ParamChallengePayload(PropIDPayload):
    challenge_id: Uint = Field(..., alias="ChallengeID")
    data: str = Field("", alias="Data")
    commit_end_date: Uint = Field(..., alias="CommitEndDate")
    reveal_end_date: Uint = Field(..., alias="RevealEndDate")
    challenger: Address = Field(..., alias="Challenger")
    stake: Uint = Field(0, alias="Stake")


class ParamChallengeResolvedPayload(PropIDPayload):
    challenge_id: Uint = Field(..., alias="ChallengeID")
    reward_pool: Optional[Uint] = Field(None, alias="RewardPool")
    total_tokens: Optional[Uint] = Field(None, alias="TotalTokens")


class GovtReparameterizationProposalPayload(PropIDPayload):
    name: str = Field(..., alias="Name", min_length=1)
    value: Uint = Field(..., alias="Value")
    poll_id: Uint = Field(0, alias="PollID")
    app_expiry: Uint = Field(0, alias="AppExpiry")


class ParameterSetPayload(EventPayload):
    name: str = Field(..., alias="Name", min_length=1)
    value: Uint = Field(..., alias="Value")


# --- newsroom ---------------------------------------------------------------


class RevisionUpdatedPayload(EventPayload):
    editor: Address = Field(..., alias="Editor")
    content_id: Uint = Field(..., validation_alias=AliasChoices("ContentID", "ContentId"), serialization_alias="ContentID")
    revision_id: Uint = Field(
        ..., validation_alias=AliasChoices("RevisionID", "RevisionId"), serialization_alias="RevisionID"
    )
    uri: str = Field(..., validation_alias=AliasChoices("URI", "Uri"), serialization_alias="URI")


class NameChangedPayload(EventPayload):
    new_name: str = Field(..., alias="NewName")


class OwnershipTransferredPayload(EventPayload):
    previous_owner: Address = Field(..., alias="PreviousOwner")
    new_owner: Address = Field(..., alias="NewOwner")


# --- token / multisig -------------------------------------------------------


class TransferPayload(EventPayload):
    from_address: Address = Field(..., alias="From")
    to_address: Address = Field(..., alias="To")
    value: Uint = Field(..., alias="Value")


class OwnerChangedPayload(EventPayload):
    owner: Address = Field(..., alias="Owner")


class ContractInstantiationPayload(EventPayload):
    sender: Address = Field(..., alias="Sender")
    instantiation: Address = Field(..., alias="Instantiation")
    owners: List[Address] = Field(default_factory=list, alias="Owners")


PAYLOAD_SCHEMAS: Dict[Tuple[str, str], Type[EventPayload]] = {
    (c.TCR_CONTRACT, "Application"): ApplicationPayload,
    (c.TCR_CONTRACT, "ApplicationWhitelisted"): ListingPayload,
    (c.TCR_CONTRACT, "ApplicationRemoved"): ListingPayload,
    (c.TCR_CONTRACT, "ListingRemoved"): ListingPayload,
    (c.TCR_CONTRACT, "ListingWithdrawn"): ListingPayload,
    (c.TCR_CONTRACT, "TouchAndRemoved"): ListingPayload,
    (c.TCR_CONTRACT, "Deposit"): DepositPayload,
    (c.TCR_CONTRACT, "Withdrawal"): WithdrawalPayload,
    (c.TCR_CONTRACT, "Challenge"): NewChallengePayload,
    (c.TCR_CONTRACT, "NewChallenge"): NewChallengePayload,
    (c.TCR_CONTRACT, "ChallengeFailed"): ChallengeResolvedPayload,
    (c.TCR_CONTRACT, "ChallengeSucceeded"): ChallengeResolvedPayload,
    (c.TCR_CONTRACT, "FailedChallengeOverturned"): ChallengeResolvedPayload,
    (c.TCR_CONTRACT, "SuccessfulChallengeOverturned"): ChallengeResolvedPayload,
    (c.TCR_CONTRACT, "AppealRequested"): AppealRequestedPayload,
    (c.TCR_CONTRACT, "AppealGranted"): AppealGrantedPayload,
    (c.TCR_CONTRACT, "GrantedAppealChallenged"): GrantedAppealChallengedPayload,
    (c.TCR_CONTRACT, "GrantedAppealConfirmed"): GrantedAppealResolvedPayload,
    (c.TCR_CONTRACT, "GrantedAppealOverturned"): GrantedAppealResolvedPayload,
    (c.TCR_CONTRACT, "RewardClaimed"): RewardClaimedPayload,
    (c.PLCR_CONTRACT, "PollCreated"): PollCreatedPayload,
    (c.PLCR_CONTRACT, "VoteRevealed"): VoteRevealedPayload,
    (c.PARAMETERIZER_CONTRACT, "ReparameterizationProposal"): ReparameterizationProposalPayload,
    (c.PARAMETERIZER_CONTRACT, "ProposalAccepted"): ProposalAcceptedPayload,
    (c.PARAMETERIZER_CONTRACT, "ProposalExpired"): PropIDPayload,
    (c.PARAMETERIZER_CONTRACT, "NewChallenge"): ParamChallengePayload,
    (c.PARAMETERIZER_CONTRACT, "ChallengeFailed"): ParamChallengeResolvedPayload,
    (c.PARAMETERIZER_CONTRACT, "ChallengeSucceeded"): ParamChallengeResolvedPayload,
    (c.GOVERNMENT_CONTRACT, "GovtReparameterizationProposal"): GovtReparameterizationProposalPayload,
    (c.GOVERNMENT_CONTRACT, "ProposalPassed"): PropIDPayload,
    (c.GOVERNMENT_CONTRACT, "ProposalFailed"): PropIDPayload,
    (c.GOVERNMENT_CONTRACT, "ProposalExpired"): PropIDPayload,
    (c.GOVERNMENT_CONTRACT, "ParameterSet"): ParameterSetPayload,
    (c.NEWSROOM_CONTRACT, "RevisionUpdated"): RevisionUpdatedPayload,
    (c.NEWSROOM_CONTRACT, "NameChanged"): NameChangedPayload,
    (c.NEWSROOM_CONTRACT, "OwnershipTransferred"): OwnershipTransferredPayload,
    (c.TOKEN_CONTRACT, "Transfer"): TransferPayload,
    (c.MULTISIG_CONTRACT, "OwnerAddition"): OwnerChangedPayload,
    (c.MULTISIG_CONTRACT, "OwnerRemoval"): OwnerChangedPayload,
    (c.MULTISIG_FACTORY_CONTRACT, "ContractInstantiation"): ContractInstantiationPayload,
}


def decode_payload(contract_name: str, event_name: str, payload: Any) -> EventPayload:
    """Decode a raw payload map into its typed schema or raise DecodeError."""
    model = PAYLOAD_SCHEMAS.get((contract_name, event_name))
    if model is None:
        raise DecodeError("unknown_event", {"contract": contract_name, "event": event_name})
    if not isinstance(payload, dict):
        raise DecodeError("payload_not_a_map", {"contract": contract_name, "event": event_name})
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        errors = [{"field": ".".join(str(p) for p in err["loc"]), "error": err["msg"]} for err in e.errors()]
        raise DecodeError("invalid_payload", {"event": event_name, "errors": errors}) from e
