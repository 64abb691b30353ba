from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from tcrproc.errors import conflict
from tcrproc.model.coerce import as_bool, as_int, as_str, as_str_tuple, opt_bool, opt_int
from tcrproc.model.patch import UNSET, Patch, Unset

Json = Dict[str, Any]

CHALLENGE_TYPE_REGISTRY = "registry"
CHALLENGE_TYPE_PARAMETERIZER = "parameterizer"
CHALLENGE_TYPE_APPEAL = "appeal"


@dataclass(frozen=True)
class Poll:
    poll_id: int
    commit_end_date: int = 0
    reveal_end_date: int = 0
    vote_quorum: int = 0
    votes_for: int = 0
    votes_against: int = 0
    is_passed: Optional[bool] = None
    last_updated_ts: int = 0
    # hashes of the VoteRevealed events already counted
    revealed_event_hashes: Tuple[str, ...] = ()

    def add_votes(self, votes_for: int, votes_against: int, *, event_hash: str = "") -> "PollPatch":
        """Patch that adds reveal deltas. Tallies never decrease.

        With an `event_hash`, a reveal already counted yields an empty patch.
        """
        if int(votes_for) < 0 or int(votes_against) < 0:
            raise conflict("negative_vote_delta", poll_id=self.poll_id)
        if event_hash and event_hash in self.revealed_event_hashes:
            return PollPatch()
        return PollPatch(
            votes_for=int(self.votes_for) + int(votes_for),
            votes_against=int(self.votes_against) + int(votes_against),
            revealed_event_hashes=(self.revealed_event_hashes + (event_hash,)) if event_hash else UNSET,
        )

    def to_json(self) -> Json:
        return {
            "poll_id": int(self.poll_id),
            "commit_end_date": int(self.commit_end_date),
            "reveal_end_date": int(self.reveal_end_date),
            "vote_quorum": int(self.vote_quorum),
            "votes_for": int(self.votes_for),
            "votes_against": int(self.votes_against),
            "is_passed": self.is_passed,
            "last_updated_ts": int(self.last_updated_ts),
            "revealed_event_hashes": list(self.revealed_event_hashes),
        }

    @staticmethod
    def from_json(obj: Json) -> "Poll":
        return Poll(
            poll_id=as_int(obj.get("poll_id")),
            commit_end_date=as_int(obj.get("commit_end_date")),
            reveal_end_date=as_int(obj.get("reveal_end_date")),
            vote_quorum=as_int(obj.get("vote_quorum")),
            votes_for=as_int(obj.get("votes_for")),
            votes_against=as_int(obj.get("votes_against")),
            is_passed=opt_bool(obj.get("is_passed")),
            last_updated_ts=as_int(obj.get("last_updated_ts")),
            revealed_event_hashes=as_str_tuple(obj.get("revealed_event_hashes")),
        )


@dataclass(frozen=True)
class PollPatch(Patch):
    commit_end_date: Union[int, Unset] = UNSET
    reveal_end_date: Union[int, Unset] = UNSET
    vote_quorum: Union[int, Unset] = UNSET
    votes_for: Union[int, Unset] = UNSET
    votes_against: Union[int, Unset] = UNSET
    is_passed: Union[Optional[bool], Unset] = UNSET
    last_updated_ts: Union[int, Unset] = UNSET
    revealed_event_hashes: Union[Tuple[str, ...], Unset] = UNSET

    def check(self, entity: Any) -> None:
        if not isinstance(self.votes_for, Unset) and int(self.votes_for) < int(entity.votes_for):
            raise conflict("votes_for_decreased", poll_id=entity.poll_id)
        if not isinstance(self.votes_against, Unset) and int(self.votes_against) < int(entity.votes_against):
            raise conflict("votes_against_decreased", poll_id=entity.poll_id)


@dataclass(frozen=True)
class Appeal:
    original_challenge_id: int
    requester: str = ""
    appeal_fee_paid: int = 0
    appeal_phase_expiry: int = 0
    appeal_granted: bool = False
    appeal_open_to_challenge_expiry: int = 0
    statement: str = ""
    appeal_challenge_id: Optional[int] = None
    last_updated_ts: int = 0

    def to_json(self) -> Json:
        return {
            "original_challenge_id": int(self.original_challenge_id),
            "requester": self.requester,
            "appeal_fee_paid": int(self.appeal_fee_paid),
            "appeal_phase_expiry": int(self.appeal_phase_expiry),
            "appeal_granted": bool(self.appeal_granted),
            "appeal_open_to_challenge_expiry": int(self.appeal_open_to_challenge_expiry),
            "statement": self.statement,
            "appeal_challenge_id": self.appeal_challenge_id,
            "last_updated_ts": int(self.last_updated_ts),
        }

    @staticmethod
    def from_json(obj: Json) -> "Appeal":
        return Appeal(
            original_challenge_id=as_int(obj.get("original_challenge_id")),
            requester=as_str(obj.get("requester")),
            appeal_fee_paid=as_int(obj.get("appeal_fee_paid")),
            appeal_phase_expiry=as_int(obj.get("appeal_phase_expiry")),
            appeal_granted=as_bool(obj.get("appeal_granted")),
            appeal_open_to_challenge_expiry=as_int(obj.get("appeal_open_to_challenge_expiry")),
            statement=as_str(obj.get("statement")),
            appeal_challenge_id=opt_int(obj.get("appeal_challenge_id")),
            last_updated_ts=as_int(obj.get("last_updated_ts")),
        )


@dataclass(frozen=True)
class AppealPatch(Patch):
    appeal_granted: Union[bool, Unset] = UNSET
    appeal_open_to_challenge_expiry: Union[int, Unset] = UNSET
    appeal_challenge_id: Union[Optional[int], Unset] = UNSET
    statement: Union[str, Unset] = UNSET
    last_updated_ts: Union[int, Unset] = UNSET


@dataclass(frozen=True)
class Challenge:
    """A dispute against a listing, a parameter proposal, or a granted appeal.

    `poll` and `appeal` are joined in by the persister on read; they are
    stored under their own keys and never written through the challenge.
    """

    challenge_id: int
    listing_address: str = ""
    prop_id: str = ""
    challenge_type: str = CHALLENGE_TYPE_REGISTRY
    statement: str = ""
    reward_pool: int = 0
    challenger: str = ""
    resolved: bool = False
    stake: int = 0
    total_tokens: int = 0
    request_appeal_expiry: int = 0
    poll: Optional[Poll] = None
    appeal: Optional[Appeal] = None
    last_updated_ts: int = 0

    def to_json(self, *, embed: bool = False) -> Json:
        out: Json = {
            "challenge_id": int(self.challenge_id),
            "listing_address": self.listing_address,
            "prop_id": self.prop_id,
            "challenge_type": self.challenge_type,
            "statement": self.statement,
            "reward_pool": int(self.reward_pool),
            "challenger": self.challenger,
            "resolved": bool(self.resolved),
            "stake": int(self.stake),
            "total_tokens": int(self.total_tokens),
            "request_appeal_expiry": int(self.request_appeal_expiry),
            "last_updated_ts": int(self.last_updated_ts),
        }
        if embed:
            out["poll"] = self.poll.to_json() if self.poll is not None else None
            out["appeal"] = self.appeal.to_json() if self.appeal is not None else None
        return out

    @staticmethod
    def from_json(obj: Json) -> "Challenge":
        return Challenge(
            challenge_id=as_int(obj.get("challenge_id")),
            listing_address=as_str(obj.get("listing_address")),
            prop_id=as_str(obj.get("prop_id")),
            challenge_type=as_str(obj.get("challenge_type")) or CHALLENGE_TYPE_REGISTRY,
            statement=as_str(obj.get("statement")),
            reward_pool=as_int(obj.get("reward_pool")),
            challenger=as_str(obj.get("challenger")),
            resolved=as_bool(obj.get("resolved")),
            stake=as_int(obj.get("stake")),
            total_tokens=as_int(obj.get("total_tokens")),
            request_appeal_expiry=as_int(obj.get("request_appeal_expiry")),
            last_updated_ts=as_int(obj.get("last_updated_ts")),
        )


@dataclass(frozen=True)
class ChallengePatch(Patch):
    statement: Union[str, Unset] = UNSET
    reward_pool: Union[int, Unset] = UNSET
    resolved: Union[bool, Unset] = UNSET
    stake: Union[int, Unset] = UNSET
    total_tokens: Union[int, Unset] = UNSET
    request_appeal_expiry: Union[int, Unset] = UNSET
    last_updated_ts: Union[int, Unset] = UNSET

    def check(self, entity: Any) -> None:
        if entity.resolved and self.resolved is False:
            raise conflict("challenge_already_resolved", challenge_id=entity.challenge_id)
