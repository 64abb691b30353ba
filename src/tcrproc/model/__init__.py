"""Aggregate entities, governance states, retrieval criteria and patches.

Entities are frozen dataclasses; they change only through their Patch types.
Nothing in this package performs I/O.
"""

from tcrproc.model.challenge import Appeal, AppealPatch, Challenge, ChallengePatch, Poll, PollPatch
from tcrproc.model.content import ArticlePayload, ContentRevision, article_payload_hash
from tcrproc.model.criteria import (
    ChallengeCriteria,
    ContentRevisionCriteria,
    GovernanceEventCriteria,
    ListingCriteria,
    TokenMovementCriteria,
)
from tcrproc.model.event import BlockData, Event, normalize_event_name
from tcrproc.model.governance_event import GovernanceEvent, GovernanceEventPatch
from tcrproc.model.listing import Charter, GovernanceState, Listing, ListingPatch
from tcrproc.model.multisig import MultiSig, MultiSigOwner, MultiSigPatch
from tcrproc.model.parameter import (
    GovernmentParameterProposal,
    GovernmentParameterProposalPatch,
    Parameter,
    ParameterProposal,
    ParameterProposalPatch,
)
from tcrproc.model.patch import UNSET, Patch
from tcrproc.model.token import TOKEN_DIVISOR, TokenPurchase, TokenTransfer

__all__ = [
    "Appeal",
    "AppealPatch",
    "ArticlePayload",
    "BlockData",
    "Challenge",
    "ChallengeCriteria",
    "ChallengePatch",
    "Charter",
    "ContentRevision",
    "ContentRevisionCriteria",
    "Event",
    "GovernanceEvent",
    "GovernanceEventCriteria",
    "GovernanceEventPatch",
    "GovernanceState",
    "GovernmentParameterProposal",
    "GovernmentParameterProposalPatch",
    "Listing",
    "ListingCriteria",
    "ListingPatch",
    "MultiSig",
    "MultiSigOwner",
    "MultiSigPatch",
    "Parameter",
    "ParameterProposal",
    "ParameterProposalPatch",
    "Patch",
    "Poll",
    "PollPatch",
    "TOKEN_DIVISOR",
    "TokenMovementCriteria",
    "TokenPurchase",
    "TokenTransfer",
    "UNSET",
    "article_payload_hash",
    "normalize_event_name",
]
