# src/tcrproc/processor/parameterizer.py
from __future__ import annotations

"""
Parameter-governance semantics.

Covers the parameterizer contract (proposals, challenges against them, and
the parameter values they set) and the government contract (proposals
decided by a poll, and direct parameter sets). `accepted` and `expired` are
terminal and mutually exclusive on both proposal kinds.
"""

from typing import Mapping, Optional

from tcrproc.contracts import FAMILY_PARAMETERIZER, GOVERNMENT_CONTRACT, PARAMETERIZER_CONTRACT
from tcrproc.errors import NoResultsError, not_found
from tcrproc.model import (
    Challenge,
    Event,
    GovernmentParameterProposal,
    GovernmentParameterProposalPatch,
    Parameter,
    ParameterProposal,
    ParameterProposalPatch,
)
from tcrproc.model.challenge import CHALLENGE_TYPE_PARAMETERIZER
from tcrproc.payloads import (
    GovtReparameterizationProposalPayload,
    ParamChallengePayload,
    ParamChallengeResolvedPayload,
    ParameterSetPayload,
    PropIDPayload,
    ProposalAcceptedPayload,
    ReparameterizationProposalPayload,
)
from tcrproc.processor.base import DomainProcessor, Handler, ensure_challenge, ensure_poll, resolve_challenge, set_poll_passed


def _proposal(p: "ParameterizerProcessor", prop_id: str) -> ParameterProposal:
    try:
        return p.persisters.parameter_proposals.by_id(prop_id)
    except NoResultsError:
        raise not_found("proposal_not_found", prop_id=prop_id) from None


def _govt_proposal(p: "ParameterizerProcessor", prop_id: str) -> GovernmentParameterProposal:
    try:
        return p.persisters.government_parameter_proposals.by_id(prop_id)
    except NoResultsError:
        raise not_found("government_proposal_not_found", prop_id=prop_id) from None


# --- parameterizer ----------------------------------------------------------


def _reparameterization_proposal(p: "ParameterizerProcessor", ev: Event, pl: ReparameterizationProposalPayload) -> None:
    proposals = p.persisters.parameter_proposals
    try:
        proposals.by_id(pl.prop_id)
        return
    except NoResultsError:
        pass
    proposals.create(
        ParameterProposal(
            prop_id=pl.prop_id,
            name=pl.name,
            value=int(pl.value),
            deposit=int(pl.deposit),
            app_expiry=int(pl.app_end_date),
            proposer=pl.proposer,
            last_updated_ts=int(ev.timestamp),
        )
    )


def _proposal_accepted(p: "ParameterizerProcessor", ev: Event, pl: ProposalAcceptedPayload) -> None:
    ts = int(ev.timestamp)
    prop = _proposal(p, pl.prop_id)
    if not prop.accepted:
        p.persisters.parameter_proposals.update(pl.prop_id, ParameterProposalPatch(accepted=True, last_updated_ts=ts))
    p.persisters.parameters.put(Parameter(name=pl.name, value=int(pl.value), last_updated_ts=ts))


def _proposal_expired(p: "ParameterizerProcessor", ev: Event, pl: PropIDPayload) -> None:
    prop = _proposal(p, pl.prop_id)
    if not prop.expired:
        p.persisters.parameter_proposals.update(
            pl.prop_id, ParameterProposalPatch(expired=True, last_updated_ts=int(ev.timestamp))
        )


def _new_challenge(p: "ParameterizerProcessor", ev: Event, pl: ParamChallengePayload) -> None:
    ts = int(ev.timestamp)
    _proposal(p, pl.prop_id)
    ensure_challenge(
        p.persisters,
        Challenge(
            challenge_id=int(pl.challenge_id),
            prop_id=pl.prop_id,
            challenge_type=CHALLENGE_TYPE_PARAMETERIZER,
            statement=pl.data,
            challenger=pl.challenger,
            stake=int(pl.stake),
            last_updated_ts=ts,
        ),
    )
    ensure_poll(p.persisters, pl.challenge_id, pl.commit_end_date, pl.reveal_end_date, ts)
    p.persisters.parameter_proposals.update(
        pl.prop_id, ParameterProposalPatch(challenge_id=int(pl.challenge_id), last_updated_ts=ts)
    )


def _challenge_resolved(p: "ParameterizerProcessor", ev: Event, pl: ParamChallengeResolvedPayload, *, passed: bool) -> None:
    ts = int(ev.timestamp)
    resolve_challenge(p.persisters, pl.challenge_id, ts, reward_pool=pl.reward_pool, total_tokens=pl.total_tokens)
    set_poll_passed(p.persisters, pl.challenge_id, passed, ts)


def _challenge_failed(p: "ParameterizerProcessor", ev: Event, pl: ParamChallengeResolvedPayload) -> None:
    _challenge_resolved(p, ev, pl, passed=True)


def _challenge_succeeded(p: "ParameterizerProcessor", ev: Event, pl: ParamChallengeResolvedPayload) -> None:
    prop = _proposal(p, pl.prop_id)
    _challenge_resolved(p, ev, pl, passed=False)
    if prop.is_open:
        p.persisters.parameter_proposals.update(
            pl.prop_id, ParameterProposalPatch(expired=True, last_updated_ts=int(ev.timestamp))
        )


# --- government -------------------------------------------------------------


def _govt_reparameterization_proposal(
    p: "ParameterizerProcessor", ev: Event, pl: GovtReparameterizationProposalPayload
) -> None:
    proposals = p.persisters.government_parameter_proposals
    try:
        proposals.by_id(pl.prop_id)
        return
    except NoResultsError:
        pass
    proposals.create(
        GovernmentParameterProposal(
            prop_id=pl.prop_id,
            name=pl.name,
            value=int(pl.value),
            app_expiry=int(pl.app_expiry),
            poll_id=int(pl.poll_id),
            last_updated_ts=int(ev.timestamp),
        )
    )


def _proposal_passed(p: "ParameterizerProcessor", ev: Event, pl: PropIDPayload) -> None:
    ts = int(ev.timestamp)
    prop = _govt_proposal(p, pl.prop_id)
    if not prop.accepted:
        p.persisters.government_parameter_proposals.update(
            pl.prop_id, GovernmentParameterProposalPatch(accepted=True, last_updated_ts=ts)
        )
    p.persisters.government_parameters.put(Parameter(name=prop.name, value=int(prop.value), last_updated_ts=ts))


def _govt_proposal_closed(p: "ParameterizerProcessor", ev: Event, pl: PropIDPayload) -> None:
    prop = _govt_proposal(p, pl.prop_id)
    if not prop.expired:
        p.persisters.government_parameter_proposals.update(
            pl.prop_id, GovernmentParameterProposalPatch(expired=True, last_updated_ts=int(ev.timestamp))
        )


def _parameter_set(p: "ParameterizerProcessor", ev: Event, pl: ParameterSetPayload) -> None:
    p.persisters.government_parameters.put(Parameter(name=pl.name, value=int(pl.value), last_updated_ts=int(ev.timestamp)))


_PARAMETERIZER_HANDLERS = {
    "ReparameterizationProposal": _reparameterization_proposal,
    "ProposalAccepted": _proposal_accepted,
    "ProposalExpired": _proposal_expired,
    "NewChallenge": _new_challenge,
    "ChallengeFailed": _challenge_failed,
    "ChallengeSucceeded": _challenge_succeeded,
}

_GOVERNMENT_HANDLERS = {
    "GovtReparameterizationProposal": _govt_reparameterization_proposal,
    "ProposalPassed": _proposal_passed,
    "ProposalFailed": _govt_proposal_closed,
    "ProposalExpired": _govt_proposal_closed,
    "ParameterSet": _parameter_set,
}

# Both contracts emit ProposalExpired, so dispatch is per contract.
_HANDLERS: Mapping[str, Mapping[str, Handler]] = {
    PARAMETERIZER_CONTRACT: _PARAMETERIZER_HANDLERS,
    GOVERNMENT_CONTRACT: _GOVERNMENT_HANDLERS,
}


class ParameterizerProcessor(DomainProcessor):
    family = FAMILY_PARAMETERIZER

    def handler(self, contract_name: str, event_name: str) -> Optional[Handler]:
        return _HANDLERS.get(contract_name, {}).get(event_name)
