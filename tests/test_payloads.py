from __future__ import annotations

import pytest

from tcrproc.contracts import MULTISIG_FACTORY_CONTRACT, PARAMETERIZER_CONTRACT, TCR_CONTRACT, TOKEN_CONTRACT
from tcrproc.errors import DecodeError
from tcrproc.payloads import (
    ApplicationPayload,
    ChallengeResolvedPayload,
    ContractInstantiationPayload,
    DepositPayload,
    ProposalAcceptedPayload,
    decode_payload,
)

LISTING = "0x" + "11" * 20
APPLICANT = "0x" + "22" * 20


def test_application_decodes_hex_and_decimal_uints() -> None:
    pl = decode_payload(
        TCR_CONTRACT,
        "Application",
        {"ListingAddress": "0x" + "1A" * 20, "Deposit": "0x64", "AppEndDate": 1700, "Applicant": APPLICANT},
    )
    assert isinstance(pl, ApplicationPayload)
    assert pl.listing_address == "0x" + "1a" * 20
    assert pl.deposit == 100
    assert pl.app_end_date == 1700
    assert pl.data == ""


def test_missing_key_lists_every_failed_field() -> None:
    with pytest.raises(DecodeError) as e:
        decode_payload(TCR_CONTRACT, "Application", {"ListingAddress": LISTING, "Deposit": -1})
    err = e.value
    assert err.code == "decode_error"
    assert err.reason == "invalid_payload"
    fields = {x["field"] for x in err.details["errors"]}
    assert {"Deposit", "AppEndDate", "Applicant"} <= fields


def test_mistyped_values_are_rejected() -> None:
    with pytest.raises(DecodeError):
        decode_payload(TOKEN_CONTRACT, "Transfer", {"From": "0x1234", "To": APPLICANT, "Value": 5})
    with pytest.raises(DecodeError):
        decode_payload(TOKEN_CONTRACT, "Transfer", {"From": LISTING, "To": APPLICANT, "Value": True})
    with pytest.raises(DecodeError):
        decode_payload(TOKEN_CONTRACT, "Transfer", {"From": LISTING, "To": APPLICANT, "Value": "ten"})


def test_unknown_event_and_non_map_payload() -> None:
    with pytest.raises(DecodeError) as unknown:
        decode_payload(TCR_CONTRACT, "Airdrop", {})
    assert unknown.value.reason == "unknown_event"

    with pytest.raises(DecodeError) as not_map:
        decode_payload(TCR_CONTRACT, "Deposit", ["ListingAddress"])
    assert not_map.value.reason == "payload_not_a_map"


def test_deposit_accepts_either_total_name() -> None:
    a = decode_payload(TCR_CONTRACT, "Deposit", {"ListingAddress": LISTING, "Added": 5, "NewTotal": 50})
    b = decode_payload(TCR_CONTRACT, "Deposit", {"ListingAddress": LISTING, "Added": 5, "UnstakedDeposit": 50})
    assert isinstance(a, DepositPayload) and isinstance(b, DepositPayload)
    assert a.new_total == b.new_total == 50
    assert b.to_metadata()["NewTotal"] == 50


def test_resolved_totals_are_optional() -> None:
    pl = decode_payload(TCR_CONTRACT, "ChallengeFailed", {"ListingAddress": LISTING, "ChallengeID": "7"})
    assert isinstance(pl, ChallengeResolvedPayload)
    assert pl.challenge_id == 7
    assert pl.reward_pool is None
    assert pl.total_tokens is None


def test_prop_id_accepts_byte_array() -> None:
    raw = list(range(32))
    pl = decode_payload(PARAMETERIZER_CONTRACT, "ProposalAccepted", {"PropID": raw, "Name": "minDeposit", "Value": 10})
    assert isinstance(pl, ProposalAcceptedPayload)
    assert pl.prop_id == "0x" + bytes(raw).hex()

    with pytest.raises(DecodeError):
        decode_payload(PARAMETERIZER_CONTRACT, "ProposalAccepted", {"PropID": [1, 2], "Name": "x", "Value": 1})
    with pytest.raises(DecodeError):
        decode_payload(PARAMETERIZER_CONTRACT, "ProposalAccepted", {"PropID": "0x" + "00" * 32, "Name": "", "Value": 1})


def test_contract_instantiation_owner_list() -> None:
    pl = decode_payload(
        MULTISIG_FACTORY_CONTRACT,
        "ContractInstantiation",
        {"Sender": APPLICANT, "Instantiation": LISTING, "Owners": [APPLICANT, LISTING]},
    )
    assert isinstance(pl, ContractInstantiationPayload)
    assert pl.owners == [APPLICANT, LISTING]


def test_metadata_uses_onchain_argument_names() -> None:
    pl = decode_payload(
        TCR_CONTRACT,
        "Application",
        {"ListingAddress": LISTING, "Deposit": 1, "AppEndDate": 2, "Applicant": APPLICANT, "Extra": "ignored"},
    )
    meta = pl.to_metadata()
    assert meta == {"ListingAddress": LISTING, "Deposit": 1, "AppEndDate": 2, "Data": "", "Applicant": APPLICANT}
