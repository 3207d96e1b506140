"""
Tests for the HTTP clients in dal.py, using a stub requests session.
"""

from __future__ import annotations

import pytest
import requests

from helpers import OWNER_A, RECIPIENT, SAFE, TOKEN, TX_HASH, StubResponse, StubSession

from safe_analyst.config import Settings
from safe_analyst.dal import (
    ExplorerVerificationClient,
    ExternalServiceError,
    ReputationClient,
    SafeTransactionServiceClient,
)

SETTINGS = Settings(
    safe_tx_service_url="https://safe.example/",
    reputation_api_url="https://reputation.example",
    reputation_api_key="rep-key",
    etherscan_api_key="scan-key",
    explorer_api_url="https://explorer.example/api",
)


def _raw_tx(safe_tx_hash=TX_HASH, **overrides):
    raw = {
        "safeTxHash": safe_tx_hash,
        "to": RECIPIENT,
        "value": "1000",
        "data": None,
        "dataDecoded": None,
        "nonce": 5,
        "isExecuted": False,
        "confirmationsRequired": 2,
        "confirmations": [{"owner": OWNER_A, "submissionDate": "2024-01-02T03:04:05Z"}],
    }
    raw.update(overrides)
    return raw


# Safe Transaction Service


def test_pending_transactions_follow_pagination():
    second_hash = "0x" + "cd" * 32
    session = StubSession(
        StubResponse({"address": SAFE, "nonce": 5}),
        StubResponse({"count": 2, "next": "https://safe.example/page2", "results": [_raw_tx()]}),
        StubResponse({"count": 2, "next": None, "results": [_raw_tx(second_hash, nonce=6)]}),
    )
    client = SafeTransactionServiceClient(SETTINGS, session)

    page = client.get_pending_transactions(SAFE)

    assert [tx.safe_tx_hash for tx in page.results] == [TX_HASH, second_hash]
    assert page.count == 2
    assert session.calls[0]["url"].startswith("https://safe.example/api/v1/safes/0x")
    assert session.calls[1]["params"] == {"executed": "false", "nonce__gte": 5, "ordering": "nonce"}
    assert session.calls[2]["url"] == "https://safe.example/page2"
    assert session.calls[2]["params"] is None
    assert session.calls[1]["timeout"] == SETTINGS.request_timeout_seconds


def test_executed_transactions_are_dropped():
    session = StubSession(
        StubResponse({"nonce": 0}),
        StubResponse({"count": 2, "next": None, "results": [_raw_tx(isExecuted=True), _raw_tx()]}),
    )
    page = SafeTransactionServiceClient(SETTINGS, session).get_pending_transactions(SAFE)
    assert len(page.results) == 1


def test_pending_transaction_fields_are_parsed():
    session = StubSession(StubResponse({"nonce": 5}), StubResponse({"count": 1, "results": [_raw_tx()]}))
    tx = SafeTransactionServiceClient(SETTINGS, session).get_pending_transactions(SAFE).results[0]
    assert tx.value == 1000
    assert tx.confirmations_required == 2
    assert tx.confirmed_by == [OWNER_A]
    assert not tx.has_call_data


def test_non_ok_status_raises():
    session = StubSession(StubResponse({"detail": "Not found."}, status_code=404))
    with pytest.raises(ExternalServiceError, match="non-OK status 404"):
        SafeTransactionServiceClient(SETTINGS, session).get_pending_transactions(SAFE)


def test_transport_error_raises():
    session = StubSession(requests.ConnectionError("connection refused"))
    with pytest.raises(ExternalServiceError, match="request error"):
        SafeTransactionServiceClient(SETTINGS, session).get_safe_nonce(SAFE)


def test_non_json_body_raises():
    session = StubSession(StubResponse(ValueError("no json"), text="<html>"))
    with pytest.raises(ExternalServiceError, match="non-JSON"):
        SafeTransactionServiceClient(SETTINGS, session).get_safe_nonce(SAFE)


def test_malformed_transaction_raises():
    bad = _raw_tx()
    del bad["safeTxHash"]
    session = StubSession(StubResponse({"nonce": 5}), StubResponse({"count": 1, "results": [bad]}))
    with pytest.raises(ExternalServiceError, match="Malformed pending transaction"):
        SafeTransactionServiceClient(SETTINGS, session).get_pending_transactions(SAFE)


def test_delegates():
    delegate = "0x" + "de" * 20
    session = StubSession(
        StubResponse({"count": 1, "results": [{"delegate": delegate, "delegator": OWNER_A, "label": "bot"}]})
    )
    delegates = SafeTransactionServiceClient(SETTINGS, session).get_delegates(SAFE)
    assert delegates[0].delegate == delegate
    assert delegates[0].label == "bot"
    assert session.calls[0]["url"] == "https://safe.example/api/v2/delegates/"


# Reputation


def test_reputation_score_and_header():
    session = StubSession(StubResponse({"address": RECIPIENT, "score": "42"}))
    client = ReputationClient(SETTINGS, session)
    assert client.reputation(RECIPIENT) == 42
    assert session.calls[0]["url"] == f"https://reputation.example/trust-score/{RECIPIENT}"
    assert session.calls[0]["headers"]["X-API-Key"] == "rep-key"


@pytest.mark.parametrize(
    "payload",
    [{"status": "not_scored"}, {"score": None}, {"score": True}, {"score": "high"}, ["not", "an", "object"]],
)
def test_reputation_bad_payloads_raise(payload):
    client = ReputationClient(SETTINGS, StubSession(StubResponse(payload)))
    with pytest.raises(ExternalServiceError):
        client.reputation(RECIPIENT)


def test_reputation_requires_url():
    with pytest.raises(ValueError):
        ReputationClient(Settings())


# Explorer verification


def test_verified_contract():
    session = StubSession(
        StubResponse(
            {
                "status": "1",
                "message": "OK",
                "result": [{"ContractName": "FiatTokenProxy", "ABI": "[]", "Implementation": OWNER_A}],
            }
        )
    )
    info = ExplorerVerificationClient(SETTINGS, session).verification_info(TOKEN)
    assert info.verified
    assert info.name == "FiatTokenProxy"
    assert info.implementation == OWNER_A
    assert session.calls[0]["params"]["action"] == "getsourcecode"
    assert session.calls[0]["params"]["apikey"] == "scan-key"


def test_unverified_contract():
    payload = {"status": "1", "result": [{"ContractName": "", "ABI": "Contract source code not verified"}]}
    info = ExplorerVerificationClient(SETTINGS, StubSession(StubResponse(payload))).verification_info(TOKEN)
    assert not info.verified
    assert info.name is None


def test_explorer_error_status_raises():
    payload = {"status": "0", "message": "NOTOK", "result": "Invalid API Key"}
    client = ExplorerVerificationClient(SETTINGS, StubSession(StubResponse(payload)))
    with pytest.raises(ExternalServiceError, match="Invalid API Key"):
        client.verification_info(TOKEN)


def test_explorer_requires_key():
    with pytest.raises(ValueError):
        ExplorerVerificationClient(Settings())
