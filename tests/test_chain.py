"""
Tests for Web3ChainReader with a mocked Web3 instance.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from helpers import CONTRACT_CODE, OWNER_A, OWNER_B, SAFE

from safe_analyst.chain import ChainUnavailable, Web3ChainReader
from safe_analyst.config import Settings


@pytest.fixture
def w3():
    return MagicMock()


@pytest.fixture
def reader(w3):
    return Web3ChainReader(Settings(), w3=w3)


def test_balance_and_code(reader, w3):
    w3.eth.get_balance.return_value = 123
    w3.eth.get_code.return_value = CONTRACT_CODE
    assert reader.get_balance(SAFE) == 123
    assert reader.get_code(SAFE) == CONTRACT_CODE
    # reads go out with a checksummed address
    assert w3.eth.get_balance.call_args.args[0].lower() == SAFE


def test_empty_code_is_empty_bytes(reader, w3):
    w3.eth.get_code.return_value = b""
    assert reader.get_code(SAFE) == b""


def test_owners_and_threshold(reader, w3):
    functions = w3.eth.contract.return_value.functions
    functions.getOwners.return_value.call.return_value = [OWNER_A, OWNER_B]
    functions.getThreshold.return_value.call.return_value = 2
    assert reader.get_owners(SAFE) == [OWNER_A, OWNER_B]
    assert reader.get_threshold(SAFE) == 2


def test_chain_id(reader, w3):
    w3.eth.chain_id = 84532
    assert reader.get_chain_id() == 84532


def test_rpc_failure_becomes_chain_unavailable(reader, w3):
    w3.eth.get_balance.side_effect = requests.ConnectionError("connection refused")
    with pytest.raises(ChainUnavailable, match="eth_getBalance"):
        reader.get_balance(SAFE)


def test_invalid_address(reader):
    with pytest.raises(ChainUnavailable, match="Invalid address"):
        reader.get_code("0xnot-an-address")
