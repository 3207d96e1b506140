"""Read-only chain access over a JSON-RPC endpoint using web3."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, TypeVar

import requests
from web3 import Web3
from web3.exceptions import Web3Exception

from .config import Settings

T = TypeVar("T")

# Only the two view functions the analyst needs from the Safe singleton.
SAFE_OWNERSHIP_ABI: List[dict] = [
    {
        "inputs": [],
        "name": "getOwners",
        "outputs": [{"internalType": "address[]", "name": "", "type": "address[]"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getThreshold",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class ChainUnavailable(Exception):
    """Raised when the RPC endpoint cannot answer a read."""


class Web3ChainReader:
    """Balances, bytecode, chain id and Safe ownership reads.

    Implements both the ``ChainReader`` and ``SafeOwnershipSource`` capabilities.
    The underlying HTTP provider keeps a pooled session and may be shared
    between concurrent analyses.
    """

    def __init__(self, settings: Settings, w3: Optional[Web3] = None) -> None:
        self.settings = settings
        self.w3 = w3 or Web3(
            Web3.HTTPProvider(
                settings.rpc_url,
                request_kwargs={
                    "timeout": settings.request_timeout_seconds,
                    "verify": settings.request_verify_tls,
                },
            )
        )

    def get_balance(self, address: str) -> int:
        return int(self._call("eth_getBalance", lambda: self.w3.eth.get_balance(self._checksum(address))))

    def get_code(self, address: str) -> bytes:
        code = self._call("eth_getCode", lambda: self.w3.eth.get_code(self._checksum(address)))
        return bytes(code or b"")

    def get_chain_id(self) -> int:
        return int(self._call("eth_chainId", lambda: self.w3.eth.chain_id))

    def get_owners(self, safe_address: str) -> List[str]:
        contract = self._safe(safe_address)
        owners = self._call("getOwners", lambda: contract.functions.getOwners().call())
        return [str(owner) for owner in owners]

    def get_threshold(self, safe_address: str) -> int:
        contract = self._safe(safe_address)
        return int(self._call("getThreshold", lambda: contract.functions.getThreshold().call()))

    def _safe(self, safe_address: str) -> Any:
        return self.w3.eth.contract(address=self._checksum(safe_address), abi=SAFE_OWNERSHIP_ABI)

    @staticmethod
    def _checksum(address: str) -> str:
        try:
            return Web3.to_checksum_address(address)
        except (TypeError, ValueError) as e:
            raise ChainUnavailable(f"Invalid address {address!r}: {e}") from e

    @staticmethod
    def _call(name: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except (requests.RequestException, Web3Exception, OSError, ValueError) as e:
            raise ChainUnavailable(f"RPC {name} failed: {e}") from e
