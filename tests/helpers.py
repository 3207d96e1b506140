"""
In-memory stand-ins for the analyst's external collaborators.

Each fake records the calls it receives so tests can assert on which lookups
the engine actually issued.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from safe_analyst.chain import ChainUnavailable
from safe_analyst.dal import ExternalServiceError
from safe_analyst.models import PendingTransaction, PendingTransactionPage, SafeDelegate, VerificationInfo

ETH = 10**18

SAFE = "0x" + "5a" * 20
OWNER_A = "0x" + "a1" * 20
OWNER_B = "0x" + "b2" * 20
RECIPIENT = "0x" + "c3" * 20
TOKEN = "0x" + "d4" * 20
NEW_OWNER = "0x" + "e5" * 20
TX_HASH = "0x" + "ab" * 32

CONTRACT_CODE = b"\x60\x80\x60\x40"


def make_tx(**overrides: Any) -> PendingTransaction:
    """Build a pending transaction from Safe Transaction Service style (camelCase) fields."""
    payload: Dict[str, Any] = {
        "safeTxHash": TX_HASH,
        "to": RECIPIENT,
        "value": "0",
        "data": None,
        "dataDecoded": None,
        "proposer": OWNER_A,
        "submissionDate": "2024-01-02T03:04:05Z",
        "nonce": 7,
        "confirmations": [{"owner": OWNER_A, "submissionDate": "2024-01-02T03:04:05Z"}],
        "confirmationsRequired": 2,
    }
    payload.update(overrides)
    return PendingTransaction.model_validate(payload)


def decoded(method: str, *params: Any) -> Dict[str, Any]:
    """dataDecoded payload; each param is a value or a (name, type, value) tuple."""
    parameters = []
    for param in params:
        if isinstance(param, tuple):
            name, type_, value = param
            parameters.append({"name": name, "type": type_, "value": value})
        else:
            parameters.append({"value": param})
    return {"method": method, "parameters": parameters}


class FakeDirectory:
    def __init__(
        self,
        transactions: Iterable[PendingTransaction] = (),
        delegates: Iterable[SafeDelegate] = (),
        *,
        fail: bool = False,
        fail_delegates: bool = False,
    ) -> None:
        self.transactions = list(transactions)
        self.delegates = list(delegates)
        self.fail = fail
        self.fail_delegates = fail_delegates
        self.calls: List[str] = []

    def get_pending_transactions(self, safe_address: str) -> PendingTransactionPage:
        self.calls.append(safe_address)
        if self.fail:
            raise ExternalServiceError("Safe Transaction Service non-OK status 503: unavailable")
        return PendingTransactionPage(count=len(self.transactions), results=self.transactions)

    def get_delegates(self, safe_address: str) -> List[SafeDelegate]:
        if self.fail_delegates:
            raise ExternalServiceError("Safe Transaction Service request error: timeout")
        return list(self.delegates)


class FakeChain:
    def __init__(
        self,
        balance: int = 10 * ETH,
        codes: Optional[Dict[str, bytes]] = None,
        *,
        fail_balance: bool = False,
        fail_code: bool = False,
        chain_id: Optional[int] = 84532,
    ) -> None:
        self.balance = balance
        self.chain_id = chain_id
        self.codes = {k.lower(): v for k, v in (codes or {}).items()}
        self.fail_balance = fail_balance
        self.fail_code = fail_code
        self.balance_calls: List[str] = []
        self.code_calls: List[str] = []

    def get_balance(self, address: str) -> int:
        self.balance_calls.append(address)
        if self.fail_balance:
            raise ChainUnavailable("RPC eth_getBalance failed: timeout")
        return self.balance

    def get_code(self, address: str) -> bytes:
        self.code_calls.append(address)
        if self.fail_code:
            raise ChainUnavailable("RPC eth_getCode failed: timeout")
        return self.codes.get(address.lower(), b"")

    def get_chain_id(self) -> int:
        if self.chain_id is None:
            raise ChainUnavailable("RPC eth_chainId failed: connection refused")
        return self.chain_id


class FakeOwnership:
    def __init__(self, owners: Iterable[str] = (OWNER_A, OWNER_B), threshold: int = 2, *, fail: bool = False):
        self.owners = list(owners)
        self.threshold = threshold
        self.fail = fail

    def get_owners(self, safe_address: str) -> List[str]:
        if self.fail:
            raise ChainUnavailable("RPC getOwners failed: connection refused")
        return list(self.owners)

    def get_threshold(self, safe_address: str) -> int:
        if self.fail:
            raise ChainUnavailable("RPC getThreshold failed: connection refused")
        return self.threshold


class FakeReputation:
    def __init__(self, scores: Optional[Dict[str, int]] = None, *, default: int = 80, fail: bool = False):
        self.scores = {k.lower(): v for k, v in (scores or {}).items()}
        self.default = default
        self.fail = fail
        self.calls: List[str] = []

    def reputation(self, address: str) -> int:
        self.calls.append(address)
        if self.fail:
            raise ExternalServiceError("Reputation service request error: timeout")
        return self.scores.get(address.lower(), self.default)


class FakeVerification:
    def __init__(self, info: Optional[VerificationInfo] = None, *, fail: bool = False):
        self.info = info or VerificationInfo(verified=True, name="TestToken")
        self.fail = fail
        self.calls: List[str] = []

    def verification_info(self, address: str) -> VerificationInfo:
        self.calls.append(address)
        if self.fail:
            raise ExternalServiceError("Explorer API error: Max rate limit reached")
        return self.info


class StubResponse:
    """Minimal requests.Response look-alike."""

    def __init__(self, payload: Any = None, status_code: int = 200, text: Optional[str] = None):
        self.payload = payload
        self.status_code = status_code
        self.text = text if text is not None else str(payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class StubSession:
    """Replays queued responses and records each GET."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, **kwargs: Any) -> StubResponse:
        self.calls.append({"url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
