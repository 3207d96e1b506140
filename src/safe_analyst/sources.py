"""Narrow capability interfaces the risk engine depends on.

Real implementations live in :mod:`safe_analyst.chain` (web3) and
:mod:`safe_analyst.dal` (HTTP services); tests substitute deterministic fakes.
"""

from __future__ import annotations

from typing import List, Protocol

from .models import PendingTransactionPage, SafeDelegate, VerificationInfo


class ChainReader(Protocol):
    def get_balance(self, address: str) -> int: ...

    def get_code(self, address: str) -> bytes: ...

    def get_chain_id(self) -> int: ...


class SafeOwnershipSource(Protocol):
    def get_owners(self, safe_address: str) -> List[str]: ...

    def get_threshold(self, safe_address: str) -> int: ...


class ReputationSource(Protocol):
    def reputation(self, address: str) -> int: ...


class VerificationSource(Protocol):
    def verification_info(self, address: str) -> VerificationInfo: ...


class PendingTransactionDirectory(Protocol):
    def get_pending_transactions(self, safe_address: str) -> PendingTransactionPage: ...

    def get_delegates(self, safe_address: str) -> List[SafeDelegate]: ...
