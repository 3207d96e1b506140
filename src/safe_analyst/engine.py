"""Risk analysis pipeline for pending Safe transactions.

fetch -> classify -> gather lookups -> run checks -> AnalysisReport
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .chain import ChainUnavailable
from .checks import (
    DEFAULT_CHECKS,
    Annotation,
    Check,
    CheckContext,
    CheckOutcome,
    CheckStatus,
    Lookup,
    RiskFinding,
    Thresholds,
    run_checks,
    severity_counts,
)
from .dal import ExternalServiceError
from .decoder import ActionClassification, AddOwner, classify
from .logging_conf import log_fields
from .models import PendingTransaction, SafeDelegate
from .sources import (
    ChainReader,
    PendingTransactionDirectory,
    ReputationSource,
    SafeOwnershipSource,
    VerificationSource,
)

logger = logging.getLogger(__name__)

# Errors that degrade a single lookup instead of aborting the analysis.
DEGRADABLE_ERRORS = (ChainUnavailable, ExternalServiceError)

KNOWN_CONTRACTS: Dict[str, str] = {
    "0x3e5c63644e683549055b9be8653de26e0b4cd36e": "Safe Singleton v1.3.0",
    "0xd9db270c1b5e3bd161e8c8503c55ceabee709552": "Safe Singleton v1.3.0",
    "0x69f4d1788e39c87893c980c06edf4b7f686e2938": "Safe Allowance Module",
}


class TransactionNotFound(LookupError):
    def __init__(self, safe_address: str, safe_tx_hash: str) -> None:
        super().__init__(f"Transaction {safe_tx_hash} not found in pending transactions.")
        self.safe_address = safe_address
        self.safe_tx_hash = safe_tx_hash


@dataclass
class AnalysisReport:
    safe_address: str
    transaction: PendingTransaction
    classification: ActionClassification
    findings: List[RiskFinding] = field(default_factory=list)
    notes: List[Annotation] = field(default_factory=list)
    outcomes: List[CheckOutcome] = field(default_factory=list)
    owners: Lookup[List[str]] = Lookup.not_requested()
    threshold: Lookup[int] = Lookup.not_requested()
    address_book: Dict[str, str] = field(default_factory=dict)

    @property
    def skipped_checks(self) -> List[str]:
        return [o.check for o in self.outcomes if o.status is CheckStatus.SKIPPED]

    def name_of(self, address: Optional[str]) -> Optional[str]:
        if not address:
            return None
        return self.address_book.get(address.lower())


def build_address_book(delegates: Sequence[SafeDelegate] = ()) -> Dict[str, str]:
    book = dict(KNOWN_CONTRACTS)
    for delegate in delegates:
        book[delegate.delegate.lower()] = f"Delegate (added by {delegate.delegator or 'unknown'})"
    return book


class RiskEngine:
    """Stateless analyzer; safe to share between concurrent requests.

    Reputation and verification sources are optional; when absent the matching
    checks are recorded as skipped ("not configured").
    """

    def __init__(
        self,
        directory: PendingTransactionDirectory,
        chain: ChainReader,
        ownership: SafeOwnershipSource,
        *,
        reputation: Optional[ReputationSource] = None,
        verification: Optional[VerificationSource] = None,
        thresholds: Optional[Thresholds] = None,
        checks: Sequence[Check] = DEFAULT_CHECKS,
        max_workers: int = 4,
    ) -> None:
        self.directory = directory
        self.chain = chain
        self.ownership = ownership
        self.reputation = reputation
        self.verification = verification
        self.thresholds = thresholds or Thresholds()
        self.checks = tuple(checks)
        self.max_workers = max(1, max_workers)

    def find_transaction(self, safe_address: str, safe_tx_hash: str) -> PendingTransaction:
        page = self.directory.get_pending_transactions(safe_address)
        wanted = safe_tx_hash.strip().lower()
        for tx in page.results:
            if tx.safe_tx_hash.lower() == wanted:
                return tx
        raise TransactionNotFound(safe_address, safe_tx_hash)

    def analyze(self, safe_address: str, safe_tx_hash: str) -> AnalysisReport:
        tx = self.find_transaction(safe_address, safe_tx_hash)
        classification = classify(tx)

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="lookup") as pool:
            first: Dict[str, Future] = {
                "owners": self._submit(pool, self.ownership.get_owners, safe_address),
                "threshold": self._submit(pool, self.ownership.get_threshold, safe_address),
                "code": self._submit(pool, self.chain.get_code, tx.to),
                "delegates": self._submit(pool, self.directory.get_delegates, safe_address),
            }
            if tx.value > 0:
                first["balance"] = self._submit(pool, self.chain.get_balance, safe_address)

            reputation_futures: Dict[str, Optional[Future]] = {}
            if isinstance(classification, AddOwner):
                self._submit_reputation(pool, reputation_futures, classification.address)

            lookups = {name: self._collect(name, future) for name, future in first.items()}

            code: Lookup[bytes] = lookups["code"]
            verification: Lookup[Any] = Lookup.not_requested()
            verification_future: Optional[Future] = None
            if code.ok and len(code.value or b"") == 0:
                self._submit_reputation(pool, reputation_futures, tx.to)
            elif code.ok:
                if self.verification is None:
                    verification = Lookup.not_configured()
                else:
                    verification_future = self._submit(pool, self.verification.verification_info, tx.to)

            reputations: Dict[str, Lookup[int]] = {}
            for address, future in reputation_futures.items():
                if future is None:
                    reputations[address] = Lookup.not_configured()
                else:
                    reputations[address] = self._collect(f"reputation:{address}", future)
            if verification_future is not None:
                verification = self._collect("verification", verification_future)

        ctx = CheckContext(
            safe_address=safe_address,
            tx=tx,
            classification=classification,
            thresholds=self.thresholds,
            owners=lookups["owners"],
            safe_balance=lookups.get("balance", Lookup.not_requested()),
            destination_code=code,
            reputations=reputations,
            verification=verification,
        )
        outcomes = run_checks(ctx, self.checks)

        delegates: Lookup[List[SafeDelegate]] = lookups["delegates"]
        report = AnalysisReport(
            safe_address=safe_address,
            transaction=tx,
            classification=classification,
            findings=[finding for outcome in outcomes for finding in outcome.findings],
            notes=[note for outcome in outcomes for note in outcome.notes],
            outcomes=outcomes,
            owners=lookups["owners"],
            threshold=lookups["threshold"],
            address_book=build_address_book(delegates.value if delegates.ok else ()),
        )
        logger.info(
            "transaction analyzed",
            extra=log_fields(
                safe_tx_hash=tx.safe_tx_hash,
                classification=classification.kind,
                findings=severity_counts(report.findings),
                skipped_checks=report.skipped_checks,
            ),
        )
        return report

    def _submit_reputation(
        self, pool: ThreadPoolExecutor, futures: Dict[str, Optional[Future]], address: str
    ) -> None:
        key = address.lower()
        if key in futures:
            return
        if self.reputation is None:
            futures[key] = None
        else:
            futures[key] = self._submit(pool, self.reputation.reputation, address)

    @staticmethod
    def _submit(pool: ThreadPoolExecutor, fn: Callable[..., Any], *args: Any) -> Future:
        return pool.submit(fn, *args)

    @staticmethod
    def _collect(name: str, future: Future) -> Lookup[Any]:
        try:
            return Lookup.succeeded(future.result())
        except DEGRADABLE_ERRORS as e:
            logger.warning(
                "lookup degraded",
                extra=log_fields(lookup=name, error=str(e), error_type=type(e).__name__),
            )
            return Lookup.failed(str(e))
