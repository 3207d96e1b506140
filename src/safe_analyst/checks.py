"""Independent risk rules evaluated against one pending transaction.

Every rule is a plain function ``(CheckContext) -> CheckOutcome``. Rules never
perform I/O: the engine gathers all lookups up front and hands them over in the
context, so each rule can be exercised with a synthetic context.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from enum import Enum
from fractions import Fraction
from typing import Callable, Dict, Generic, List, Mapping, Optional, Sequence, TypeVar

from .config import COMPLEX_CALL_PARAMETER_COUNT, HIGH_VALUE_RATIO, LOW_REPUTATION_THRESHOLD
from .decoder import (
    ActionClassification,
    AddOwner,
    contains_address,
    decoded_transfer_destination,
    is_configuration_change,
    same_address,
)
from .models import PendingTransaction, VerificationInfo

T = TypeVar("T")

ETH_DECIMALS = 18

# Most digits tried when showing that a ratio is above its threshold.
MAX_PERCENT_DIGITS = 6

# Decoded method names that always alter owners or threshold, even when their
# arguments cannot be resolved into a specific classification.
OWNER_MANAGEMENT_METHODS = frozenset({"addOwnerWithThreshold", "removeOwner", "swapOwner", "changeThreshold"})


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class RiskFinding:
    severity: Severity
    message: str
    check: str


@dataclass(frozen=True)
class Annotation:
    """Favorable or contextual note attached to the action description."""

    text: str
    address: Optional[str] = None


class LookupStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_CONFIGURED = "not_configured"
    NOT_REQUESTED = "not_requested"


@dataclass(frozen=True)
class Lookup(Generic[T]):
    status: LookupStatus
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is LookupStatus.SUCCEEDED

    @classmethod
    def succeeded(cls, value: T) -> "Lookup[T]":
        return cls(LookupStatus.SUCCEEDED, value=value)

    @classmethod
    def failed(cls, error: str) -> "Lookup[T]":
        return cls(LookupStatus.FAILED, error=error)

    @classmethod
    def not_configured(cls) -> "Lookup[T]":
        return cls(LookupStatus.NOT_CONFIGURED)

    @classmethod
    def not_requested(cls) -> "Lookup[T]":
        return cls(LookupStatus.NOT_REQUESTED)

    def skip_reason(self) -> str:
        if self.status is LookupStatus.NOT_CONFIGURED:
            return "not configured"
        if self.status is LookupStatus.FAILED:
            return "service unavailable"
        return "not available"


class CheckStatus(str, Enum):
    FLAGGED = "flagged"
    PASSED = "passed"
    SKIPPED = "skipped"
    NOT_APPLICABLE = "not_applicable"


@dataclass
class CheckOutcome:
    check: str
    status: CheckStatus
    findings: List[RiskFinding] = field(default_factory=list)
    notes: List[Annotation] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Thresholds:
    high_value_ratio: float = HIGH_VALUE_RATIO
    low_reputation_threshold: int = LOW_REPUTATION_THRESHOLD
    complex_call_parameter_count: int = COMPLEX_CALL_PARAMETER_COUNT


@dataclass(frozen=True)
class CheckContext:
    safe_address: str
    tx: PendingTransaction
    classification: ActionClassification
    thresholds: Thresholds = Thresholds()
    owners: Lookup[List[str]] = Lookup.not_requested()
    safe_balance: Lookup[int] = Lookup.not_requested()
    destination_code: Lookup[bytes] = Lookup.not_requested()
    reputations: Mapping[str, Lookup[int]] = field(default_factory=dict)
    verification: Lookup[VerificationInfo] = Lookup.not_requested()

    @property
    def destination_is_contract(self) -> Optional[bool]:
        """True/False once bytecode is known, None when the code read failed."""
        if not self.destination_code.ok:
            return None
        return len(self.destination_code.value or b"") > 0

    def reputation_of(self, address: str) -> Lookup[int]:
        return self.reputations.get(address.lower(), Lookup.not_requested())


Check = Callable[[CheckContext], CheckOutcome]


def format_eth(wei: int) -> str:
    with localcontext() as dec:
        # exact for any wei amount: never round to the default 28 digits
        dec.prec = max(dec.prec, len(str(abs(wei))))
        return format(Decimal(wei).scaleb(-ETH_DECIMALS).normalize(), "f")


def format_percent_over(ratio: Fraction, threshold: Fraction) -> str:
    """Render ``ratio`` as a percentage that visibly exceeds ``threshold``.

    Digits are added until the rounded value is above the threshold; past
    MAX_PERCENT_DIGITS the text becomes ">{threshold}%".
    """
    percent, limit = ratio * 100, threshold * 100
    for digits in range(2, MAX_PERCENT_DIGITS + 1):
        rounded = round(percent, digits)
        if rounded > limit:
            return _decimal_text(rounded, digits) + "%"
    return ">" + _decimal_text(limit, MAX_PERCENT_DIGITS) + "%"


def _decimal_text(value: Fraction, digits: int) -> str:
    with localcontext() as dec:
        dec.prec = max(dec.prec, len(str(abs(value.numerator))) + digits)
        text = format(Decimal(value.numerator) / Decimal(value.denominator), f".{digits}f")
    return text.rstrip("0").rstrip(".") if "." in text else text


class _OutcomeBuilder:
    def __init__(self, check: str) -> None:
        self.check = check
        self.findings: List[RiskFinding] = []
        self.notes: List[Annotation] = []
        self.skipped: List[str] = []

    def flag(self, severity: Severity, message: str) -> None:
        self.findings.append(RiskFinding(severity=severity, message=message, check=self.check))

    def note(self, text: str, address: Optional[str] = None) -> None:
        self.notes.append(Annotation(text=text, address=address))

    def skip(self, reason: str) -> None:
        self.skipped.append(reason)

    def build(self) -> CheckOutcome:
        if self.findings:
            status = CheckStatus.FLAGGED
        elif self.skipped:
            status = CheckStatus.SKIPPED
        else:
            status = CheckStatus.PASSED
        return CheckOutcome(self.check, status, list(self.findings), list(self.notes), list(self.skipped))


def _not_applicable(check: str) -> CheckOutcome:
    return CheckOutcome(check, CheckStatus.NOT_APPLICABLE)


def _skipped(check: str, reason: str) -> CheckOutcome:
    return CheckOutcome(check, CheckStatus.SKIPPED, skipped=[reason])


def _apply_reputation(out: _OutcomeBuilder, ctx: CheckContext, address: str, label: str) -> None:
    lookup = ctx.reputation_of(address)
    if not lookup.ok:
        out.skip(f"reputation of {address}: {lookup.skip_reason()}")
        out.note(f"Reputation check skipped for {label} {address} ({lookup.skip_reason()})", address)
        return
    score = int(lookup.value)
    if score < ctx.thresholds.low_reputation_threshold:
        out.flag(Severity.WARNING, f"Low reputation score for {label} {address}: {score}")
    else:
        out.note(f"{label.capitalize()} {address} has a reputation score of {score}", address)


def check_configuration_change(ctx: CheckContext) -> CheckOutcome:
    method = ctx.tx.decoded.method if ctx.tx.decoded is not None else None
    if not is_configuration_change(ctx.classification) and method not in OWNER_MANAGEMENT_METHODS:
        return _not_applicable("configuration_change")
    out = _OutcomeBuilder("configuration_change")
    out.flag(Severity.WARNING, "This transaction modifies Safe ownership/configuration")
    return out.build()


def check_new_owner_reputation(ctx: CheckContext) -> CheckOutcome:
    if not isinstance(ctx.classification, AddOwner):
        return _not_applicable("new_owner_reputation")
    out = _OutcomeBuilder("new_owner_reputation")
    _apply_reputation(out, ctx, ctx.classification.address, "new owner")
    return out.build()


def check_high_value_transfer(ctx: CheckContext) -> CheckOutcome:
    value = ctx.tx.value
    if value <= 0:
        return _not_applicable("high_value_transfer")
    if not ctx.safe_balance.ok:
        return _skipped("high_value_transfer", f"Safe balance: {ctx.safe_balance.skip_reason()}")

    out = _OutcomeBuilder("high_value_transfer")
    balance = int(ctx.safe_balance.value)
    if balance <= 0:
        out.flag(
            Severity.WARNING,
            f"High-value transfer: {format_eth(value)} ETH while the Safe balance is 0 ETH",
        )
        return out.build()

    configured = ctx.thresholds.high_value_ratio
    if not math.isfinite(configured) or configured <= 0:
        return _skipped("high_value_transfer", f"high-value ratio: invalid setting {configured!r}")
    threshold = Fraction(configured).limit_denominator()
    ratio = Fraction(value, balance)
    if ratio > threshold:
        percent = format_percent_over(ratio, threshold)
        out.flag(Severity.WARNING, f"High-value transfer: {format_eth(value)} ETH ({percent} of Safe balance)")
    return out.build()


def check_contract_destination(ctx: CheckContext) -> CheckOutcome:
    is_contract = ctx.destination_is_contract
    if is_contract is None:
        return _skipped("contract_destination", f"destination type: {ctx.destination_code.skip_reason()}")
    if not is_contract:
        return _not_applicable("contract_destination")

    out = _OutcomeBuilder("contract_destination")
    tx = ctx.tx
    if same_address(decoded_transfer_destination(tx), tx.to):
        out.flag(
            Severity.CRITICAL,
            "ERC20 transfer to the token contract itself: funds will likely be lost",
        )
    if tx.value > 0 and not tx.has_call_data:
        out.flag(
            Severity.CRITICAL,
            "Direct ETH transfer to contract without a function call: funds may be lost",
        )
    return out.build()


def check_eoa_destination(ctx: CheckContext) -> CheckOutcome:
    is_contract = ctx.destination_is_contract
    if is_contract is None:
        return _skipped("eoa_destination", f"destination type: {ctx.destination_code.skip_reason()}")
    if is_contract:
        return _not_applicable("eoa_destination")

    out = _OutcomeBuilder("eoa_destination")
    to = ctx.tx.to
    # Owner membership only matters when value actually leaves the Safe.
    if ctx.tx.value > 0:
        if not ctx.owners.ok:
            out.skip(f"Safe owners: {ctx.owners.skip_reason()}")
        elif contains_address(ctx.owners.value or [], to):
            out.note(f"Recipient {to} is an owner of this Safe", to)
        else:
            out.flag(Severity.WARNING, f"Transfer address {to} is not a Safe owner")
    _apply_reputation(out, ctx, to, "recipient")
    return out.build()


def check_contract_verification(ctx: CheckContext) -> CheckOutcome:
    is_contract = ctx.destination_is_contract
    if is_contract is None:
        return _skipped("contract_verification", f"destination type: {ctx.destination_code.skip_reason()}")
    if not is_contract:
        return _not_applicable("contract_verification")
    lookup = ctx.verification
    if not lookup.ok:
        # An unanswered lookup is not evidence of risk.
        return _skipped("contract_verification", f"explorer verification: {lookup.skip_reason()}")

    out = _OutcomeBuilder("contract_verification")
    info = lookup.value
    if not info.verified:
        out.flag(Severity.WARNING, "Contract not verified on Etherscan/Basescan")
    else:
        out.note(f"Contract Name: {info.name}", ctx.tx.to)
        if info.implementation:
            out.note(f"Implementation: {info.implementation}", info.implementation)
    return out.build()


def check_call_complexity(ctx: CheckContext) -> CheckOutcome:
    decoded = ctx.tx.decoded
    if decoded is None:
        return _not_applicable("call_complexity")
    out = _OutcomeBuilder("call_complexity")
    count = len(decoded.parameters)
    if count > ctx.thresholds.complex_call_parameter_count:
        out.flag(Severity.INFO, f"Complex transaction with {count} parameters")
    return out.build()


DEFAULT_CHECKS: Sequence[Check] = (
    check_configuration_change,
    check_new_owner_reputation,
    check_high_value_transfer,
    check_contract_destination,
    check_eoa_destination,
    check_contract_verification,
    check_call_complexity,
)


def run_checks(ctx: CheckContext, checks: Sequence[Check] = DEFAULT_CHECKS) -> List[CheckOutcome]:
    return [check(ctx) for check in checks]


def severity_counts(findings: Sequence[RiskFinding]) -> Dict[str, int]:
    counts = {severity.value: 0 for severity in Severity}
    for finding in findings:
        counts[finding.severity.value] += 1
    return counts
