from __future__ import annotations

__version__ = "0.1.0"

from .checks import (  # noqa: E402
    DEFAULT_CHECKS,
    CheckContext,
    CheckOutcome,
    CheckStatus,
    Lookup,
    RiskFinding,
    Severity,
    Thresholds,
)
from .decoder import (  # noqa: E402
    ActionClassification,
    AddOwner,
    ChangeThreshold,
    EnableModule,
    GenericCall,
    RemoveOwner,
    TokenTransfer,
    classify,
)
from .engine import AnalysisReport, RiskEngine, TransactionNotFound  # noqa: E402
from .report import format_report  # noqa: E402
from .tools import FUNCTION_MAP, TOOLS, analyze_pending_transaction, call_tool  # noqa: E402

__all__ = [
    "__version__",
    "classify",
    "ActionClassification",
    "AddOwner",
    "RemoveOwner",
    "ChangeThreshold",
    "EnableModule",
    "TokenTransfer",
    "GenericCall",
    "DEFAULT_CHECKS",
    "CheckContext",
    "CheckOutcome",
    "CheckStatus",
    "Lookup",
    "RiskFinding",
    "Severity",
    "Thresholds",
    "RiskEngine",
    "AnalysisReport",
    "TransactionNotFound",
    "format_report",
    "analyze_pending_transaction",
    "call_tool",
    "TOOLS",
    "FUNCTION_MAP",
]
