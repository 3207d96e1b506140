"""Tool-call surface consumed by the chat agent's dispatch layer.

``TOOLS`` is an OpenAI-style function schema list and ``FUNCTION_MAP`` maps
tool names to callables returning the text relayed back to the chat.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .engine import RiskEngine, TransactionNotFound
from .logging_conf import log_fields
from .report import format_report

logger = logging.getLogger(__name__)

ANALYZE_TOOL_NAME = "analyze_pending_transaction"
ANALYZE_OPERATION = "Analyze transaction"

_HEX = set("0123456789abcdef")


def validate_address(address: Any) -> str:
    """Validate and normalize an EVM address (0x + 40 hex digits)."""
    if not isinstance(address, str) or not address.strip():
        raise ValueError("Address cannot be empty")
    addr = address.strip().lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr
    hex_part = addr[2:]
    invalid = sorted({c for c in hex_part if c not in _HEX})
    if invalid:
        raise ValueError(f"Invalid address format: '{address}' contains non-hex characters: {invalid}")
    if len(hex_part) != 40:
        raise ValueError(
            f"Invalid address length: '{address}' has {len(hex_part)} hex digits (expected exactly 40)"
        )
    return addr


def normalize_tx_hash(tx_hash: Any) -> str:
    if not isinstance(tx_hash, str):
        raise ValueError("'safe_tx_hash' must be a hexadecimal string")
    candidate = tx_hash.strip().lower()
    if not candidate:
        raise ValueError("'safe_tx_hash' is required")
    if not candidate.startswith("0x"):
        candidate = "0x" + candidate
    if len(candidate) != 66:
        raise ValueError("'safe_tx_hash' must be 32 bytes (0x prefixed with 64 hex characters)")
    if not all(ch in _HEX for ch in candidate[2:]):
        raise ValueError("'safe_tx_hash' contains non-hexadecimal characters")
    return candidate


def operation_error(detail: Any, operation: str = ANALYZE_OPERATION) -> str:
    """Single-line user-facing error prefixed by the failing operation."""
    text = " ".join(str(detail).split()) or "unknown error"
    return f"{operation}: {text}"


def analyze_pending_transaction(
    safe_address: str,
    safe_tx_hash: str,
    *,
    engine: Optional[RiskEngine] = None,
) -> str:
    """Analyze one pending Safe transaction and return the formatted report.

    Never raises: failures come back as a one-line message for the chat.
    """
    try:
        safe = validate_address(safe_address)
        tx_hash = normalize_tx_hash(safe_tx_hash)
        if engine is None:
            from .sdk import get_engine

            engine = get_engine()
        report = engine.analyze(safe, tx_hash)
    except TransactionNotFound as e:
        return operation_error(e)
    except Exception as e:  # chat boundary: report, never leak a traceback
        logger.exception(
            "analysis failed",
            extra=log_fields(safe_address=safe_address, safe_tx_hash=safe_tx_hash),
        )
        return operation_error(f"Error analyzing transaction: {e}")
    return format_report(report)


TOOLS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": ANALYZE_TOOL_NAME,
            "description": (
                "Analyzes a pending Safe transaction to explain what it does. Returns who proposed it "
                "and when, the current confirmation status, what the transaction will do if executed, "
                "and any risk considerations."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "safe_address": {
                        "type": "string",
                        "description": "Address of the Safe.",
                    },
                    "safe_tx_hash": {
                        "type": "string",
                        "description": "Hash of the pending transaction to analyze.",
                    },
                },
                "required": ["safe_address", "safe_tx_hash"],
            },
        },
    },
]

FUNCTION_MAP: Dict[str, Callable[..., str]] = {
    ANALYZE_TOOL_NAME: analyze_pending_transaction,
}

# camelCase names used by the JavaScript agent toolkit
_ARGUMENT_ALIASES = {"safeAddress": "safe_address", "safeTxHash": "safe_tx_hash"}


def call_tool(
    name: str,
    arguments: Mapping[str, Any] | str | None = None,
    *,
    engine: Optional[RiskEngine] = None,
) -> str:
    """Dispatch a tool call by name; arguments may be a mapping or a JSON string."""
    fn = FUNCTION_MAP.get(name)
    if fn is None:
        return operation_error(f"Unknown tool '{name}'", operation="Tool call")
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments or "{}")
        except ValueError as e:
            return operation_error(f"Invalid tool arguments: {e}")
    if arguments is not None and not isinstance(arguments, Mapping):
        return operation_error("Invalid tool arguments: expected an object")
    kwargs = {_ARGUMENT_ALIASES.get(k, k): v for k, v in (arguments or {}).items()}
    missing = [key for key in ("safe_address", "safe_tx_hash") if key not in kwargs]
    if missing:
        return operation_error(f"Missing required argument(s): {', '.join(missing)}")
    return fn(kwargs["safe_address"], kwargs["safe_tx_hash"], engine=engine)
