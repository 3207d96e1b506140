"""Render an AnalysisReport into the text returned to the conversation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from .checks import RiskFinding, Severity, format_eth
from .decoder import (
    ActionClassification,
    AddOwner,
    ChangeThreshold,
    EnableModule,
    GenericCall,
    RemoveOwner,
    TokenTransfer,
)
from .engine import AnalysisReport

NO_RISK_SENTENCE = "✅ No significant risk factors identified"

SEVERITY_MARKERS = {
    Severity.INFO: "ℹ️",
    Severity.WARNING: "⚠️",
    Severity.CRITICAL: "🛑",
}


def _human_time(value: Optional[datetime]) -> str:
    if value is None:
        return "n/a"
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def _labelled(report: AnalysisReport, address: Optional[str]) -> str:
    if not address:
        return "unknown"
    name = report.name_of(address)
    return f"{name} ({address})" if name else address


def describe_action(classification: ActionClassification, report: Optional[AnalysisReport] = None) -> str:
    def label(address: str) -> str:
        return _labelled(report, address) if report is not None else address

    if isinstance(classification, AddOwner):
        return f"Add new owner {label(classification.address)} with threshold {classification.new_threshold}"
    if isinstance(classification, RemoveOwner):
        return (
            f"Remove owner {label(classification.address)} "
            f"and change threshold to {classification.new_threshold}"
        )
    if isinstance(classification, ChangeThreshold):
        return f"Change confirmation threshold to {classification.new_threshold}"
    if isinstance(classification, EnableModule):
        return f"Enable module at address {label(classification.module_address)}"
    if isinstance(classification, TokenTransfer):
        if classification.token is None:
            return f"Transfer {format_eth(classification.amount)} ETH to {label(classification.destination)}"
        return (
            f"Transfer {classification.amount:,} base units of token {label(classification.token)} "
            f"to {label(classification.destination)}"
        )
    if isinstance(classification, GenericCall):
        if classification.method:
            return (
                f"Call method '{classification.method}' on contract {label(classification.destination)} "
                f"({classification.parameter_count} parameter(s))"
            )
        if report is not None and not report.transaction.has_call_data:
            return f"Empty call to {label(classification.destination)} (no value and no call data)"
        return f"Call to {label(classification.destination)} with no decodable method"
    return "Unknown transaction type"


def _configuration_context(report: AnalysisReport) -> List[str]:
    if not isinstance(report.classification, (AddOwner, RemoveOwner, ChangeThreshold)):
        return []
    if not (report.owners.ok and report.threshold.ok):
        return []
    owners = report.owners.value or []
    return [f"Current configuration: {report.threshold.value} of {len(owners)} owner(s) must confirm"]


def _format_finding(finding: RiskFinding) -> str:
    return f"{SEVERITY_MARKERS[finding.severity]} [{finding.severity.value}] {finding.message}"


def format_report(report: AnalysisReport) -> str:
    tx = report.transaction
    confirmed = tx.confirmation_count
    required = tx.confirmations_required
    confirmed_by = ", ".join(_labelled(report, addr) for addr in tx.confirmed_by) or "none"

    lines: List[str] = [f"Transaction Analysis for {tx.safe_tx_hash}:", ""]

    lines.append("OVERVIEW")
    lines.append(f"- Proposed by: {_labelled(report, tx.proposer)}")
    lines.append(f"- Proposed at: {_human_time(tx.submitted_at)}")
    lines.append(f"- Status: Pending ({confirmed}/{required} confirmations)")
    lines.append(f"- Confirmed by: {confirmed_by}")
    lines.append("")

    lines.append("ACTION")
    lines.append(describe_action(report.classification, report))
    lines.extend(_configuration_context(report))
    lines.extend(note.text for note in report.notes)
    lines.append("")

    lines.append("DETAILS")
    lines.append(f"- To: {_labelled(report, tx.to)}")
    lines.append(f"- Value: {format_eth(tx.value)} ETH")
    lines.append(f"- Nonce: {tx.nonce if tx.nonce is not None else 'n/a'}")
    if tx.decoded is not None:
        lines.append(f"- Method: {tx.decoded.method}")
    lines.append("")

    lines.append("RISK ANALYSIS")
    if report.findings:
        lines.extend(_format_finding(finding) for finding in report.findings)
    else:
        lines.append(NO_RISK_SENTENCE)
    lines.append("")

    lines.append("CONFIRMATIONS NEEDED")
    if confirmed < required:
        lines.append(f"Needs {required - confirmed} more confirmation(s) before it can be executed")
    else:
        lines.append("Has enough confirmations and can be executed")

    return "\n".join(lines)
