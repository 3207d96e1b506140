"""SDK-style facade wiring the risk engine to real services.

Usage:

    from safe_analyst.report import format_report
    from safe_analyst.sdk import analyze

    report = analyze("0xSafe...", "0xSafeTxHash...")
    print(format_report(report))

Environment variables: see safe_analyst.config.Settings for all available options.
"""
from functools import lru_cache
from typing import Optional

from .chain import Web3ChainReader
from .checks import Thresholds
from .config import Settings, get_settings
from .dal import ExplorerVerificationClient, ReputationClient, SafeTransactionServiceClient
from .engine import AnalysisReport, RiskEngine

__all__ = ["build_engine", "get_engine", "analyze"]


def build_engine(settings: Optional[Settings] = None) -> RiskEngine:
    """Create an engine whose optional checks follow the configured API keys."""
    settings = settings or get_settings()
    chain = Web3ChainReader(settings)
    reputation = ReputationClient(settings) if settings.reputation_enabled else None
    verification = ExplorerVerificationClient(settings) if settings.verification_enabled else None
    return RiskEngine(
        SafeTransactionServiceClient(settings),
        chain,
        chain,
        reputation=reputation,
        verification=verification,
        thresholds=Thresholds(
            high_value_ratio=settings.high_value_ratio,
            low_reputation_threshold=settings.low_reputation_threshold,
            complex_call_parameter_count=settings.complex_call_parameter_count,
        ),
        max_workers=settings.lookup_workers,
    )


@lru_cache(maxsize=1)
def get_engine() -> RiskEngine:
    """Process-wide engine built from environment settings (get_engine.cache_clear() to rebuild)."""
    return build_engine(get_settings())


def analyze(safe_address: str, safe_tx_hash: str, *, engine: Optional[RiskEngine] = None) -> AnalysisReport:
    return (engine or get_engine()).analyze(safe_address, safe_tx_hash)
