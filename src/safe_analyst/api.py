"""
FastAPI application exposing the analyst to the chat backend.

Run with: uvicorn safe_analyst.api:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, HTTPException

from . import __version__
from .chain import ChainUnavailable
from .config import Settings, get_settings
from .engine import RiskEngine, TransactionNotFound
from .logging_conf import init_logging, log_fields
from .report import format_report
from .schemas import (
    AnalysisResponse,
    CheckOutcomeSchema,
    FindingSchema,
    HealthResponse,
    ToolCallRequest,
    ToolCallResponse,
)
from .sdk import get_engine
from .security import require_api_key
from .tools import ANALYZE_OPERATION, call_tool, normalize_tx_hash, operation_error, validate_address

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    init_logging(get_settings().log_level)
    yield


app = FastAPI(title="Safe Transaction Analyst", version=__version__, lifespan=lifespan)


def engine_dependency() -> RiskEngine:
    return get_engine()


@app.get("/health", response_model=HealthResponse)
def health(
    settings: Settings = Depends(get_settings),
    engine: RiskEngine = Depends(engine_dependency),
) -> HealthResponse:
    """Report "degraded" when the RPC endpoint is down or serves another chain than NETWORK_ID."""
    rpc_chain_id: Optional[int] = None
    detail: Optional[str] = None
    try:
        rpc_chain_id = engine.chain.get_chain_id()
    except ChainUnavailable as e:
        detail = str(e)
    else:
        if rpc_chain_id != settings.chain_id:
            detail = (
                f"RPC endpoint serves chain {rpc_chain_id}, "
                f"expected {settings.chain_id} for {settings.network_id}"
            )
    if detail:
        logger.warning("health check degraded", extra=log_fields(detail=detail))
    return HealthResponse(
        status="degraded" if detail else "ok",
        version=__version__,
        environment=settings.environment,
        network_id=settings.network_id,
        chain_id=settings.chain_id,
        rpc_chain_id=rpc_chain_id,
        detail=detail,
    )


@app.post(
    "/safes/{safe_address}/transactions/{safe_tx_hash}/analysis",
    response_model=AnalysisResponse,
    dependencies=[Depends(require_api_key)],
)
def analyze_transaction(
    safe_address: str,
    safe_tx_hash: str,
    engine: RiskEngine = Depends(engine_dependency),
) -> AnalysisResponse:
    try:
        safe = validate_address(safe_address)
        tx_hash = normalize_tx_hash(safe_tx_hash)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=operation_error(e)) from e

    try:
        report = engine.analyze(safe, tx_hash)
    except TransactionNotFound as e:
        raise HTTPException(status_code=404, detail=operation_error(e)) from e
    except Exception as e:  # upstream directory failures and the like
        logger.exception("analysis failed", extra=log_fields(safe_tx_hash=tx_hash))
        raise HTTPException(
            status_code=502,
            detail=operation_error(f"Error analyzing transaction: {e}", ANALYZE_OPERATION),
        ) from e

    return AnalysisResponse(
        safe_address=safe,
        safe_tx_hash=report.transaction.safe_tx_hash,
        classification=report.classification.kind,
        findings=[
            FindingSchema(severity=f.severity.value, message=f.message, check=f.check) for f in report.findings
        ],
        checks=[
            CheckOutcomeSchema(check=o.check, status=o.status.value, skipped=o.skipped) for o in report.outcomes
        ],
        analysis=format_report(report),
    )


@app.post("/tools/call", response_model=ToolCallResponse, dependencies=[Depends(require_api_key)])
def tool_call(body: ToolCallRequest, engine: RiskEngine = Depends(engine_dependency)) -> ToolCallResponse:
    return ToolCallResponse(name=body.name, output=call_tool(body.name, body.arguments, engine=engine))
