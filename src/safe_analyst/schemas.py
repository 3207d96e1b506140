from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    network_id: str
    chain_id: int
    rpc_chain_id: Optional[int] = None
    detail: Optional[str] = None


class FindingSchema(BaseModel):
    severity: str
    message: str
    check: str


class CheckOutcomeSchema(BaseModel):
    check: str
    status: str
    skipped: List[str] = Field(default_factory=list)


class AnalysisResponse(BaseModel):
    """Structured analysis plus the same text a chat user would receive."""

    safe_address: str
    safe_tx_hash: str
    classification: str
    findings: List[FindingSchema] = Field(default_factory=list)
    checks: List[CheckOutcomeSchema] = Field(default_factory=list)
    analysis: str


class ToolCallRequest(BaseModel):
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolCallResponse(BaseModel):
    name: str
    output: str
