from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _ServiceModel(BaseModel):
    # Safe Transaction Service payloads are camelCase and carry many fields we ignore.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DecodedParameter(_ServiceModel):
    name: Optional[str] = None
    type: Optional[str] = None
    value: Any = None


class DecodedCall(_ServiceModel):
    method: str
    parameters: List[DecodedParameter] = Field(default_factory=list)


class Confirmation(_ServiceModel):
    signer_address: str = Field(alias="owner")
    timestamp: Optional[datetime] = Field(default=None, alias="submissionDate")


class PendingTransaction(_ServiceModel):
    """A proposed multisig transaction that has not been executed yet."""

    safe_tx_hash: str = Field(alias="safeTxHash")
    to: str
    value: int = 0  # wei
    data: Optional[str] = None
    decoded: Optional[DecodedCall] = Field(default=None, alias="dataDecoded")
    proposer: Optional[str] = None
    submitted_at: Optional[datetime] = Field(default=None, alias="submissionDate")
    nonce: Optional[int] = None
    confirmations: List[Confirmation] = Field(default_factory=list)
    confirmations_required: int = Field(default=1, ge=1, alias="confirmationsRequired")

    @property
    def has_call_data(self) -> bool:
        return bool(self.data) and self.data.lower() not in ("0x", "0x0")

    @property
    def confirmation_count(self) -> int:
        return len(self.confirmations)

    @property
    def confirmed_by(self) -> List[str]:
        return [c.signer_address for c in self.confirmations]


class PendingTransactionPage(_ServiceModel):
    count: int = 0
    next: Optional[str] = None
    results: List[PendingTransaction] = Field(default_factory=list)


class SafeDelegate(_ServiceModel):
    delegate: str
    delegator: Optional[str] = None
    label: Optional[str] = None


class VerificationInfo(BaseModel):
    verified: bool
    name: Optional[str] = None
    abi: Optional[str] = None
    implementation: Optional[str] = None
