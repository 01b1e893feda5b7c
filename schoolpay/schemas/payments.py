"""
Payment simulation and transaction schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator

from schoolpay.core.transactions.models import TransactionCategory, TransactionStatus, TransactionType


class SimulatePaymentRequest(BaseModel):
    beneficiary_id: UUID = Field(..., description="Student UUID")
    amount: Decimal = Field(..., description="Amount in naira (major units)")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Ensure amount is positive with at most 2 decimals"""
        if v <= 0:
            raise ValueError("Amount must be greater than 0")
        if v != v.quantize(Decimal("0.01")):
            raise ValueError("Amount must have at most 2 decimal places")
        return v

    model_config = ConfigDict(json_schema_extra={
        "example": {"beneficiary_id": "123e4567-e89b-12d3-a456-426614174000", "amount": "5000.00"}
    })


class SimulatePaymentResponse(BaseModel):
    success: bool = True
    status: str
    transaction_id: Optional[str] = None
    test_reference: str
    amount: str
    beneficiary_id: str
    flow_steps: List[Dict[str, Any]] = Field(default_factory=list)


class ReverseTransactionRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)


class TransactionResponse(BaseModel):
    id: UUID
    beneficiary_id: UUID
    wallet_id: UUID
    type: TransactionType
    category: TransactionCategory
    status: TransactionStatus
    amount: Decimal
    currency: str
    reference: str
    provider_reference: Optional[str] = None
    description: Optional[str] = None
    payment_channel: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
