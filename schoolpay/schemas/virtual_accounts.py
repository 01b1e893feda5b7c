"""
Virtual account provisioning schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class ProvisioningErrorItem(BaseModel):
    beneficiary_id: str
    error: str


class ProvisioningReportResponse(BaseModel):
    total: int
    successful: int
    failed: int
    skipped: int = Field(0, description="Not attempted because the run was aborted or cancelled")
    errors: List[ProvisioningErrorItem] = Field(default_factory=list)
    aborted: bool = False
    abort_reason: Optional[str] = None
    cancelled: bool = False

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "total": 3,
            "successful": 2,
            "failed": 1,
            "skipped": 0,
            "errors": [{"beneficiary_id": "123e4567-e89b-12d3-a456-426614174000", "error": "Missing required profile data"}],
            "aborted": False,
            "abort_reason": None,
            "cancelled": False,
        }
    })


class VirtualAccountResponse(BaseModel):
    id: UUID
    beneficiary_id: UUID
    account_number: str
    account_name: str
    bank_name: str
    bank_code: Optional[str] = None
    is_active: bool
    total_received: Decimal
    last_payment_at: Optional[datetime] = None
    created: bool = Field(False, description="False when an active account already existed")

    model_config = ConfigDict(from_attributes=True)


class ProvisioningJobResponse(BaseModel):
    job_id: str
    queue: str
    status: Dict[str, str] = Field(default_factory=dict)
