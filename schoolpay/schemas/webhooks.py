"""
Webhook schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class WebhookAckResponse(BaseModel):
    """Answer to the provider; any 2xx stops redelivery"""
    status: str = Field(..., description="processed, duplicate or ignored")
    event_id: str = Field(..., description="WebhookEvent UUID")
    transaction_id: Optional[str] = Field(None, description="Transaction UUID (charge events only)")
    message: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "status": "processed",
            "event_id": "0b6c2f5e-7a0e-4d7c-9a53-2b3b7c1f0a11",
            "transaction_id": "123e4567-e89b-12d3-a456-426614174000",
            "message": "Payment processed",
        }
    })


class WebhookEventItem(BaseModel):
    """Row of the operator webhook log"""
    id: UUID
    event_type: str
    provider_reference: Optional[str] = None
    signature_valid: bool
    processed: bool
    error_message: Optional[str] = None
    received_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    raw_payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class ReprocessResponse(BaseModel):
    status: str
    event_id: str
    transaction_id: Optional[str] = None
    steps: List[Dict[str, Any]] = Field(default_factory=list)


class SignWebhookRequest(BaseModel):
    """DEV helper: payload to sign with the configured secret"""
    payload: Dict[str, Any] = Field(..., description="Notification body, e.g. a charge.success event")


class SignWebhookResponse(BaseModel):
    body: str = Field(..., description="Exact bytes to POST (compact JSON)")
    headers: Dict[str, str]
    curl_example: str
