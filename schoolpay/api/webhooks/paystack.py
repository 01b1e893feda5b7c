"""
Paystack webhook endpoint
"""

import json
import logging
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from schoolpay.infrastructure.database import get_db
from schoolpay.infrastructure.logging_config import trace_id_context
from schoolpay.infrastructure.settings import get_settings
from schoolpay.schemas.webhooks import WebhookAckResponse
from schoolpay.services.payment_ingestion import (
    Deadline,
    ingest_notification,
    notification_event_type,
    notification_reference,
)
from schoolpay.utils.metrics import record_webhook_received, record_webhook_rejected
from schoolpay.utils.rate_limiter import get_client_identifier
from schoolpay.utils.security_logging import log_security_event
from schoolpay.utils.webhook_security import SIGNATURE_HEADER, verify_paystack_signature

logger = logging.getLogger(__name__)

router = APIRouter()

_ACK_MESSAGES = {
    "processed": "Payment processed",
    "duplicate": "Payment already processed",
    "ignored": "Event received",
}


@router.post(
    "/paystack",
    response_model=WebhookAckResponse,
    status_code=status.HTTP_200_OK,
    summary="Paystack webhook",
    description="Receive Paystack event notifications. PROVIDER ONLY endpoint, authenticated by HMAC-SHA512 signature.",
)
async def paystack_webhook(
    request: Request,
    db: Session = Depends(get_db),
    x_paystack_signature: str = Header(None, alias=SIGNATURE_HEADER, description="HMAC-SHA512 of the raw body"),
) -> WebhookAckResponse:
    """
    Process a Paystack notification.

    1. Read the raw body and verify the signature over those exact bytes
    2. Parse JSON
    3. Log the event (write-ahead), resolve the virtual account, apply the
       payment once per provider reference, mark the event processed

    Responses: 400 missing signature or malformed body, 401 bad signature,
    404 unknown/inactive account, 200 processed/duplicate/ignored, 500 write
    failure, 503 processing deadline exceeded. Domain errors are rendered by
    the global PaymentCoreError handler.
    """
    trace_id = trace_id_context.get() or "unknown"
    settings = get_settings()

    body_bytes = await request.body()

    is_valid, error_code, error_details = verify_paystack_signature(
        payload_body=body_bytes,
        signature_header=x_paystack_signature,
    )
    if not is_valid:
        logger.error(
            f"Webhook signature verification failed: trace_id={trace_id}, code={error_code}, "
            f"body_length={len(body_bytes)}"
        )
        record_webhook_rejected(reason=error_code)
        log_security_event(
            action="WEBHOOK_SIGNATURE_FAILED",
            details={
                "webhook_provider": "PAYSTACK",
                "reason": error_code,
                "path": request.url.path,
            },
            trace_id=trace_id,
            db=db,
            ip=get_client_identifier(request),
        )
        status_code = (
            status.HTTP_400_BAD_REQUEST if error_code == "WEBHOOK_MISSING_HEADER"
            else status.HTTP_401_UNAUTHORIZED
        )
        raise HTTPException(
            status_code=status_code,
            detail={
                "error": {
                    "code": error_code,
                    "message": "Webhook signature verification failed",
                    "details": error_details,
                    "trace_id": trace_id,
                }
            },
        )

    try:
        payload = json.loads(body_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        record_webhook_rejected(reason="INVALID_PAYLOAD")
        logger.error(f"Invalid webhook payload: trace_id={trace_id}, error={e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": {
                    "code": "INVALID_PAYLOAD",
                    "message": "Request body is not valid JSON",
                    "trace_id": trace_id,
                }
            },
        )
    if not isinstance(payload, dict):
        record_webhook_rejected(reason="INVALID_PAYLOAD")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": {
                    "code": "INVALID_PAYLOAD",
                    "message": "Request body must be a JSON object",
                    "trace_id": trace_id,
                }
            },
        )

    event_type = notification_event_type(payload)
    record_webhook_received(event_type)
    logger.info(
        f"Paystack webhook received: trace_id={trace_id}, event={event_type}, "
        f"reference={notification_reference(payload)}, signature_verified=True"
    )

    outcome = ingest_notification(
        db,
        payload,
        signature_valid=True,
        deadline=Deadline(settings.WEBHOOK_PROCESSING_TIMEOUT_SECONDS),
    )

    return WebhookAckResponse(
        status=outcome.status,
        event_id=str(outcome.event_id),
        transaction_id=str(outcome.transaction_id) if outcome.transaction_id else None,
        message=_ACK_MESSAGES.get(outcome.status),
    )
