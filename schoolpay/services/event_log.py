"""
Webhook event log - write-ahead record of every authenticated notification
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schoolpay.core.webhooks.models import WebhookEvent
from schoolpay.services.errors import PersistenceError, ResolutionError

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 2000


def record_event(
    db: Session,
    *,
    event_type: str,
    provider_reference: Optional[str],
    payload: Dict[str, Any],
    signature_valid: bool,
) -> WebhookEvent:
    """
    Persist a notification before anything else happens to it.

    Commits immediately so the event survives a crash in any later step.

    Raises:
        PersistenceError: the log write failed (caller should answer 5xx so
            the provider redelivers)
    """
    event = WebhookEvent(
        event_type=event_type or "unknown",
        provider_reference=provider_reference,
        raw_payload=payload,
        signature_valid=signature_valid,
        processed=False,
    )
    try:
        db.add(event)
        db.commit()
        db.refresh(event)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Failed to record webhook event: event_type={event_type}, "
            f"provider_reference={provider_reference}, error={e}"
        )
        raise PersistenceError(
            "Failed to record webhook event",
            details={"event_type": event_type, "provider_reference": provider_reference},
        ) from e

    logger.info(
        f"Webhook event recorded: event_id={event.id}, event_type={event.event_type}, "
        f"provider_reference={provider_reference}"
    )
    return event


def mark_processed(db: Session, event_id: UUID, error_message: Optional[str] = None) -> None:
    """
    Flag an event as processed, with the failure reason if there was one.

    A failure here is logged, not raised: the payment outcome is already
    committed and an event left unprocessed shows up in the webhook log view.
    """
    try:
        event = db.get(WebhookEvent, event_id)
        if event is None:
            logger.warning(f"mark_processed: webhook event not found: event_id={event_id}")
            return
        event.processed = True
        event.error_message = error_message[:MAX_ERROR_MESSAGE_LENGTH] if error_message else None
        event.processed_at = datetime.now(timezone.utc)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to mark webhook event processed: event_id={event_id}, error={e}")


def get_event(db: Session, event_id: UUID) -> WebhookEvent:
    event = db.get(WebhookEvent, event_id)
    if event is None:
        raise ResolutionError(
            f"Webhook event not found: {event_id}",
            details={"event_id": str(event_id)},
            code="WEBHOOK_EVENT_NOT_FOUND",
        )
    return event


def list_events(
    db: Session,
    *,
    processed: Optional[bool] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[WebhookEvent]:
    """Newest first; `search` matches reference or event type (case-insensitive)"""
    stmt = select(WebhookEvent)
    if processed is not None:
        stmt = stmt.where(WebhookEvent.processed == processed)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(
            WebhookEvent.provider_reference.ilike(pattern),
            WebhookEvent.event_type.ilike(pattern),
        ))
    stmt = stmt.order_by(WebhookEvent.received_at.desc(), WebhookEvent.id).offset(offset).limit(limit)
    return list(db.execute(stmt).scalars().all())
