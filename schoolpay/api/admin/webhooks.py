"""
Webhook event log admin endpoints
"""

from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from schoolpay.auth.dependencies import require_admin_role
from schoolpay.auth.principal import Principal
from schoolpay.infrastructure.database import get_db
from schoolpay.schemas.webhooks import ReprocessResponse, WebhookEventItem
from schoolpay.services.event_log import list_events
from schoolpay.services.payment_ingestion import reprocess_event

router = APIRouter()


@router.get(
    "/webhooks/events",
    response_model=List[WebhookEventItem],
    summary="List logged webhook events",
    description="Newest first. Filter by processed flag or search by reference / event type. Requires ADMIN role.",
)
async def list_webhook_events(
    processed: Optional[bool] = Query(None, description="Filter by processed flag"),
    search: Optional[str] = Query(None, description="Provider reference or event type contains"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> List[WebhookEventItem]:
    events = list_events(db, processed=processed, search=search, limit=limit, offset=offset)
    return [WebhookEventItem.model_validate(event) for event in events]


@router.post(
    "/webhooks/events/{event_id}/reprocess",
    response_model=ReprocessResponse,
    summary="Replay a logged webhook event",
    description=(
        "Run a stored event through account resolution and payment application again. "
        "An already-applied reference returns status=duplicate. Requires ADMIN role."
    ),
)
async def reprocess_webhook_event(
    event_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> ReprocessResponse:
    outcome = reprocess_event(db, event_id)
    return ReprocessResponse(
        status=outcome.status,
        event_id=str(outcome.event_id),
        transaction_id=str(outcome.transaction_id) if outcome.transaction_id else None,
        steps=outcome.steps,
    )
