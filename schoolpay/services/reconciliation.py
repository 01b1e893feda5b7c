"""
Reconciliation reporter - read-only consistency checks

Finds disagreements between the webhook log and the ledger and proposes the
operator action for each. Nothing here writes; fixes go through the
reprocess and reversal actions.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from schoolpay.core.transactions.models import Transaction
from schoolpay.core.webhooks.models import WebhookEvent
from schoolpay.services.payment_ingestion import SUCCESS_EVENT
from schoolpay.utils.metrics import record_reconciliation_findings

logger = logging.getLogger(__name__)


@dataclass
class UnmatchedWebhook:
    event_id: UUID
    provider_reference: Optional[str]
    event_type: str
    received_at: Optional[datetime]
    processed: bool
    error_message: Optional[str]
    proposed_action: str = "create_transaction"


@dataclass
class DuplicateGroup:
    provider_reference: str
    count: int
    transaction_ids: List[UUID]
    total_amount: Decimal
    severity: str = "critical"
    proposed_action: str = "resolve_duplicate"


@dataclass
class OrphanedTransaction:
    transaction_id: UUID
    reference: str
    provider_reference: str
    amount: Decimal
    created_at: Optional[datetime]
    proposed_action: str = "verify_with_provider"


def find_unmatched_webhooks(db: Session, limit: int = 500) -> List[UnmatchedWebhook]:
    """charge.success events whose reference has no transaction"""
    has_transaction = select(Transaction.id).where(
        Transaction.provider_reference == WebhookEvent.provider_reference
    ).exists()
    stmt = (
        select(WebhookEvent)
        .where(
            WebhookEvent.event_type == SUCCESS_EVENT,
            WebhookEvent.provider_reference.is_not(None),
            ~has_transaction,
        )
        .order_by(WebhookEvent.received_at.desc())
        .limit(limit)
    )
    return [
        UnmatchedWebhook(
            event_id=event.id,
            provider_reference=event.provider_reference,
            event_type=event.event_type,
            received_at=event.received_at,
            processed=event.processed,
            error_message=event.error_message,
        )
        for event in db.execute(stmt).scalars()
    ]


def find_duplicate_transactions(db: Session) -> List[DuplicateGroup]:
    """
    Provider references applied more than once.

    The unique index makes this impossible in a healthy database; a non-empty
    result means the constraint was missing or bypassed.
    """
    groups = db.execute(
        select(Transaction.provider_reference, func.count(Transaction.id))
        .where(Transaction.provider_reference.is_not(None))
        .group_by(Transaction.provider_reference)
        .having(func.count(Transaction.id) > 1)
        .order_by(Transaction.provider_reference)
    ).all()

    duplicates = []
    for provider_reference, count in groups:
        rows = db.execute(
            select(Transaction.id, Transaction.amount)
            .where(Transaction.provider_reference == provider_reference)
            .order_by(Transaction.created_at, Transaction.id)
        ).all()
        duplicates.append(DuplicateGroup(
            provider_reference=provider_reference,
            count=count,
            transaction_ids=[row.id for row in rows],
            total_amount=sum((Decimal(row.amount) for row in rows), Decimal("0")),
        ))
    return duplicates


def find_orphaned_transactions(db: Session, limit: int = 500) -> List[OrphanedTransaction]:
    """Transactions carrying a provider reference that no logged webhook has"""
    has_event = select(WebhookEvent.id).where(
        WebhookEvent.provider_reference == Transaction.provider_reference
    ).exists()
    stmt = (
        select(Transaction)
        .where(Transaction.provider_reference.is_not(None), ~has_event)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
    )
    return [
        OrphanedTransaction(
            transaction_id=tx.id,
            reference=tx.reference,
            provider_reference=tx.provider_reference,
            amount=tx.amount,
            created_at=tx.created_at,
        )
        for tx in db.execute(stmt).scalars()
    ]


def build_report(db: Session) -> Dict[str, Any]:
    unmatched = find_unmatched_webhooks(db)
    duplicates = find_duplicate_transactions(db)
    orphaned = find_orphaned_transactions(db)

    record_reconciliation_findings("unmatched", len(unmatched))
    record_reconciliation_findings("duplicate", len(duplicates))
    record_reconciliation_findings("orphaned", len(orphaned))

    logger.info(
        f"Reconciliation report built: unmatched={len(unmatched)}, "
        f"duplicates={len(duplicates)}, orphaned={len(orphaned)}"
    )
    return {
        "summary": {
            "unmatched_webhooks": len(unmatched),
            "duplicate_groups": len(duplicates),
            "orphaned_transactions": len(orphaned),
            "healthy": not (unmatched or duplicates or orphaned),
        },
        "unmatched_webhooks": [asdict(item) for item in unmatched],
        "duplicate_transactions": [asdict(item) for item in duplicates],
        "orphaned_transactions": [asdict(item) for item in orphaned],
    }
