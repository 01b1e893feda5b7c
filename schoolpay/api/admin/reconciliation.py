"""
Reconciliation admin endpoints (read-only)
"""

from dataclasses import asdict
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from schoolpay.auth.dependencies import require_admin_role
from schoolpay.auth.principal import Principal
from schoolpay.infrastructure.database import get_db
from schoolpay.schemas.reconciliation import (
    DuplicateGroupItem,
    OrphanedTransactionItem,
    ReconciliationReportResponse,
    UnmatchedWebhookItem,
)
from schoolpay.services import reconciliation

router = APIRouter()


@router.get(
    "/reconciliation/report",
    response_model=ReconciliationReportResponse,
    summary="Full reconciliation report",
    description="Unmatched webhooks, duplicate transactions and orphaned transactions. Requires ADMIN role.",
)
async def get_reconciliation_report(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> ReconciliationReportResponse:
    return ReconciliationReportResponse(**reconciliation.build_report(db))


@router.get(
    "/reconciliation/unmatched",
    response_model=List[UnmatchedWebhookItem],
    summary="Successful charge events without a transaction",
)
async def get_unmatched_webhooks(
    limit: int = Query(default=500, ge=1, le=5000),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> List[UnmatchedWebhookItem]:
    return [UnmatchedWebhookItem(**asdict(item)) for item in reconciliation.find_unmatched_webhooks(db, limit=limit)]


@router.get(
    "/reconciliation/duplicates",
    response_model=List[DuplicateGroupItem],
    summary="Provider references applied more than once",
)
async def get_duplicate_transactions(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> List[DuplicateGroupItem]:
    return [DuplicateGroupItem(**asdict(item)) for item in reconciliation.find_duplicate_transactions(db)]


@router.get(
    "/reconciliation/orphaned",
    response_model=List[OrphanedTransactionItem],
    summary="Transactions with no logged webhook",
)
async def get_orphaned_transactions(
    limit: int = Query(default=500, ge=1, le=5000),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> List[OrphanedTransactionItem]:
    return [OrphanedTransactionItem(**asdict(item)) for item in reconciliation.find_orphaned_transactions(db, limit=limit)]
