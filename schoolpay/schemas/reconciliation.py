"""
Reconciliation report schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field


class UnmatchedWebhookItem(BaseModel):
    event_id: UUID
    provider_reference: Optional[str] = None
    event_type: str
    received_at: Optional[datetime] = None
    processed: bool
    error_message: Optional[str] = None
    proposed_action: str = Field(..., description="create_transaction: run the reprocess action")


class DuplicateGroupItem(BaseModel):
    provider_reference: str
    count: int
    transaction_ids: List[UUID]
    total_amount: Decimal
    severity: str
    proposed_action: str = Field(..., description="resolve_duplicate: reverse all but one transaction")


class OrphanedTransactionItem(BaseModel):
    transaction_id: UUID
    reference: str
    provider_reference: str
    amount: Decimal
    created_at: Optional[datetime] = None
    proposed_action: str = Field(..., description="verify_with_provider")


class ReconciliationSummary(BaseModel):
    unmatched_webhooks: int
    duplicate_groups: int
    orphaned_transactions: int
    healthy: bool


class ReconciliationReportResponse(BaseModel):
    summary: ReconciliationSummary
    unmatched_webhooks: List[UnmatchedWebhookItem]
    duplicate_transactions: List[DuplicateGroupItem]
    orphaned_transactions: List[OrphanedTransactionItem]
