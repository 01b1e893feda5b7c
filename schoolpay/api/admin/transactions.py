"""
Transaction admin endpoints
"""

from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from schoolpay.auth.dependencies import require_admin_role
from schoolpay.auth.principal import Principal
from schoolpay.infrastructure.database import get_db
from schoolpay.schemas.payments import ReverseTransactionRequest, TransactionResponse
from schoolpay.services.transaction_applier import reverse_transaction

router = APIRouter()


@router.post(
    "/transactions/{transaction_id}/reverse",
    response_model=TransactionResponse,
    summary="Reverse a completed credit",
    description=(
        "Mark the credit REVERSED and post a compensating REVERSAL debit. "
        "Fails with 409 if the credit is not COMPLETED or the wallet cannot cover it. Requires ADMIN role."
    ),
)
async def reverse(
    transaction_id: UUID,
    request: ReverseTransactionRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> TransactionResponse:
    reversal = reverse_transaction(
        db,
        transaction_id=transaction_id,
        reason=request.reason,
        actor_subject=principal.subject,
    )
    return TransactionResponse.model_validate(reversal)
