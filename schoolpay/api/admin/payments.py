"""
Payment simulation admin endpoint (non-production environments)
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from schoolpay.auth.dependencies import require_admin_role
from schoolpay.auth.principal import Principal
from schoolpay.infrastructure.database import get_db
from schoolpay.infrastructure.settings import get_settings
from schoolpay.schemas.payments import SimulatePaymentRequest, SimulatePaymentResponse
from schoolpay.services.payment_ingestion import simulate_payment

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/payments/simulate",
    response_model=SimulatePaymentResponse,
    summary="Simulate an incoming payment",
    description=(
        "Build a charge.success notification for the student's active virtual account and run it "
        "through the same pipeline as real webhooks. Disabled in production. Requires ADMIN role."
    ),
)
async def simulate_incoming_payment(
    request: SimulatePaymentRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> SimulatePaymentResponse:
    if get_settings().is_production:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": {
                    "code": "WEBHOOK_SIM_DISABLED",
                    "message": "Payment simulation is disabled in production",
                }
            },
        )

    reference, outcome = simulate_payment(
        db,
        beneficiary_id=request.beneficiary_id,
        amount=request.amount,
        actor_subject=principal.subject,
    )
    return SimulatePaymentResponse(
        success=True,
        status=outcome.status,
        transaction_id=str(outcome.transaction_id) if outcome.transaction_id else None,
        test_reference=reference,
        amount=str(request.amount),
        beneficiary_id=str(request.beneficiary_id),
        flow_steps=outcome.steps,
    )
