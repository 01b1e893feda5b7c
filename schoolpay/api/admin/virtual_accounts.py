"""
Virtual account provisioning admin endpoints
"""

import logging
from uuid import UUID, uuid4
from fastapi import APIRouter, Depends, status
from rq import Queue
from sqlalchemy.orm import Session

from schoolpay.auth.dependencies import require_admin_role
from schoolpay.auth.principal import Principal
from schoolpay.infrastructure.database import get_db
from schoolpay.infrastructure.redis_client import get_queue_connection, get_redis
from schoolpay.infrastructure.settings import get_settings
from schoolpay.schemas.virtual_accounts import (
    ProvisioningJobResponse,
    ProvisioningReportResponse,
    VirtualAccountResponse,
)
from schoolpay.services.provider.paystack_client import PaystackClient, get_paystack_client
from schoolpay.services.provisioning import ProvisioningOrchestrator
from schoolpay.workers.jobs import RedisCancelFlag, provision_virtual_accounts_job

logger = logging.getLogger(__name__)

router = APIRouter()


def get_provisioning_queue() -> Queue:
    settings = get_settings()
    return Queue(settings.RQ_QUEUE_NAME, connection=get_queue_connection())


# Provisioning endpoints are sync: the run paces itself with blocking sleeps,
# so FastAPI executes them in its threadpool.
@router.post(
    "/virtual-accounts/provision",
    response_model=ProvisioningReportResponse,
    summary="Provision virtual accounts for all students",
    description="Create a dedicated virtual account for every student without an active one. Requires ADMIN role.",
)
def provision_all(
    db: Session = Depends(get_db),
    client: PaystackClient = Depends(get_paystack_client),
    principal: Principal = Depends(require_admin_role()),
) -> ProvisioningReportResponse:
    logger.info(f"Bulk provisioning requested: actor={principal.subject}")
    report = ProvisioningOrchestrator(db, client).provision_all(actor_subject=principal.subject)
    return ProvisioningReportResponse(**report.as_dict())


@router.post(
    "/virtual-accounts/provision/jobs",
    response_model=ProvisioningJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a provisioning run",
    description="Enqueue the bulk provisioning run on the background worker. Requires ADMIN role.",
)
async def enqueue_provisioning(
    queue: Queue = Depends(get_provisioning_queue),
    principal: Principal = Depends(require_admin_role()),
) -> ProvisioningJobResponse:
    job_id = str(uuid4())
    # The job receives its own id to find its cancel flag
    queue.enqueue_call(
        func=provision_virtual_accounts_job,
        kwargs={"actor_subject": principal.subject, "job_id": job_id},
        timeout=3600,
        job_id=job_id,
    )
    logger.info(f"Provisioning job queued: job_id={job_id}, queue={queue.name}, actor={principal.subject}")
    return ProvisioningJobResponse(job_id=job_id, queue=queue.name, status={"state": "queued"})


@router.post(
    "/virtual-accounts/provision/jobs/{job_id}/cancel",
    response_model=ProvisioningJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Cancel a queued or running provisioning run",
    description="The run stops before its next student. Requires ADMIN role.",
)
async def cancel_provisioning(
    job_id: str,
    redis=Depends(get_redis),
    principal: Principal = Depends(require_admin_role()),
) -> ProvisioningJobResponse:
    RedisCancelFlag(redis, job_id).set()
    logger.info(f"Provisioning job cancellation requested: job_id={job_id}, actor={principal.subject}")
    return ProvisioningJobResponse(
        job_id=job_id,
        queue=get_settings().RQ_QUEUE_NAME,
        status={"state": "cancel_requested"},
    )


@router.post(
    "/virtual-accounts/{beneficiary_id}",
    response_model=VirtualAccountResponse,
    summary="Provision a virtual account for one student",
    description="Returns the existing active account if there is one. Requires ADMIN role.",
)
def provision_one(
    beneficiary_id: UUID,
    db: Session = Depends(get_db),
    client: PaystackClient = Depends(get_paystack_client),
    principal: Principal = Depends(require_admin_role()),
) -> VirtualAccountResponse:
    virtual_account, created = ProvisioningOrchestrator(db, client).provision_one(beneficiary_id)
    response = VirtualAccountResponse.model_validate(virtual_account)
    response.created = created
    return response
