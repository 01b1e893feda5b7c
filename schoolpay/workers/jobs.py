"""
RQ jobs - background tasks
"""

import logging
from typing import Any, Dict, Optional

from schoolpay.infrastructure.database import SessionLocal
from schoolpay.infrastructure.redis_client import get_redis
from schoolpay.services.provider.paystack_client import PaystackClient
from schoolpay.services.provisioning import ProvisioningOrchestrator
from schoolpay.utils.trace_id import trace_scope

logger = logging.getLogger(__name__)

CANCEL_KEY_PREFIX = "provisioning:cancel:"
CANCEL_KEY_TTL_SECONDS = 24 * 3600


class RedisCancelFlag:
    """threading.Event-compatible flag shared between the API and the worker"""

    def __init__(self, redis_client, job_id: str):
        self.redis = redis_client
        self.key = f"{CANCEL_KEY_PREFIX}{job_id}"

    def set(self) -> None:
        self.redis.set(self.key, "1", ex=CANCEL_KEY_TTL_SECONDS)

    def is_set(self) -> bool:
        return bool(self.redis.exists(self.key))


def provision_virtual_accounts_job(actor_subject: Optional[str] = None, job_id: Optional[str] = None) -> Dict[str, Any]:
    """Run a full provisioning pass outside the request cycle"""
    with trace_scope(f"job-provisioning-{job_id}" if job_id else None):
        logger.info(f"Provisioning job started: job_id={job_id}, actor={actor_subject}")
        cancel_flag = RedisCancelFlag(get_redis(), job_id) if job_id else None

        db = SessionLocal()
        try:
            with PaystackClient() as client:
                report = ProvisioningOrchestrator(db, client).provision_all(
                    cancel_event=cancel_flag,
                    actor_subject=actor_subject,
                )
        finally:
            db.close()

        logger.info(
            f"Provisioning job finished: job_id={job_id}, successful={report.successful}, "
            f"failed={report.failed}, aborted={report.aborted}, cancelled={report.cancelled}"
        )
    return report.as_dict()
