"""
Virtual account provisioning

For every student without an active virtual account:
1. create the provider customer
2. wait the settle delay, then request a dedicated account
3. persist the VirtualAccount (one commit per student)

The run is strictly sequential and paced. Rate-limit responses are retried
with exponential backoff; a FatalCapabilityError stops the run; any other
failure is recorded against that student and the run moves on. Students that
already have an active account are never selected, so re-running is safe.
"""

import logging
import threading
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from schoolpay.core.beneficiaries.models import Student
from schoolpay.core.compliance.models import AuditLog
from schoolpay.core.security.models import Role
from schoolpay.core.virtual_accounts.models import VirtualAccount
from schoolpay.infrastructure.settings import get_settings
from schoolpay.services.errors import (
    FatalCapabilityError,
    MissingProfileDataError,
    PaymentCoreError,
    PersistenceError,
    ResolutionError,
)
from schoolpay.services.provider.paystack_client import PaystackClient
from schoolpay.services.provider.retry import build_retrying, call_with_retry
from schoolpay.utils.metrics import record_provisioning_result

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningReport:
    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    aborted: bool = False
    abort_reason: Optional[str] = None
    cancelled: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ProvisioningOrchestrator:
    def __init__(
        self,
        db: Session,
        client: PaystackClient,
        *,
        delay_seconds: Optional[float] = None,
        settle_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
    ):
        settings = get_settings()
        self.db = db
        self.client = client
        self.delay_seconds = settings.PROVISIONING_DELAY_SECONDS if delay_seconds is None else delay_seconds
        self.settle_seconds = settings.PROVISIONING_SETTLE_SECONDS if settle_seconds is None else settle_seconds
        self.sleep = sleep
        self.retrying = build_retrying(max_attempts=max_attempts, backoff_base=backoff_base, sleep=sleep)

    def pending_beneficiaries(self) -> List[Student]:
        has_active_account = exists().where(
            VirtualAccount.beneficiary_id == Student.id,
            VirtualAccount.is_active.is_(True),
        )
        stmt = select(Student).where(~has_active_account).order_by(Student.created_at, Student.id)
        return list(self.db.execute(stmt).scalars().all())

    def provision_all(
        self,
        cancel_event: Optional[threading.Event] = None,
        actor_subject: Optional[str] = None,
    ) -> ProvisioningReport:
        students = self.pending_beneficiaries()
        report = ProvisioningReport(total=len(students))
        logger.info(f"Provisioning run started: pending={report.total}")

        for index, student in enumerate(students):
            if index > 0 and self.delay_seconds:
                self.sleep(self.delay_seconds)

            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                report.skipped = report.total - index
                logger.warning(f"Provisioning run cancelled: processed={index}, skipped={report.skipped}")
                break

            try:
                self._provision(student)
                report.successful += 1
            except FatalCapabilityError as e:
                report.failed += 1
                report.errors.append({"beneficiary_id": str(student.id), "error": e.message})
                report.aborted = True
                report.abort_reason = e.message
                report.skipped = report.total - index - 1
                logger.error(
                    f"Provisioning run aborted: beneficiary_id={student.id}, code={e.code}, "
                    f"error={e.message}, skipped={report.skipped}"
                )
                break
            except PaymentCoreError as e:
                report.failed += 1
                report.errors.append({"beneficiary_id": str(student.id), "error": e.message})
                logger.warning(
                    f"Provisioning failed for beneficiary: beneficiary_id={student.id}, "
                    f"code={e.code}, error={e.message}"
                )

        record_provisioning_result("success", report.successful)
        record_provisioning_result("failed", report.failed)
        record_provisioning_result("skipped", report.skipped)
        self._audit_run(report, actor_subject)

        logger.info(
            f"Provisioning run finished: total={report.total}, successful={report.successful}, "
            f"failed={report.failed}, skipped={report.skipped}, aborted={report.aborted}, "
            f"cancelled={report.cancelled}"
        )
        return report

    def provision_one(self, beneficiary_id: UUID) -> Tuple[VirtualAccount, bool]:
        """
        Returns:
            (virtual_account, created) - created is False when the student
            already had an active account
        """
        student = self.db.get(Student, beneficiary_id)
        if student is None:
            raise ResolutionError(
                "Beneficiary not found",
                details={"beneficiary_id": str(beneficiary_id)},
                code="BENEFICIARY_NOT_FOUND",
            )

        existing = self.db.execute(
            select(VirtualAccount).where(
                VirtualAccount.beneficiary_id == beneficiary_id,
                VirtualAccount.is_active.is_(True),
            )
        ).scalar_one_or_none()
        if existing is not None:
            return existing, False

        return self._provision(student), True

    def _provision(self, student: Student) -> VirtualAccount:
        missing = [name for name in ("email", "first_name", "last_name") if not getattr(student, name)]
        if missing:
            raise MissingProfileDataError(
                "Missing required profile data",
                details={"beneficiary_id": str(student.id), "missing": missing},
            )

        customer = call_with_retry(
            self.retrying,
            self.client.create_customer,
            email=student.email,
            first_name=student.first_name,
            last_name=student.last_name,
            phone=student.phone,
            metadata={"student_id": str(student.id)},
        )

        if self.settle_seconds:
            self.sleep(self.settle_seconds)

        account = call_with_retry(
            self.retrying,
            self.client.create_dedicated_account,
            customer_code=customer.customer_code,
        )

        virtual_account = VirtualAccount(
            beneficiary_id=student.id,
            provider_customer_code=customer.customer_code,
            account_number=account.account_number,
            account_name=account.account_name,
            bank_name=account.bank_name,
            bank_code=account.bank_code,
            is_active=True,
        )
        try:
            self.db.add(virtual_account)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise PersistenceError(
                "Virtual account conflicts with an existing record",
                details={"beneficiary_id": str(student.id), "account_number": account.account_number},
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(
                "Failed to save virtual account",
                details={"beneficiary_id": str(student.id)},
            ) from e

        self.db.refresh(virtual_account)
        logger.info(
            f"Virtual account provisioned: beneficiary_id={student.id}, "
            f"account_number={virtual_account.account_number}, bank={virtual_account.bank_name}"
        )
        return virtual_account

    def _audit_run(self, report: ProvisioningReport, actor_subject: Optional[str]) -> None:
        try:
            self.db.add(AuditLog(
                actor_subject=actor_subject,
                actor_role=Role.ADMIN if actor_subject else Role.SYSTEM,
                action="VIRTUAL_ACCOUNTS_PROVISIONED",
                entity_type="VirtualAccount",
                entity_id=None,
                before=None,
                after=report.as_dict(),
            ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to write AuditLog for provisioning run: error={e}")
