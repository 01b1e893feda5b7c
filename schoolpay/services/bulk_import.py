"""
Student bulk import

Rows from the school's register are staged as raw strings, then processed
one at a time: guardian (looked up or created by email), student (looked up
or created by registration number), wallet, and an opening-debt ledger row.
Each row commits or rolls back on its own; a bad row is marked with its error
and the batch continues. Every step is a lookup-or-create against the
database, so processing the same rows again creates nothing new.
"""

import logging
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schoolpay.core.beneficiaries.models import BoardingStatus, Guardian, MembershipStatus, Student
from schoolpay.core.imports.models import StagingImportRecord
from schoolpay.core.transactions.models import (
    Transaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from schoolpay.core.wallets.models import Wallet
from schoolpay.infrastructure.settings import get_settings
from schoolpay.services.errors import InvalidPayloadError, PaymentCoreError

logger = logging.getLogger(__name__)

# Register column -> staging attribute
COLUMN_MAP = {
    "SN": "sn",
    "NAMES": "names",
    "SURNAME": "surname",
    "CLASS": "class_level",
    "REG NO": "registration_number",
    "MEMBER/NMEMBER": "membership",
    "DAY/BOARDER": "boarding",
    "SCHOOL FEES": "school_fees",
    "DEBTS": "debts",
    "PARENT EMAIL": "parent_email",
}

ROW_STATUSES = ("pending", "processed", "failed")


@dataclass
class ImportReport:
    success_count: int = 0
    error_count: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    created_students: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _normalize_header(key: str) -> str:
    return re.sub(r"\s+", " ", str(key).replace("_", " ")).strip().upper()


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_amount(value: Optional[str], column: str) -> Decimal:
    """'150,000.00' -> Decimal('150000.00'); empty -> 0"""
    if not value:
        return Decimal("0.00")
    cleaned = re.sub(r"[,\s₦]", "", value)
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise InvalidPayloadError(f"Invalid amount in {column}: {value!r}")
    if amount < 0:
        raise InvalidPayloadError(f"Negative amount in {column}: {value!r}")
    return amount.quantize(Decimal("0.01"))


def student_email_for(registration_number: str) -> str:
    settings = get_settings()
    local_part = re.sub(r"[^a-z0-9._-]+", "-", registration_number.lower()).strip("-")
    return f"{local_part}@{settings.IMPORT_STUDENT_EMAIL_DOMAIN}"


def debt_reference_for(student: Student) -> str:
    """DEBT-<REG NO>-<student id prefix>; the id suffix keeps REG.1 and REG-1 apart"""
    readable = re.sub(r"[^A-Z0-9]+", "-", student.registration_number.upper()).strip("-")
    return f"DEBT-{readable}-{student.id.hex[:8].upper()}"


def stage_records(db: Session, rows: Iterable[Mapping[str, Any]]) -> int:
    """Insert raw register rows as pending staging records"""
    staged = 0
    for row in rows:
        values = {}
        for key, value in row.items():
            attribute = COLUMN_MAP.get(_normalize_header(key))
            if attribute:
                values[attribute] = _clean(value)
        if not any(values.values()):
            continue
        if values.get("parent_email"):
            values["parent_email"] = values["parent_email"].lower()
        db.add(StagingImportRecord(processed=False, **values))
        staged += 1

    db.commit()
    logger.info(f"Student import rows staged: count={staged}")
    return staged


def get_or_create_guardian(db: Session, *, email: str, surname: Optional[str]) -> Guardian:
    """Lookup-or-create on the unique email; the database is the only cache"""
    email = email.strip().lower()
    guardian = db.execute(select(Guardian).where(Guardian.email == email)).scalar_one_or_none()
    if guardian is not None:
        return guardian

    guardian = Guardian(email=email, full_name=f"{surname or 'Student'} Family")
    db.add(guardian)
    db.flush()
    logger.info(f"Guardian created: guardian_id={guardian.id}, email={email}")
    return guardian


def ensure_wallet(db: Session, student: Student) -> Wallet:
    wallet = db.execute(select(Wallet).where(Wallet.beneficiary_id == student.id)).scalar_one_or_none()
    if wallet is None:
        wallet = Wallet(beneficiary_id=student.id, balance=Decimal("0.00"), currency=get_settings().WALLET_CURRENCY)
        db.add(wallet)
        db.flush()
    return wallet


def _record_opening_debt(db: Session, student: Student, wallet: Wallet, debt: Decimal) -> None:
    """One opening-debt row per student, however often the register is re-imported"""
    exists = db.execute(
        select(Transaction.id).where(
            Transaction.beneficiary_id == student.id,
            Transaction.type == TransactionType.DEBIT,
            Transaction.category == TransactionCategory.FEE_PAYMENT,
            Transaction.reference.like("DEBT-%"),
        )
    ).first()
    if exists:
        return
    reference = debt_reference_for(student)
    db.add(Transaction(
        beneficiary_id=student.id,
        wallet_id=wallet.id,
        type=TransactionType.DEBIT,
        category=TransactionCategory.FEE_PAYMENT,
        status=TransactionStatus.PENDING,
        amount=debt,
        currency=wallet.currency,
        reference=reference,
        description="Outstanding debt balance (imported)",
        transaction_metadata={"source": "student_import"},
    ))
    db.flush()


def _process_record(db: Session, record: StagingImportRecord) -> Dict[str, Any]:
    registration_number = _clean(record.registration_number)
    first_name = _clean(record.names)
    last_name = _clean(record.surname)
    if not registration_number:
        raise InvalidPayloadError("Missing REG NO")
    if not first_name or not last_name:
        raise InvalidPayloadError("Missing NAMES or SURNAME")

    school_fees = parse_amount(record.school_fees, "SCHOOL FEES")
    debt = parse_amount(record.debts, "DEBTS")
    membership = MembershipStatus.MEMBER if (record.membership or "").strip().upper() == "MEMBER" else MembershipStatus.NON_MEMBER
    boarding = BoardingStatus.BOARDER if (record.boarding or "").strip().upper() == "BOARDER" else BoardingStatus.DAY

    guardian = None
    if record.parent_email:
        guardian = get_or_create_guardian(db, email=record.parent_email, surname=last_name)

    student = db.execute(
        select(Student).where(Student.registration_number == registration_number)
    ).scalar_one_or_none()
    created = student is None
    if created:
        student = Student(
            registration_number=registration_number,
            email=student_email_for(registration_number),
            first_name=first_name,
            last_name=last_name,
        )
        db.add(student)

    student.admission_number = registration_number
    student.class_level = _clean(record.class_level)
    student.guardian_id = guardian.id if guardian else student.guardian_id
    student.school_fees = school_fees
    student.debt_balance = debt
    student.membership_status = membership
    student.boarding_status = boarding
    db.flush()

    wallet = ensure_wallet(db, student)
    if debt > 0:
        _record_opening_debt(db, student, wallet, debt)

    record.processed = True
    record.error_message = None
    record.student_uuid = student.id
    record.parent_uuid = guardian.id if guardian else None
    record.processed_at = datetime.now(timezone.utc)
    db.commit()

    return {"sn": record.sn, "student_id": str(student.id), "email": student.email, "created": created}


def process_pending(db: Session, limit: Optional[int] = None) -> ImportReport:
    """Process every pending staging row, oldest first"""
    stmt = (
        select(StagingImportRecord.id)
        .where(StagingImportRecord.processed.is_(False), StagingImportRecord.error_message.is_(None))
        .order_by(StagingImportRecord.created_at, StagingImportRecord.id)
    )
    if limit:
        stmt = stmt.limit(limit)
    record_ids = list(db.execute(stmt).scalars().all())

    report = ImportReport()
    logger.info(f"Student import started: pending={len(record_ids)}")

    for record_id in record_ids:
        record = db.get(StagingImportRecord, record_id)
        sn = record.sn
        try:
            created = _process_record(db, record)
        except (PaymentCoreError, SQLAlchemyError) as e:
            db.rollback()
            message = e.message if isinstance(e, PaymentCoreError) else f"Database error: {e.__class__.__name__}"
            report.error_count += 1
            report.errors.append({"sn": sn, "error": message})
            logger.warning(f"Student import row failed: record_id={record_id}, sn={sn}, error={message}")
            _mark_failed(db, record_id, message)
            continue

        report.success_count += 1
        report.created_students.append(created)

    logger.info(
        f"Student import finished: success_count={report.success_count}, error_count={report.error_count}"
    )
    return report


def _mark_failed(db: Session, record_id, message: str) -> None:
    try:
        db.execute(
            update(StagingImportRecord)
            .where(StagingImportRecord.id == record_id)
            .values(error_message=message[:2000])
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to record import error: record_id={record_id}, error={e}")


def reset_failed(db: Session) -> int:
    """Make failed rows pending again (after the register was corrected)"""
    result = db.execute(
        update(StagingImportRecord)
        .where(StagingImportRecord.processed.is_(False), StagingImportRecord.error_message.is_not(None))
        .values(error_message=None)
    )
    db.commit()
    logger.info(f"Student import failed rows reset: count={result.rowcount}")
    return result.rowcount


def list_records(
    db: Session,
    *,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[StagingImportRecord]:
    stmt = select(StagingImportRecord)
    if status == "pending":
        stmt = stmt.where(StagingImportRecord.processed.is_(False), StagingImportRecord.error_message.is_(None))
    elif status == "processed":
        stmt = stmt.where(StagingImportRecord.processed.is_(True))
    elif status == "failed":
        stmt = stmt.where(StagingImportRecord.processed.is_(False), StagingImportRecord.error_message.is_not(None))
    stmt = stmt.order_by(StagingImportRecord.created_at, StagingImportRecord.id).offset(offset).limit(limit)
    return list(db.execute(stmt).scalars().all())
