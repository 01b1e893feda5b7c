"""
Tests for student register import
"""

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from schoolpay.core.beneficiaries.models import BoardingStatus, Guardian, MembershipStatus, Student
from schoolpay.core.imports.models import StagingImportRecord
from schoolpay.core.transactions.models import Transaction, TransactionStatus, TransactionType
from schoolpay.core.wallets.models import Wallet
from schoolpay.services import bulk_import
from schoolpay.services.errors import InvalidPayloadError


def _row(sn, reg_no, names="Ada", surname="Obi", parent_email="obi.family@example.com", debts="20,000", **extra):
    row = {
        "SN": sn,
        "NAMES": names,
        "SURNAME": surname,
        "CLASS": "JSS1",
        "REG NO": reg_no,
        "MEMBER/NMEMBER": "MEMBER",
        "DAY/BOARDER": "BOARDER",
        "SCHOOL FEES": "150,000.00",
        "DEBTS": debts,
        "PARENT EMAIL": parent_email,
    }
    row.update(extra)
    return row


class TestParsing:
    def test_parse_amount(self):
        assert bulk_import.parse_amount("150,000", "SCHOOL FEES") == Decimal("150000.00")
        assert bulk_import.parse_amount("₦ 2,500.5", "DEBTS") == Decimal("2500.50")
        assert bulk_import.parse_amount("", "DEBTS") == Decimal("0.00")
        assert bulk_import.parse_amount(None, "DEBTS") == Decimal("0.00")

    @pytest.mark.parametrize("value", ["abc", "-100"])
    def test_parse_amount_rejects(self, value):
        with pytest.raises(InvalidPayloadError):
            bulk_import.parse_amount(value, "DEBTS")

    def test_student_email(self):
        assert bulk_import.student_email_for("JSS1/001") == "jss1-001@edupay.school"


def test_stage_normalizes_headers_and_skips_blank_rows(db_session: Session):
    staged = bulk_import.stage_records(db_session, [
        {"sn": "1", "reg_no": "JSS1/001", "names": "Ada", "surname": "Obi", "parent_email": "OBI@Example.com"},
        {"SN": "", "NAMES": "  "},
    ])

    assert staged == 1
    record = db_session.query(StagingImportRecord).one()
    assert record.registration_number == "JSS1/001"
    assert record.parent_email == "obi@example.com"
    assert record.processed is False


def test_siblings_share_one_guardian(db_session: Session):
    bulk_import.stage_records(db_session, [
        _row("1", "JSS1/001", names="Ada"),
        _row("2", "JSS3/014", names="Chidi", parent_email="OBI.FAMILY@example.com"),
    ])

    report = bulk_import.process_pending(db_session)

    assert report.success_count == 2
    assert report.error_count == 0
    guardians = db_session.query(Guardian).all()
    assert len(guardians) == 1
    assert guardians[0].full_name == "Obi Family"
    assert {s.guardian_id for s in db_session.query(Student)} == {guardians[0].id}


def test_existing_guardian_is_reused(db_session: Session):
    db_session.add(Guardian(email="obi.family@example.com", full_name="Mrs Obi"))
    db_session.commit()
    bulk_import.stage_records(db_session, [_row("1", "JSS1/001")])

    bulk_import.process_pending(db_session)

    guardian = db_session.query(Guardian).one()
    assert guardian.full_name == "Mrs Obi"


def test_processing_creates_student_wallet_and_opening_debt(db_session: Session):
    bulk_import.stage_records(db_session, [_row("1", "JSS1/001")])

    report = bulk_import.process_pending(db_session)

    student = db_session.query(Student).one()
    assert student.email == "jss1-001@edupay.school"
    assert student.school_fees == Decimal("150000.00")
    assert student.debt_balance == Decimal("20000.00")
    assert student.membership_status == MembershipStatus.MEMBER
    assert student.boarding_status == BoardingStatus.BOARDER
    assert report.created_students[0]["created"] is True

    wallet = db_session.query(Wallet).filter(Wallet.beneficiary_id == student.id).one()
    assert wallet.balance == Decimal("0.00")

    debt = db_session.query(Transaction).one()
    assert debt.type == TransactionType.DEBIT
    assert debt.status == TransactionStatus.PENDING
    assert debt.amount == Decimal("20000.00")
    assert debt.reference == f"DEBT-JSS1-001-{student.id.hex[:8].upper()}"

    record = db_session.query(StagingImportRecord).one()
    assert record.processed is True
    assert record.student_uuid == student.id
    assert record.parent_uuid == student.guardian_id


def test_reimport_creates_nothing_new(db_session: Session):
    bulk_import.stage_records(db_session, [_row("1", "JSS1/001")])
    bulk_import.process_pending(db_session)

    bulk_import.stage_records(db_session, [_row("1", "JSS1/001", names="Adaeze")])
    report = bulk_import.process_pending(db_session)

    assert report.success_count == 1
    assert report.created_students[0]["created"] is False
    assert db_session.query(Student).count() == 1
    assert db_session.query(Student).one().first_name == "Ada"
    assert db_session.query(Guardian).count() == 1
    assert db_session.query(Wallet).count() == 1
    assert db_session.query(Transaction).count() == 1


def test_registration_numbers_differing_only_in_punctuation_keep_their_own_debts(db_session: Session):
    bulk_import.stage_records(db_session, [
        _row("1", "REG.1", debts="10,000", parent_email="a@example.com"),
        _row("2", "REG-1", debts="20,000", parent_email="b@example.com"),
    ])

    report = bulk_import.process_pending(db_session)

    assert report.success_count == 2
    debts = {
        debt.beneficiary_id: debt
        for debt in db_session.query(Transaction).filter(Transaction.type == TransactionType.DEBIT)
    }
    assert len(debts) == 2
    for student in db_session.query(Student).all():
        assert debts[student.id].amount == student.debt_balance
    assert len({debt.reference for debt in debts.values()}) == 2


def test_row_without_parent_email_has_no_guardian(db_session: Session):
    bulk_import.stage_records(db_session, [_row("1", "JSS1/001", parent_email="", debts="0")])

    report = bulk_import.process_pending(db_session)

    assert report.success_count == 1
    assert db_session.query(Student).one().guardian_id is None
    assert db_session.query(Guardian).count() == 0
    assert db_session.query(Transaction).count() == 0


def test_bad_row_fails_alone(db_session: Session):
    bulk_import.stage_records(db_session, [
        _row("1", "JSS1/001"),
        _row("2", "JSS1/002", debts="lots"),
        _row("3", "", names="NoReg"),
    ])

    report = bulk_import.process_pending(db_session)

    assert report.success_count == 1
    assert report.error_count == 2
    assert {e["sn"] for e in report.errors} == {"2", "3"}
    assert db_session.query(Student).count() == 1
    failed = bulk_import.list_records(db_session, status="failed")
    assert len(failed) == 2
    assert all(r.error_message for r in failed)
    assert len(bulk_import.list_records(db_session, status="processed")) == 1


def test_failed_rows_are_not_retried_until_reset(db_session: Session):
    bulk_import.stage_records(db_session, [_row("1", "JSS1/001", debts="lots")])
    bulk_import.process_pending(db_session)

    assert bulk_import.process_pending(db_session).error_count == 0

    record = db_session.query(StagingImportRecord).one()
    record.debts = "1,000"
    db_session.commit()

    assert bulk_import.reset_failed(db_session) == 1
    report = bulk_import.process_pending(db_session)
    assert report.success_count == 1
    assert len(bulk_import.list_records(db_session, status="pending")) == 0
