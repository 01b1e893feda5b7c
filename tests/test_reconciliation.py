"""
Tests for the reconciliation reporter
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.orm import Session

from schoolpay.core.transactions.models import (
    Transaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from schoolpay.services import event_log
from schoolpay.services.errors import ResolutionError
from schoolpay.services.payment_ingestion import ingest_notification
from schoolpay.services.reconciliation import (
    build_report,
    find_duplicate_transactions,
    find_orphaned_transactions,
    find_unmatched_webhooks,
)
from tests.conftest import charge_payload, get_wallet


def _raw_credit(db, student, provider_reference, reference, amount=Decimal("100.00")):
    wallet = get_wallet(db, student)
    tx = Transaction(
        beneficiary_id=student.id,
        wallet_id=wallet.id,
        type=TransactionType.CREDIT,
        category=TransactionCategory.WALLET_TOPUP,
        status=TransactionStatus.COMPLETED,
        amount=amount,
        currency="NGN",
        reference=reference,
        provider_reference=provider_reference,
    )
    db.add(tx)
    db.commit()
    return tx


def test_healthy_ledger_has_no_findings(db_session: Session, test_student, test_virtual_account):
    ingest_notification(db_session, charge_payload("REF-OK"))

    report = build_report(db_session)

    assert report["summary"] == {
        "unmatched_webhooks": 0,
        "duplicate_groups": 0,
        "orphaned_transactions": 0,
        "healthy": True,
    }


def test_unmatched_webhook_reported(db_session: Session, test_student):
    try:
        ingest_notification(db_session, charge_payload("REF-LOST", account_number="0000000000"))
    except ResolutionError:
        pass

    unmatched = find_unmatched_webhooks(db_session)

    assert len(unmatched) == 1
    assert unmatched[0].provider_reference == "REF-LOST"
    assert unmatched[0].proposed_action == "create_transaction"
    assert unmatched[0].error_message.startswith("VIRTUAL_ACCOUNT_NOT_FOUND")


def test_non_charge_events_are_not_unmatched(db_session: Session):
    event_log.record_event(
        db_session,
        event_type="transfer.success",
        provider_reference="TRF-1",
        payload={"event": "transfer.success"},
        signature_valid=True,
    )

    assert find_unmatched_webhooks(db_session) == []


def test_orphaned_transaction_reported(db_session: Session, test_student):
    _raw_credit(db_session, test_student, "REF-NO-EVENT", "TXN-ORPHAN")

    orphaned = find_orphaned_transactions(db_session)

    assert len(orphaned) == 1
    assert orphaned[0].reference == "TXN-ORPHAN"
    assert orphaned[0].proposed_action == "verify_with_provider"


def test_duplicates_detected_when_index_missing(db_session: Session, test_student):
    db_session.execute(text("DROP INDEX uq_transactions_provider_reference"))
    db_session.commit()
    first = _raw_credit(db_session, test_student, "REF-TWICE", "TXN-1", Decimal("100.00"))
    second = _raw_credit(db_session, test_student, "REF-TWICE", "TXN-2", Decimal("100.00"))

    duplicates = find_duplicate_transactions(db_session)

    assert len(duplicates) == 1
    group = duplicates[0]
    assert group.provider_reference == "REF-TWICE"
    assert group.count == 2
    assert set(group.transaction_ids) == {first.id, second.id}
    assert group.total_amount == Decimal("200.00")
    assert group.severity == "critical"

    report = build_report(db_session)
    assert report["summary"]["healthy"] is False
    assert report["summary"]["duplicate_groups"] == 1


def test_internal_movements_are_not_orphaned(db_session: Session, test_student):
    _raw_credit(db_session, test_student, None, "TXN-INTERNAL")

    assert find_orphaned_transactions(db_session) == []
    assert find_duplicate_transactions(db_session) == []
