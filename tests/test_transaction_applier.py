"""
Tests for the idempotent transaction applier
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schoolpay.core.compliance.models import AuditLog
from schoolpay.core.transactions.models import (
    Transaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from schoolpay.services import transaction_applier
from schoolpay.services.errors import (
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidStateError,
    PersistenceError,
    ResolutionError,
)
from schoolpay.services.transaction_applier import apply_payment, reverse_transaction
from tests.conftest import get_wallet


def _apply(db, student, reference="PSK-REF-1", amount=Decimal("1500.00"), **kwargs):
    wallet = get_wallet(db, student)
    return apply_payment(
        db,
        provider_reference=reference,
        beneficiary_id=student.id,
        wallet_id=wallet.id,
        amount=amount,
        **kwargs,
    )


class TestApplyPayment:
    def test_first_application_creates_completed_credit(self, db_session: Session, test_student):
        result = _apply(db_session, test_student, channel="dedicated_nuban", metadata={"bank": "Wema"})

        assert result.created is True
        tx = result.transaction
        assert tx.type == TransactionType.CREDIT
        assert tx.status == TransactionStatus.COMPLETED
        assert tx.category == TransactionCategory.WALLET_TOPUP
        assert tx.amount == Decimal("1500.00")
        assert tx.currency == "NGN"
        assert tx.reference.startswith("TXN-")
        assert tx.payment_channel == "dedicated_nuban"
        assert tx.transaction_metadata == {"bank": "Wema"}
        assert get_wallet(db_session, test_student).balance == Decimal("1500.00")

    def test_same_reference_applied_twice_credits_once(self, db_session: Session, test_student):
        first = _apply(db_session, test_student, reference="PSK-REF-2")
        second = _apply(db_session, test_student, reference="PSK-REF-2")

        assert first.created is True
        assert second.created is False
        assert second.transaction.id == first.transaction.id
        assert db_session.query(Transaction).count() == 1
        assert get_wallet(db_session, test_student).balance == Decimal("1500.00")

    def test_distinct_references_accumulate(self, db_session: Session, test_student):
        _apply(db_session, test_student, reference="A", amount=Decimal("100.00"))
        _apply(db_session, test_student, reference="B", amount=Decimal("250.50"))

        assert get_wallet(db_session, test_student).balance == Decimal("350.50")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10.00")])
    def test_non_positive_amount_rejected(self, db_session: Session, test_student, amount):
        with pytest.raises(InvalidAmountError):
            _apply(db_session, test_student, amount=amount)
        assert db_session.query(Transaction).count() == 0

    def test_missing_reference_rejected(self, db_session: Session, test_student):
        with pytest.raises(InvalidAmountError) as exc_info:
            _apply(db_session, test_student, reference="")
        assert exc_info.value.code == "PROVIDER_REFERENCE_MISSING"

    def test_balance_failure_rolls_back_transaction_row(self, db_session: Session, test_student, monkeypatch):
        def failing_credit(db, wallet_id, amount):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(transaction_applier, "credit_wallet", failing_credit)

        with pytest.raises(PersistenceError):
            _apply(db_session, test_student, reference="PSK-ATOMIC")

        assert db_session.query(Transaction).count() == 0
        assert get_wallet(db_session, test_student).balance == Decimal("0.00")

    def test_unknown_wallet_rolls_back(self, db_session: Session, test_student):
        from uuid import uuid4

        with pytest.raises(ResolutionError):
            apply_payment(
                db_session,
                provider_reference="PSK-NOWALLET",
                beneficiary_id=test_student.id,
                wallet_id=uuid4(),
                amount=Decimal("10.00"),
            )
        assert db_session.query(Transaction).count() == 0

    def test_concurrent_duplicate_resolves_to_winner(self, db_session: Session, test_student, monkeypatch):
        """
        A second writer that passed the read check before the first committed
        hits the unique index and gets the winner's row back.
        """
        winner = _apply(db_session, test_student, reference="PSK-RACE").transaction

        real_find = transaction_applier.find_by_provider_reference
        calls = {"count": 0}

        def stale_find(db, provider_reference):
            calls["count"] += 1
            if calls["count"] == 1:
                return None  # Read happened before the winner committed
            return real_find(db, provider_reference)

        monkeypatch.setattr(transaction_applier, "find_by_provider_reference", stale_find)

        result = _apply(db_session, test_student, reference="PSK-RACE")

        assert result.created is False
        assert result.transaction.id == winner.id
        assert db_session.query(Transaction).count() == 1
        assert get_wallet(db_session, test_student).balance == Decimal("1500.00")


class TestReverseTransaction:
    def test_reversal_posts_compensating_debit(self, db_session: Session, test_student):
        original = _apply(db_session, test_student, reference="PSK-REV").transaction

        reversal = reverse_transaction(
            db_session,
            transaction_id=original.id,
            reason="Paid into wrong account",
            actor_subject="admin-1",
        )

        db_session.refresh(original)
        assert original.status == TransactionStatus.REVERSED
        assert original.transaction_metadata["reversed_by"] == str(reversal.id)
        assert reversal.type == TransactionType.DEBIT
        assert reversal.category == TransactionCategory.REVERSAL
        assert reversal.status == TransactionStatus.COMPLETED
        assert reversal.amount == original.amount
        assert reversal.provider_reference is None
        assert reversal.transaction_metadata["reverses"] == str(original.id)
        assert get_wallet(db_session, test_student).balance == Decimal("0.00")

        audit = db_session.query(AuditLog).filter(AuditLog.action == "TRANSACTION_REVERSED").one()
        assert audit.entity_id == original.id
        assert audit.actor_subject == "admin-1"
        assert audit.reason == "Paid into wrong account"

    def test_second_reversal_rejected(self, db_session: Session, test_student):
        original = _apply(db_session, test_student, reference="PSK-REV2").transaction
        reverse_transaction(db_session, transaction_id=original.id, reason="first")

        with pytest.raises(InvalidStateError):
            reverse_transaction(db_session, transaction_id=original.id, reason="second")
        assert get_wallet(db_session, test_student).balance == Decimal("0.00")

    def test_reversal_refused_when_balance_already_spent(self, db_session: Session, test_student):
        original = _apply(db_session, test_student, reference="PSK-SPENT").transaction
        wallet = get_wallet(db_session, test_student)
        transaction_applier.debit_wallet(db_session, wallet.id, Decimal("1000.00"))
        db_session.commit()

        with pytest.raises(InsufficientBalanceError):
            reverse_transaction(db_session, transaction_id=original.id, reason="too late")

        db_session.refresh(original)
        assert original.status == TransactionStatus.COMPLETED
        assert get_wallet(db_session, test_student).balance == Decimal("500.00")
        assert db_session.query(Transaction).filter(Transaction.category == TransactionCategory.REVERSAL).count() == 0

    def test_unknown_transaction(self, db_session: Session):
        from uuid import uuid4

        with pytest.raises(ResolutionError) as exc_info:
            reverse_transaction(db_session, transaction_id=uuid4(), reason="nope")
        assert exc_info.value.code == "TRANSACTION_NOT_FOUND"
