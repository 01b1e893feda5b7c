"""
Idempotent transaction applier

The only code path that changes a wallet balance. Every movement is one
database transaction containing the Transaction row and the balance update,
so either both are visible or neither is.

Idempotency rests on the unique index on `transactions.provider_reference`:
the read-before-write check is a fast path, and a concurrent writer that
loses the race gets an IntegrityError, which is answered with the winner's row.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from schoolpay.core.compliance.models import AuditLog
from schoolpay.core.security.models import Role
from schoolpay.core.transactions.models import (
    Transaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from schoolpay.core.virtual_accounts.models import VirtualAccount
from schoolpay.core.wallets.models import Wallet
from schoolpay.infrastructure.settings import get_settings
from schoolpay.services.errors import (
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidStateError,
    PaymentCoreError,
    PersistenceError,
    ResolutionError,
)

logger = logging.getLogger(__name__)

# Webhook settlement is final for this provider; a multi-stage provider would
# insert PENDING here and complete on a later event.
SETTLED_STATUS = TransactionStatus.COMPLETED


@dataclass
class ApplyResult:
    transaction: Transaction
    created: bool  # False when provider_reference was already applied


def generate_reference(prefix: str = "TXN") -> str:
    """Internal reference, e.g. TXN-1718000000000-9F2A61C04B"""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(5).upper()}"


def find_by_provider_reference(db: Session, provider_reference: str) -> Optional[Transaction]:
    return db.execute(
        select(Transaction).where(Transaction.provider_reference == provider_reference)
    ).scalar_one_or_none()


def credit_wallet(db: Session, wallet_id: UUID, amount: Decimal) -> None:
    """Atomic in-database increment; never read-modify-write in Python"""
    result = db.execute(
        update(Wallet)
        .where(Wallet.id == wallet_id)
        .values(balance=Wallet.balance + amount)
    )
    if result.rowcount != 1:
        raise ResolutionError(
            "Wallet not found",
            details={"wallet_id": str(wallet_id)},
            code="WALLET_NOT_FOUND",
        )


def debit_wallet(db: Session, wallet_id: UUID, amount: Decimal) -> None:
    """Conditional decrement; refuses to take the balance below zero"""
    result = db.execute(
        update(Wallet)
        .where(Wallet.id == wallet_id, Wallet.balance >= amount)
        .values(balance=Wallet.balance - amount)
    )
    if result.rowcount == 1:
        return

    if db.get(Wallet, wallet_id) is None:
        raise ResolutionError(
            "Wallet not found",
            details={"wallet_id": str(wallet_id)},
            code="WALLET_NOT_FOUND",
        )
    raise InsufficientBalanceError(
        "Wallet balance is lower than the amount to debit",
        details={"wallet_id": str(wallet_id), "amount": str(amount)},
    )


def apply_payment(
    db: Session,
    *,
    provider_reference: str,
    beneficiary_id: UUID,
    wallet_id: UUID,
    amount: Decimal,
    category: TransactionCategory = TransactionCategory.WALLET_TOPUP,
    channel: Optional[str] = None,
    raw_payload: Optional[Dict[str, Any]] = None,
    description: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    virtual_account_id: Optional[UUID] = None,
) -> ApplyResult:
    """
    Credit a wallet exactly once per provider reference.

    Returns:
        ApplyResult with the Transaction; `created` is False for a duplicate,
        in which case nothing was written.

    Raises:
        InvalidAmountError: amount <= 0
        ResolutionError: wallet disappeared between resolution and apply
        PersistenceError: any other datastore failure (nothing was written)
    """
    if not provider_reference:
        raise InvalidAmountError("Provider reference is required", code="PROVIDER_REFERENCE_MISSING")
    if amount is None or amount <= 0:
        raise InvalidAmountError(
            "Amount must be positive",
            details={"amount": str(amount), "provider_reference": provider_reference},
        )

    existing = find_by_provider_reference(db, provider_reference)
    if existing is not None:
        logger.info(
            f"Duplicate payment ignored: provider_reference={provider_reference}, "
            f"transaction_id={existing.id}"
        )
        return ApplyResult(transaction=existing, created=False)

    settings = get_settings()
    transaction = Transaction(
        beneficiary_id=beneficiary_id,
        wallet_id=wallet_id,
        type=TransactionType.CREDIT,
        category=category,
        status=SETTLED_STATUS,
        amount=amount,
        currency=settings.WALLET_CURRENCY,
        reference=generate_reference(),
        provider_reference=provider_reference,
        description=description,
        payment_channel=channel,
        payload_snapshot=raw_payload,
        transaction_metadata=metadata,
    )

    try:
        db.add(transaction)
        db.flush()
        credit_wallet(db, wallet_id, amount)
        if virtual_account_id is not None:
            db.execute(
                update(VirtualAccount)
                .where(VirtualAccount.id == virtual_account_id)
                .values(
                    total_received=VirtualAccount.total_received + amount,
                    last_payment_at=datetime.now(timezone.utc),
                )
            )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        winner = find_by_provider_reference(db, provider_reference)
        if winner is not None:
            logger.warning(
                f"Concurrent duplicate payment resolved to existing transaction: "
                f"provider_reference={provider_reference}, transaction_id={winner.id}"
            )
            return ApplyResult(transaction=winner, created=False)
        logger.error(f"Integrity error applying payment: provider_reference={provider_reference}, error={e}")
        raise PersistenceError(
            "Failed to apply payment",
            details={"provider_reference": provider_reference},
        ) from e
    except PaymentCoreError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Error applying payment, rolled back: provider_reference={provider_reference}, error={e}",
            exc_info=True,
        )
        raise PersistenceError(
            "Failed to apply payment",
            details={"provider_reference": provider_reference},
        ) from e

    db.refresh(transaction)
    logger.info(
        f"Payment applied: transaction_id={transaction.id}, reference={transaction.reference}, "
        f"provider_reference={provider_reference}, wallet_id={wallet_id}, amount={amount}"
    )
    return ApplyResult(transaction=transaction, created=True)


def reverse_transaction(
    db: Session,
    *,
    transaction_id: UUID,
    reason: str,
    actor_subject: Optional[str] = None,
) -> Transaction:
    """
    Reverse a completed credit with a compensating debit.

    The original moves to REVERSED, a REVERSAL debit row explains the balance
    change, and an AuditLog row records who did it and why. One commit.

    Returns:
        The compensating debit transaction
    """
    original = db.get(Transaction, transaction_id)
    if original is None:
        raise ResolutionError(
            f"Transaction not found: {transaction_id}",
            details={"transaction_id": str(transaction_id)},
            code="TRANSACTION_NOT_FOUND",
        )
    if original.type != TransactionType.CREDIT or original.status != TransactionStatus.COMPLETED:
        raise InvalidStateError(
            "Only completed credits can be reversed",
            details={
                "transaction_id": str(transaction_id),
                "type": original.type.value,
                "status": original.status.value,
            },
        )

    compensating = Transaction(
        beneficiary_id=original.beneficiary_id,
        wallet_id=original.wallet_id,
        type=TransactionType.DEBIT,
        category=TransactionCategory.REVERSAL,
        status=TransactionStatus.COMPLETED,
        amount=original.amount,
        currency=original.currency,
        reference=generate_reference("REV"),
        provider_reference=None,
        description=f"Reversal of {original.reference}",
        transaction_metadata={"reverses": str(original.id), "reason": reason},
    )

    try:
        # Conditional transition: a concurrent reversal matches zero rows
        result = db.execute(
            update(Transaction)
            .where(Transaction.id == original.id, Transaction.status == TransactionStatus.COMPLETED)
            .values(status=TransactionStatus.REVERSED)
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                "Transaction was reversed concurrently",
                details={"transaction_id": str(transaction_id)},
            )

        db.add(compensating)
        db.flush()
        debit_wallet(db, original.wallet_id, original.amount)

        original.transaction_metadata = {
            **(original.transaction_metadata or {}),
            "reversed_by": str(compensating.id),
        }
        db.add(AuditLog(
            actor_subject=actor_subject,
            actor_role=Role.ADMIN,
            action="TRANSACTION_REVERSED",
            entity_type="Transaction",
            entity_id=original.id,
            before={"status": TransactionStatus.COMPLETED.value},
            after={
                "status": TransactionStatus.REVERSED.value,
                "reversal_transaction_id": str(compensating.id),
                "amount": str(original.amount),
            },
            reason=reason,
        ))
        db.commit()
    except PaymentCoreError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error reversing transaction: transaction_id={transaction_id}, error={e}", exc_info=True)
        raise PersistenceError(
            "Failed to reverse transaction",
            details={"transaction_id": str(transaction_id)},
        ) from e

    db.refresh(compensating)
    logger.info(
        f"Transaction reversed: transaction_id={transaction_id}, "
        f"reversal_id={compensating.id}, actor={actor_subject}"
    )
    return compensating
