"""
Transaction model - every balance-changing movement of a wallet
"""

import enum
from sqlalchemy import Column, String, ForeignKey, Numeric, Enum as SQLEnum, JSON, Text, CheckConstraint, Index, Uuid
from sqlalchemy.orm import relationship
from schoolpay.core.common.base_model import BaseModel


class TransactionType(str, enum.Enum):
    """Direction of the wallet movement"""
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class TransactionStatus(str, enum.Enum):
    """
    PENDING -> COMPLETED | FAILED; COMPLETED -> REVERSED (explicit reversal only)
    """
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REVERSED = "REVERSED"


class TransactionCategory(str, enum.Enum):
    FEE_PAYMENT = "FEE_PAYMENT"
    WALLET_TOPUP = "WALLET_TOPUP"
    CANTEEN = "CANTEEN"
    BOOKS = "BOOKS"
    TRANSPORT = "TRANSPORT"
    REVERSAL = "REVERSAL"
    OTHER = "OTHER"


class Transaction(BaseModel):
    """
    Transaction - ledger row explaining a wallet movement

    `reference` is our own identifier; `provider_reference` is the gateway's
    settlement reference and is the idempotency key for webhook-originated
    credits. It is unique at the storage level (NULLs allowed for internal
    movements such as opening debts and reversals).

    Webhook events are correlated by `provider_reference` string equality,
    never by foreign key.
    """

    __tablename__ = "transactions"

    beneficiary_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", name="fk_transactions_beneficiary_id"), nullable=False, index=True)
    wallet_id = Column(Uuid(as_uuid=True), ForeignKey("wallets.id", name="fk_transactions_wallet_id"), nullable=False, index=True)
    type = Column(SQLEnum(TransactionType, name="transaction_type", create_constraint=True), nullable=False, index=True)
    category = Column(SQLEnum(TransactionCategory, name="transaction_category", create_constraint=True), nullable=False, index=True)
    status = Column(SQLEnum(TransactionStatus, name="transaction_status", create_constraint=True), nullable=False, default=TransactionStatus.PENDING, index=True)
    amount = Column(Numeric(20, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")
    reference = Column(String(100), nullable=False, unique=True, index=True)
    provider_reference = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    payment_channel = Column(String(50), nullable=True)
    payload_snapshot = Column(JSON, nullable=True)  # Gateway notification as received
    transaction_metadata = Column("metadata", JSON, nullable=True)

    wallet = relationship("Wallet")
    student = relationship("Student")

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_transactions_amount_positive"),
        Index("uq_transactions_provider_reference", "provider_reference", unique=True),
    )
