"""
Wallet model - spendable balance of a student
"""

from decimal import Decimal
from sqlalchemy import Column, String, ForeignKey, Numeric, CheckConstraint, Uuid
from sqlalchemy.orm import relationship
from schoolpay.core.common.base_model import BaseModel


class Wallet(BaseModel):
    """
    Wallet - one per student

    `balance` is never written directly by application code: it moves only
    through the transaction applier, in the same database transaction as the
    Transaction row that explains the movement.
    """

    __tablename__ = "wallets"

    beneficiary_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", name="fk_wallets_beneficiary_id"), nullable=False, unique=True, index=True)
    balance = Column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    currency = Column(String(3), nullable=False, default="NGN")

    student = relationship("Student", back_populates="wallet")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="check_wallets_balance_non_negative"),
    )
