"""
VirtualAccount model - provider-issued deposit account mapped to a student
"""

from decimal import Decimal
from sqlalchemy import Column, String, ForeignKey, Numeric, Boolean, DateTime, Index, Uuid, text
from sqlalchemy.orm import relationship
from schoolpay.core.common.base_model import BaseModel


class VirtualAccount(BaseModel):
    """
    VirtualAccount - dedicated bank account number issued by the provider

    Inbound transfers to `account_number` are attributed to `beneficiary_id`.
    At most one row per beneficiary may be active; that rule lives in the
    partial unique index below rather than in application code.
    """

    __tablename__ = "virtual_accounts"

    beneficiary_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", name="fk_virtual_accounts_beneficiary_id"), nullable=False, index=True)
    provider_customer_code = Column(String(100), nullable=False)
    account_number = Column(String(20), nullable=False, unique=True, index=True)
    account_name = Column(String(255), nullable=False)
    bank_name = Column(String(100), nullable=False)
    bank_code = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    total_received = Column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    last_payment_at = Column(DateTime(timezone=True), nullable=True)

    student = relationship("Student")

    __table_args__ = (
        Index(
            "uq_virtual_accounts_active_beneficiary",
            "beneficiary_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )
