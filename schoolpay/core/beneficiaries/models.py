"""
Beneficiary models - students (wallet holders) and their guardians
"""

import enum
from decimal import Decimal
from sqlalchemy import Column, String, ForeignKey, Numeric, Enum as SQLEnum, Uuid
from sqlalchemy.orm import relationship
from schoolpay.core.common.base_model import BaseModel


class MembershipStatus(str, enum.Enum):
    MEMBER = "MEMBER"
    NON_MEMBER = "NON_MEMBER"


class BoardingStatus(str, enum.Enum):
    BOARDER = "BOARDER"
    DAY = "DAY"


class Guardian(BaseModel):
    """
    Guardian (parent) - pays into one or more students' wallets

    Email is the natural key: bulk imports look a guardian up by email and
    create it only when absent, so the unique constraint is what keeps two
    rows with the same parent from producing two guardians.
    """

    __tablename__ = "guardians"

    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)

    students = relationship("Student", back_populates="guardian")


class Student(BaseModel):
    """
    Student - the beneficiary of fee payments

    A student owns exactly one Wallet and at most one active VirtualAccount.
    """

    __tablename__ = "students"

    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    registration_number = Column(String(50), nullable=False, unique=True, index=True)
    admission_number = Column(String(50), nullable=True)
    class_level = Column(String(50), nullable=True)
    guardian_id = Column(Uuid(as_uuid=True), ForeignKey("guardians.id", name="fk_students_guardian_id"), nullable=True, index=True)
    school_fees = Column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    debt_balance = Column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    membership_status = Column(SQLEnum(MembershipStatus, name="membership_status", create_constraint=True), nullable=False, default=MembershipStatus.NON_MEMBER)
    boarding_status = Column(SQLEnum(BoardingStatus, name="boarding_status", create_constraint=True), nullable=False, default=BoardingStatus.DAY)

    guardian = relationship("Guardian", back_populates="students")
    wallet = relationship("Wallet", back_populates="student", uselist=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
