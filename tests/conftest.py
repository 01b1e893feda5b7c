"""
Pytest configuration and fixtures
"""

import json
import os
from decimal import Decimal
from typing import Any, Dict, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from tests.auth_utils import TEST_JWT_SECRET

# Set test environment variables before importing the app
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_paystack_secret_for_testing_only"
os.environ["JWT_SECRET"] = TEST_JWT_SECRET
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEV_MODE"] = "true"
os.environ["PROVISIONING_DELAY_SECONDS"] = "0"
os.environ["PROVISIONING_SETTLE_SECONDS"] = "0"
os.environ["PROVIDER_BACKOFF_BASE_SECONDS"] = "0"

from schoolpay.infrastructure.database import Base, get_db
from schoolpay.main import app
import schoolpay.models  # noqa: F401
from schoolpay.core.beneficiaries.models import Guardian, Student
from schoolpay.core.virtual_accounts.models import VirtualAccount
from schoolpay.core.wallets.models import Wallet
from schoolpay.services.provider.paystack_client import DedicatedAccount, ProviderCustomer
from schoolpay.utils.webhook_security import SIGNATURE_HEADER, compute_signature


test_engine = create_engine(
    "sqlite://",
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Create a fresh database session for each test.
    Recreates all tables before and drops them after each test.
    """
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)

    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def client(db_session: Session):
    """
    Create FastAPI test client with the database dependency overridden.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_student(
    db: Session,
    *,
    registration_number: str = "JSS1/001",
    first_name: str = "Ada",
    last_name: str = "Obi",
    email: Optional[str] = None,
    guardian: Optional[Guardian] = None,
    with_wallet: bool = True,
    balance: Decimal = Decimal("0.00"),
) -> Student:
    student = Student(
        registration_number=registration_number,
        email=email or f"{registration_number.lower().replace('/', '-')}@edupay.school",
        first_name=first_name,
        last_name=last_name,
        guardian_id=guardian.id if guardian else None,
    )
    db.add(student)
    db.flush()
    if with_wallet:
        db.add(Wallet(beneficiary_id=student.id, balance=balance, currency="NGN"))
    db.commit()
    db.refresh(student)
    return student


def make_virtual_account(
    db: Session,
    student: Student,
    *,
    account_number: str = "9930000001",
    is_active: bool = True,
) -> VirtualAccount:
    virtual_account = VirtualAccount(
        beneficiary_id=student.id,
        provider_customer_code=f"CUS_{account_number}",
        account_number=account_number,
        account_name=f"EDUPAY/{student.first_name} {student.last_name}".upper(),
        bank_name="Wema Bank",
        bank_code="035",
        is_active=is_active,
    )
    db.add(virtual_account)
    db.commit()
    db.refresh(virtual_account)
    return virtual_account


def get_wallet(db: Session, student: Student) -> Wallet:
    wallet = db.query(Wallet).filter(Wallet.beneficiary_id == student.id).one()
    db.refresh(wallet)
    return wallet


@pytest.fixture
def test_student(db_session: Session) -> Student:
    """Student with an empty wallet"""
    return make_student(db_session)


@pytest.fixture
def test_virtual_account(db_session: Session, test_student: Student) -> VirtualAccount:
    """Active virtual account for test_student"""
    return make_virtual_account(db_session, test_student)


def charge_payload(
    reference: str,
    account_number: str = "9930000001",
    amount_minor: Any = 500000,
    event: str = "charge.success",
    status: str = "success",
) -> Dict[str, Any]:
    """charge.success notification in the provider's shape"""
    return {
        "event": event,
        "data": {
            "reference": reference,
            "amount": amount_minor,
            "currency": "NGN",
            "status": status,
            "channel": "dedicated_nuban",
            "paid_at": "2026-01-15T10:00:00.000Z",
            "customer": {"email": "parent@example.com", "customer_code": "CUS_test"},
            "authorization": {
                "account_number": account_number,
                "bank": "Wema Bank",
                "receiver_bank_account_number": account_number,
            },
        },
    }


def signed_request(payload: Dict[str, Any], secret: Optional[str] = None):
    """(body_bytes, headers) signed with the configured secret"""
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    signature = compute_signature(body, secret or os.environ["PAYSTACK_SECRET_KEY"])
    return body, {SIGNATURE_HEADER: signature, "Content-Type": "application/json"}


class FakePaystackClient:
    """
    In-memory stand-in for PaystackClient.

    `customer_errors` / `account_errors` are consumed in order, one per call;
    a None entry means that call succeeds.
    """

    def __init__(self, customer_errors=None, account_errors=None):
        self.customer_errors = list(customer_errors or [])
        self.account_errors = list(account_errors or [])
        self.customer_calls = []
        self.account_calls = []
        self._next_account = 9930100000

    def create_customer(self, *, email, first_name, last_name, phone=None, metadata=None):
        self.customer_calls.append(email)
        error = self.customer_errors.pop(0) if self.customer_errors else None
        if error is not None:
            raise error
        return ProviderCustomer(customer_code=f"CUS_{len(self.customer_calls)}", email=email)

    def create_dedicated_account(self, *, customer_code):
        self.account_calls.append(customer_code)
        error = self.account_errors.pop(0) if self.account_errors else None
        if error is not None:
            raise error
        self._next_account += 1
        return DedicatedAccount(
            account_number=str(self._next_account),
            account_name=f"EDUPAY/{customer_code}",
            bank_name="Wema Bank",
            bank_code="035",
        )
