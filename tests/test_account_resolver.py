"""
Tests for virtual account resolution
"""

import pytest
from sqlalchemy.orm import Session

from schoolpay.services.account_resolver import resolve, resolve_for_beneficiary
from schoolpay.services.errors import ResolutionError
from tests.conftest import get_wallet, make_student, make_virtual_account


def test_resolve_active_account(db_session: Session, test_student, test_virtual_account):
    resolved = resolve(db_session, "9930000001")

    assert resolved.beneficiary_id == test_student.id
    assert resolved.wallet_id == get_wallet(db_session, test_student).id
    assert resolved.virtual_account_id == test_virtual_account.id
    assert resolved.bank_name == "Wema Bank"


def test_unknown_account_number(db_session: Session, test_virtual_account):
    with pytest.raises(ResolutionError) as exc_info:
        resolve(db_session, "1234567890")
    assert exc_info.value.code == "VIRTUAL_ACCOUNT_NOT_FOUND"
    assert exc_info.value.http_status == 404


def test_inactive_account_is_not_resolved(db_session: Session, test_student):
    make_virtual_account(db_session, test_student, account_number="9930000002", is_active=False)

    with pytest.raises(ResolutionError):
        resolve(db_session, "9930000002")


def test_account_without_wallet(db_session: Session):
    student = make_student(db_session, registration_number="SS3/010", with_wallet=False)
    make_virtual_account(db_session, student, account_number="9930000003")

    with pytest.raises(ResolutionError) as exc_info:
        resolve(db_session, "9930000003")
    assert exc_info.value.code == "WALLET_NOT_FOUND"


def test_empty_account_number(db_session: Session):
    with pytest.raises(ResolutionError) as exc_info:
        resolve(db_session, "")
    assert exc_info.value.code == "ACCOUNT_NUMBER_MISSING"


def test_resolve_for_beneficiary_uses_active_account(db_session: Session, test_student):
    make_virtual_account(db_session, test_student, account_number="9930000004", is_active=False)
    make_virtual_account(db_session, test_student, account_number="9930000005")

    resolved = resolve_for_beneficiary(db_session, test_student.id)

    assert resolved.account_number == "9930000005"


def test_resolve_for_beneficiary_without_account(db_session: Session, test_student):
    with pytest.raises(ResolutionError):
        resolve_for_beneficiary(db_session, test_student.id)
