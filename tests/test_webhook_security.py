"""
Unit tests for webhook signature verification
"""

import hashlib
import hmac
import os

import pytest

from schoolpay.utils.webhook_security import (
    compute_signature,
    verify_hmac_signature,
    verify_paystack_signature,
)


@pytest.fixture
def test_secret():
    return "sk_test_webhook_secret"


@pytest.fixture
def test_payload():
    return b'{"event":"charge.success","data":{"reference":"T1"}}'


@pytest.fixture
def valid_signature(test_payload, test_secret):
    return hmac.new(test_secret.encode("utf-8"), test_payload, hashlib.sha512).hexdigest()


class TestHMACSignatureVerification:
    """HMAC-SHA512 over the raw body"""

    def test_compute_signature_is_hex_sha512(self, test_payload, test_secret, valid_signature):
        signature = compute_signature(test_payload, test_secret)
        assert signature == valid_signature
        assert len(signature) == 128

    def test_valid_signature_passes(self, test_payload, test_secret, valid_signature):
        is_valid, error_code, error_details = verify_hmac_signature(
            payload_body=test_payload,
            signature_header=valid_signature,
            secret=test_secret,
        )
        assert is_valid is True
        assert error_code is None
        assert error_details is None

    def test_uppercase_hex_signature_passes(self, test_payload, test_secret, valid_signature):
        is_valid, _, _ = verify_hmac_signature(test_payload, valid_signature.upper(), test_secret)
        assert is_valid is True

    def test_invalid_signature_fails(self, test_payload, test_secret):
        is_valid, error_code, error_details = verify_hmac_signature(
            payload_body=test_payload,
            signature_header="0" * 128,
            secret=test_secret,
        )
        assert is_valid is False
        assert error_code == "WEBHOOK_INVALID_SIGNATURE"
        assert "hint" in error_details

    def test_single_byte_change_fails(self, test_payload, test_secret, valid_signature):
        tampered = test_payload.replace(b"T1", b"T2")
        is_valid, error_code, _ = verify_hmac_signature(tampered, valid_signature, test_secret)
        assert is_valid is False
        assert error_code == "WEBHOOK_INVALID_SIGNATURE"

    def test_reserialized_body_fails(self, test_secret):
        """Whitespace differences change the bytes and therefore the signature"""
        compact = b'{"a":1,"b":2}'
        spaced = b'{"a": 1, "b": 2}'
        signature = compute_signature(compact, test_secret)
        is_valid, _, _ = verify_hmac_signature(spaced, signature, test_secret)
        assert is_valid is False

    def test_missing_header_fails(self, test_payload, test_secret):
        is_valid, error_code, error_details = verify_hmac_signature(test_payload, None, test_secret)
        assert is_valid is False
        assert error_code == "WEBHOOK_MISSING_HEADER"
        assert error_details["missing_header"] == "X-Paystack-Signature"

    def test_empty_header_fails_as_missing(self, test_payload, test_secret):
        _, error_code, _ = verify_hmac_signature(test_payload, "", test_secret)
        assert error_code == "WEBHOOK_MISSING_HEADER"

    def test_missing_secret_fails(self, test_payload, valid_signature):
        is_valid, error_code, _ = verify_hmac_signature(test_payload, valid_signature, "")
        assert is_valid is False
        assert error_code == "WEBHOOK_INVALID_SIGNATURE"

    def test_wrong_secret_fails(self, test_payload, valid_signature):
        is_valid, _, _ = verify_hmac_signature(test_payload, valid_signature, "another-secret")
        assert is_valid is False


def test_verify_paystack_signature_uses_configured_secret(test_payload):
    signature = compute_signature(test_payload, os.environ["PAYSTACK_SECRET_KEY"])
    is_valid, error_code, _ = verify_paystack_signature(test_payload, signature)
    assert is_valid is True
    assert error_code is None
