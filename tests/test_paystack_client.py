"""
Tests for the Paystack API client (HTTP mocked with httpx.MockTransport)
"""

import json

import httpx
import pytest

from schoolpay.services.errors import (
    FatalCapabilityError,
    FeatureUnavailableError,
    ProviderError,
    ProviderRateLimitError,
)
from schoolpay.services.provider.paystack_client import PaystackClient


def _client(handler) -> PaystackClient:
    return PaystackClient(secret_key="sk_test_x", base_url="https://api.paystack.test", transport=httpx.MockTransport(handler))


def test_create_customer_sends_profile_and_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": True, "data": {"customer_code": "CUS_abc", "email": "a@b.c"}})

    with _client(handler) as client:
        customer = client.create_customer(email="a@b.c", first_name="Ada", last_name="Obi", phone="0800")

    assert customer.customer_code == "CUS_abc"
    assert seen["path"] == "/customer"
    assert seen["auth"] == "Bearer sk_test_x"
    assert seen["body"]["first_name"] == "Ada"
    assert seen["body"]["phone"] == "0800"


def test_create_dedicated_account_maps_bank():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body == {"customer": "CUS_abc", "preferred_bank": "wema-bank"}
        return httpx.Response(200, json={
            "status": True,
            "data": {
                "account_number": "9930000001",
                "account_name": "EDUPAY/ADA OBI",
                "bank": {"id": 20, "name": "Wema Bank", "slug": "wema-bank"},
            },
        })

    with _client(handler) as client:
        account = client.create_dedicated_account(customer_code="CUS_abc")

    assert account.account_number == "9930000001"
    assert account.bank_name == "Wema Bank"
    assert account.bank_code == "20"


def test_429_is_rate_limit_error():
    def handler(request):
        return httpx.Response(429, json={"status": False, "message": "Too many requests"}, headers={"Retry-After": "2"})

    with _client(handler) as client, pytest.raises(ProviderRateLimitError) as exc_info:
        client.create_customer(email="a@b.c", first_name="A", last_name="B")
    assert exc_info.value.status_code == 429
    assert exc_info.value.details["retry_after"] == "2"


def test_feature_unavailable_is_fatal():
    def handler(request):
        return httpx.Response(400, json={
            "status": False,
            "message": "Dedicated NUBAN is not available for this business",
            "code": "feature_unavailable",
        })

    with _client(handler) as client, pytest.raises(FeatureUnavailableError) as exc_info:
        client.create_dedicated_account(customer_code="CUS_abc")
    assert isinstance(exc_info.value, FatalCapabilityError)


def test_other_errors_are_provider_errors():
    def handler(request):
        return httpx.Response(400, json={"status": False, "message": "Invalid email"})

    with _client(handler) as client, pytest.raises(ProviderError) as exc_info:
        client.create_customer(email="bad", first_name="A", last_name="B")
    assert not isinstance(exc_info.value, ProviderRateLimitError)
    assert exc_info.value.status_code == 400


def test_transport_failure_is_provider_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client, pytest.raises(ProviderError):
        client.create_customer(email="a@b.c", first_name="A", last_name="B")


def test_missing_customer_code_is_provider_error():
    def handler(request):
        return httpx.Response(200, json={"status": True, "data": {}})

    with _client(handler) as client, pytest.raises(ProviderError):
        client.create_customer(email="a@b.c", first_name="A", last_name="B")
