"""
Paystack API client - customer and dedicated virtual account creation

Auth: Bearer secret key.
Docs: https://paystack.com/docs/api/dedicated-virtual-account/

Errors are classified here so callers never look at HTTP details:
- 429 -> ProviderRateLimitError (retryable)
- dedicated accounts not enabled for the business -> FeatureUnavailableError (fatal for a run)
- anything else -> ProviderError
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from schoolpay.infrastructure.settings import get_settings
from schoolpay.services.errors import (
    FeatureUnavailableError,
    ProviderError,
    ProviderRateLimitError,
)

logger = logging.getLogger(__name__)

_FEATURE_UNAVAILABLE_CODES = {"feature_unavailable"}
_FEATURE_UNAVAILABLE_MARKERS = (
    "feature unavailable",
    "feature_unavailable",
    "not available for your business",
    "not available for this business",
    "dedicated nuban is not available",
)


@dataclass(frozen=True)
class ProviderCustomer:
    customer_code: str
    email: str


@dataclass(frozen=True)
class DedicatedAccount:
    account_number: str
    account_name: str
    bank_name: str
    bank_code: Optional[str]


def _is_feature_unavailable(body: Dict[str, Any]) -> bool:
    code = str(body.get("code") or "").lower()
    message = str(body.get("message") or "").lower()
    return code in _FEATURE_UNAVAILABLE_CODES or any(marker in message for marker in _FEATURE_UNAVAILABLE_MARKERS)


class PaystackClient:
    """Synchronous Paystack API client (one httpx.Client, reused across calls)"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        self.preferred_bank = settings.PAYSTACK_PREFERRED_BANK
        self._client = httpx.Client(
            base_url=base_url or settings.PAYSTACK_BASE_URL,
            timeout=timeout or settings.PAYSTACK_TIMEOUT_SECONDS,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "PaystackClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Paystack request failed: path={path}, error={e}")
            raise ProviderError(f"Paystack request failed: {e}", details={"path": path}) from e

        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text[:500]}
        if not isinstance(body, dict):
            body = {}

        if response.status_code == 429:
            raise ProviderRateLimitError(
                "Paystack rate limit exceeded",
                details={"path": path, "retry_after": response.headers.get("Retry-After")},
                status_code=429,
            )

        if _is_feature_unavailable(body):
            raise FeatureUnavailableError(
                body.get("message") or "Dedicated virtual accounts are not available for this business",
                details={"path": path, "status_code": response.status_code},
            )

        if response.status_code >= 400 or body.get("status") is False:
            message = body.get("message") or f"HTTP {response.status_code}"
            raise ProviderError(
                f"Paystack error: {message}",
                details={"path": path, "status_code": response.status_code},
                status_code=response.status_code,
            )

        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def create_customer(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        phone: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ProviderCustomer:
        payload: Dict[str, Any] = {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "metadata": metadata or {},
        }
        if phone:
            payload["phone"] = phone

        data = self._post("/customer", payload)
        customer_code = data.get("customer_code")
        if not customer_code:
            raise ProviderError("Paystack customer response missing customer_code", details={"email": email})

        logger.info(f"Paystack customer created: customer_code={customer_code}, email={email}")
        return ProviderCustomer(customer_code=customer_code, email=email)

    def create_dedicated_account(self, *, customer_code: str) -> DedicatedAccount:
        data = self._post("/dedicated_account", {
            "customer": customer_code,
            "preferred_bank": self.preferred_bank,
        })
        bank = data.get("bank") or {}
        account_number = data.get("account_number")
        if not account_number:
            raise ProviderError(
                "Paystack dedicated account response missing account_number",
                details={"customer_code": customer_code},
            )

        logger.info(
            f"Paystack dedicated account created: customer_code={customer_code}, "
            f"account_number={account_number}, bank={bank.get('name')}"
        )
        return DedicatedAccount(
            account_number=str(account_number),
            account_name=data.get("account_name") or "",
            bank_name=bank.get("name") or "",
            bank_code=str(bank["id"]) if bank.get("id") is not None else None,
        )


def get_paystack_client():
    """FastAPI dependency: one client per request, closed afterwards"""
    client = PaystackClient()
    try:
        yield client
    finally:
        client.close()
