"""
DEV-ONLY webhook utilities for local development and testing
"""

import json
from fastapi import APIRouter, HTTPException, status

from schoolpay.infrastructure.settings import get_settings
from schoolpay.schemas.webhooks import SignWebhookRequest, SignWebhookResponse
from schoolpay.utils.webhook_security import SIGNATURE_HEADER, compute_signature

router = APIRouter(prefix="/webhooks/paystack", tags=["dev-webhooks"])


@router.post("/sign", response_model=SignWebhookResponse, summary="Generate signed webhook request (DEV-ONLY)")
async def sign_webhook_request(request: SignWebhookRequest) -> SignWebhookResponse:
    """
    Sign a notification body with the configured Paystack secret.

    The signature covers the exact compact JSON bytes returned in `body`;
    send those bytes unchanged or verification fails.

    **Example Usage**:
    ```bash
    curl -X POST http://localhost:8000/dev/v1/webhooks/paystack/sign \\
      -H "Content-Type: application/json" \\
      -d '{"payload": {"event": "charge.success", "data": {"reference": "T1", "amount": 500000,
           "status": "success", "authorization": {"account_number": "9930000001"}}}}'
    ```
    """
    settings = get_settings()
    if not settings.DEV_MODE:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": {"code": "NOT_FOUND", "message": "Endpoint not available (DEV_MODE=false)"}},
        )

    if not settings.PAYSTACK_SECRET_KEY:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": {
                    "code": "CONFIGURATION_ERROR",
                    "message": "PAYSTACK_SECRET_KEY not configured",
                    "details": {"hint": "Set PAYSTACK_SECRET_KEY in environment variables"},
                }
            },
        )

    body = json.dumps(request.payload, separators=(",", ":"))
    signature = compute_signature(body.encode("utf-8"), settings.PAYSTACK_SECRET_KEY)
    headers = {
        SIGNATURE_HEADER: signature,
        "Content-Type": "application/json",
    }

    curl_example = f"""curl -X POST http://localhost:8000{settings.WEBHOOKS_V1_PREFIX}/paystack \\
  -H "Content-Type: application/json" \\
  -H "{SIGNATURE_HEADER}: {signature}" \\
  -d '{body}'"""

    return SignWebhookResponse(body=body, headers=headers, curl_example=curl_example)
