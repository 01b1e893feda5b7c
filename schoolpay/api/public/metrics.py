"""
Prometheus metrics endpoint
"""

import hmac
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import Response

from schoolpay.auth.dependencies import decode_token
from schoolpay.core.security.models import Role
from schoolpay.infrastructure.settings import get_settings
from schoolpay.utils.metrics import CONTENT_TYPE_LATEST, get_metrics_output

logger = logging.getLogger(__name__)

router = APIRouter()


async def verify_metrics_access(
    request: Request,
    x_metrics_token: Optional[str] = Header(None, alias="X-Metrics-Token"),
) -> bool:
    """
    Verify access to metrics endpoint.

    Access is granted if:
    - METRICS_PUBLIC=true, OR
    - METRICS_TOKEN is set and matches X-Metrics-Token header, OR
    - the Bearer token carries the ADMIN role
    """
    settings = get_settings()

    if settings.METRICS_PUBLIC:
        return True

    if settings.METRICS_TOKEN and x_metrics_token:
        if hmac.compare_digest(x_metrics_token, settings.METRICS_TOKEN):
            return True

    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        try:
            principal = decode_token(authorization.split(" ", 1)[1].strip())
        except HTTPException:
            principal = None
        if principal is not None and principal.has_role(Role.ADMIN.value):
            return True

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Access to metrics endpoint denied. Set METRICS_PUBLIC=true or provide valid METRICS_TOKEN or ADMIN role.",
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    description="Expose Prometheus metrics for observability. Protected by default (METRICS_PUBLIC=false).",
)
async def get_metrics(_: bool = Depends(verify_metrics_access)) -> Response:
    """Metrics in Prometheus exposition format"""
    return Response(content=get_metrics_output(), media_type=CONTENT_TYPE_LATEST)
