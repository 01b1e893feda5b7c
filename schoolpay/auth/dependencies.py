"""
Authentication dependencies for FastAPI
"""

import jwt as pyjwt
from fastapi import Depends, HTTPException, Header, Request, status

from schoolpay.auth.principal import Principal
from schoolpay.core.security.models import Role
from schoolpay.infrastructure.settings import get_settings


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": {"code": code, "message": message}},
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> Principal:
    """
    Decode an HS256 token issued by the portal's auth service.

    Raises:
        HTTPException(401) on expired, malformed or badly signed tokens
    """
    settings = get_settings()
    if not settings.JWT_SECRET:
        raise _unauthorized("AUTH_NOT_CONFIGURED", "JWT_SECRET not configured")

    try:
        payload = pyjwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except pyjwt.ExpiredSignatureError:
        raise _unauthorized("TOKEN_EXPIRED", "Token expired")
    except pyjwt.InvalidTokenError as e:
        raise _unauthorized("INVALID_TOKEN", f"Invalid token: {e}")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]

    return Principal(
        subject=str(payload.get("sub") or ""),
        email=payload.get("email"),
        roles=[str(role).upper() for role in roles],
        raw_claims=payload,
    )


async def get_current_principal(
    request: Request,
    authorization: str = Header(None),
) -> Principal:
    """Extract Principal from the `Authorization: Bearer <jwt>` header"""
    if not authorization:
        raise _unauthorized("AUTHORIZATION_MISSING", "Authorization header missing")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("INVALID_AUTHORIZATION", "Invalid authorization header format")

    principal = decode_token(token.strip())
    request.state.principal = principal
    return principal


def require_admin_role():
    """Require ADMIN role - returns dependency"""
    async def _check_role(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_role(Role.ADMIN.value):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": {"code": "FORBIDDEN", "message": "Insufficient permissions - ADMIN role required"}},
            )
        return principal
    return _check_role
