"""
Staff authentication utilities.

Access tokens are issued by the identity service; this module only signs
tokens for internal tooling and tests, and verifies incoming Bearer tokens.
Claims: sub (user id), tenant_id, role.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import Header, HTTPException, status

from shared.config.constants import ErrorMessages, Role
from shared.config.logging import get_logger
from shared.config.settings import JWT_AUDIENCE, JWT_ISSUER, JWT_SECRET, settings

logger = get_logger(__name__)

ROLE_VALUES = frozenset(role.value for role in Role)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def sign_jwt(payload: dict[str, Any], ttl_seconds: int | None = None) -> str:
    """
    Sign an access token with the given claims.

    Args:
        payload: Claims to include (sub, tenant_id, role).
        ttl_seconds: Token lifetime in seconds. Defaults to the access token expiry.

    Returns:
        Signed JWT token string.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "exp": now + ttl_seconds,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, JWT_SECRET, algorithm="HS256")


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Returns:
        Decoded token claims.

    Raises:
        HTTPException: 401 if the token is invalid, expired or missing claims.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized(ErrorMessages.TOKEN_EXPIRED)
    except jwt.InvalidTokenError as e:
        # Keep library details out of the response
        logger.warning("JWT validation failed", error=str(e))
        raise _unauthorized(ErrorMessages.INVALID_TOKEN)

    try:
        int(payload["sub"])
    except (KeyError, ValueError, TypeError):
        raise _unauthorized("Invalid token: malformed subject claim")

    if not isinstance(payload.get("tenant_id"), int):
        raise _unauthorized("Invalid token: malformed tenant_id claim")

    if payload.get("role") not in ROLE_VALUES:
        raise _unauthorized("Invalid token: unknown role claim")

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        HTTPException: If header is missing or malformed.
    """
    if not authorization:
        raise _unauthorized(ErrorMessages.NOT_AUTHENTICATED)
    if not authorization.startswith("Bearer "):
        raise _unauthorized("Invalid Authorization header format. Expected: Bearer <token>")
    return authorization.split(" ", 1)[1].strip()


def current_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    FastAPI dependency to get the current staff context from the JWT.

    Usage:
        @router.get("/protected")
        async def protected_endpoint(ctx: dict = Depends(current_user_context)):
            tenant_id = ctx["tenant_id"]
            ...

    Returns:
        Dict with: sub (user_id), tenant_id, role
    """
    token = get_bearer_token(authorization)
    return verify_jwt(token)
