"""
Avoid the Rain Security Utilities

Access-token decoding for dashboard requests and shared-secret checks
for the periodic job triggers.
"""

import hmac

import structlog
from jose import JWTError, jwt

from core.config import get_settings

logger = structlog.get_logger()


def decode_access_token(token: str) -> dict | None:
    """Decode and validate an HS256 access token issued by the auth provider."""
    runtime_settings = get_settings()
    try:
        return jwt.decode(
            token,
            runtime_settings.jwt_secret,
            algorithms=[runtime_settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError:
        return None


def verify_cron_secret(authorization: str | None) -> bool:
    """
    Check an ``Authorization: Bearer <secret>`` header against CRON_SECRET.

    Fails closed: with no secret configured every trigger is rejected.
    """
    expected = get_settings().cron_secret
    if not expected:
        logger.error("cron.secret_not_configured")
        return False
    if not authorization:
        return False
    return hmac.compare_digest(authorization.encode(), f"Bearer {expected}".encode())
