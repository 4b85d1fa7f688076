"""
Avoid the Rain API Dependencies

Dependency injection for DB sessions, auth, the clock and the external
collaborators (address verification, email).
"""

from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock, get_clock
from core.config import get_settings
from db.models import User
from db.session import AsyncSessionLocal
from integrations.address_verification import AddressVerifier, build_address_verifier
from notifications.email import EmailNotifier, Notifier

settings = get_settings()
security = HTTPBearer(auto_error=not settings.debug)

# Dev user must match the local seed data
DEV_USER_EMAIL = "dev@avoidtherain.com"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the account behind the bearer token. Bypassed in debug mode."""
    if settings.debug:
        email = DEV_USER_EMAIL
    else:
        if credentials is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
            )

        from core.security import decode_access_token

        payload = decode_access_token(credentials.credentials)
        if payload is None or not payload.get("email"):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
            )
        email = payload["email"]

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No account for this login",
        )
    return user


def get_app_clock() -> Clock:
    return get_clock()


@lru_cache
def get_address_verifier() -> AddressVerifier:
    """One verifier per process so its OAuth token cache is shared across requests."""
    return build_address_verifier(get_settings())


def get_notifier() -> Notifier:
    return EmailNotifier.from_settings(get_settings())


async def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Reject periodic-job triggers without ``Authorization: Bearer <CRON_SECRET>``."""
    from core.security import verify_cron_secret

    if not verify_cron_secret(authorization):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
