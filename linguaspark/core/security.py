"""
Caller identity via the Supabase auth endpoint, and the admin gate
"""
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from linguaspark.config import settings
from linguaspark.core.exceptions import (
    AuthenticationRequiredError,
    ConfigurationError,
    NetworkTimeoutError,
    PermissionDeniedError,
)
from linguaspark.core.logging import get_logger
from linguaspark.core.retry import auth_retry
from linguaspark.db import get_session
from linguaspark.models import Tutor

logger = get_logger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None
    token: Optional[str] = None


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@auth_retry
async def fetch_supabase_user(token: str) -> Optional[dict]:
    """Ask Supabase who owns the token. None means the token was rejected."""
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise ConfigurationError("Supabase URL and anon key must be configured for authentication")

    url = f"{settings.supabase_url.rstrip('/')}/auth/v1/user"
    headers = {"apikey": settings.supabase_anon_key, "Authorization": f"Bearer {token}"}
    try:
        async with httpx.AsyncClient(timeout=settings.auth_timeout_seconds) as client:
            response = await client.get(url, headers=headers)
    except httpx.TransportError as e:
        raise NetworkTimeoutError(f"Identity provider unreachable: {e}", status=0)

    if response.status_code in (401, 403):
        return None
    if response.status_code >= 500:
        raise NetworkTimeoutError("Identity provider unavailable", status=response.status_code)
    response.raise_for_status()
    return response.json()


async def get_optional_user(request: Request) -> Optional[CurrentUser]:
    token = bearer_token(request)
    if token is None:
        return None
    data = await fetch_supabase_user(token)
    if not data or not data.get("id"):
        logger.info("Bearer token rejected by identity provider")
        return None
    return CurrentUser(id=str(data["id"]), email=data.get("email"), token=token)


async def get_current_user(user: Optional[CurrentUser] = Depends(get_optional_user)) -> CurrentUser:
    if user is None:
        raise AuthenticationRequiredError()
    return user


async def is_admin(session: AsyncSession, user_id: str) -> bool:
    try:
        tutor_id = uuid.UUID(user_id)
    except ValueError:
        return False
    tutor = await session.get(Tutor, tutor_id)
    return bool(tutor and tutor.is_admin)


async def require_admin(
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
) -> CurrentUser:
    if not await is_admin(session, user.id):
        logger.warning("Admin access denied", user_id=user.id)
        raise PermissionDeniedError()
    return user
