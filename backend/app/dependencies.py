"""
Prompt & Pause Backend — Request Identity Dependencies
=======================================================

What:  FastAPI dependencies that resolve who is calling: a signed-in user,
       an admin, or the scheduler.
How:   Sign-in happens upstream; the gateway forwards the verified user id in
       `X-User-Id`. Admin and cron callers present shared secrets as bearer
       tokens, compared with hmac.compare_digest.
Who:   Every route except /health.

Cron callers that cannot set headers may sign a GET instead:

    GET /api/cron/<job>?ts=<unix seconds>&sig=<hex HMAC-SHA256(str(ts), CRON_SECRET)>

A signature is valid for CRON_SIGNATURE_WINDOW_SECONDS either side of now.
"""

import hashlib
import hmac
import logging
import re
import time
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.exceptions import AuthenticationError, PermissionDeniedError
from app.models.profile import Profile
from app.services.user_service import user_service

logger = logging.getLogger(__name__)

SIGNATURE_RE = re.compile(r"[0-9a-fA-F]{64}")


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _secret_matches(presented: Optional[str], expected: str) -> bool:
    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


# ── Users ─────────────────────────────────────────────────────────────────

async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> UUID:
    if not x_user_id:
        raise AuthenticationError(message="Authentication required")
    try:
        return UUID(x_user_id)
    except ValueError:
        raise AuthenticationError(message="Invalid user identity")


async def get_current_profile(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Profile:
    """The caller's profile. 401 without a valid X-User-Id, 404 for unknown users."""
    return await user_service.get_profile(db, user_id)


# ── Admin ─────────────────────────────────────────────────────────────────

async def require_admin(
    authorization: Optional[str] = Header(default=None),
    x_admin_email: Optional[str] = Header(default=None),
) -> str:
    """
    Returns the acting admin's email for audit logs.

    Raises:
        AuthenticationError: Missing or wrong admin key.
        PermissionDeniedError: Email is not on the ADMIN_EMAILS list.
    """
    if not _secret_matches(_bearer_token(authorization), settings.admin_api_key):
        raise AuthenticationError(message="Admin authentication required")

    email = (x_admin_email or "").strip().lower()
    if not email or email not in settings.admin_emails_list:
        logger.warning("Admin access denied for %r", x_admin_email)
        raise PermissionDeniedError(message="Admin access required")
    return email


# ── Cron ──────────────────────────────────────────────────────────────────

def sign_cron_timestamp(ts: int, secret: Optional[str] = None) -> str:
    key = (secret if secret is not None else settings.cron_secret).encode()
    return hmac.new(key, str(ts).encode(), hashlib.sha256).hexdigest()


def verify_cron_signature(
    ts: Optional[str],
    sig: Optional[str],
    now: Optional[float] = None,
) -> bool:
    """True for a fresh, correctly signed timestamp. Always False without CRON_SECRET."""
    if not settings.cron_secret or not ts or not sig:
        return False
    if not SIGNATURE_RE.fullmatch(sig):
        return False
    try:
        ts_value = int(ts)
    except ValueError:
        return False

    now = time.time() if now is None else now
    if abs(now - ts_value) > settings.cron_signature_window_seconds:
        return False
    return hmac.compare_digest(sign_cron_timestamp(ts_value).encode(), sig.lower().encode())


async def require_cron(authorization: Optional[str] = Header(default=None)) -> None:
    """
    Raises:
        AuthenticationError: Missing or wrong CRON_SECRET, or none configured.
    """
    if not settings.cron_secret:
        logger.error("Cron request rejected: CRON_SECRET is not configured")
        raise AuthenticationError(message="Unauthorized")
    if not _secret_matches(_bearer_token(authorization), settings.cron_secret):
        raise AuthenticationError(message="Unauthorized")
