"""
Prompt & Pause Backend — Identity Dependency Tests
===================================================

What we test:
    ✅ X-User-Id parsing
    ✅ Admin bearer key + allow-listed email
    ✅ Cron bearer secret and signed timestamps (window, tampering, no secret)
"""

import time
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.config import settings
from app.dependencies import (
    _bearer_token,
    get_current_user_id,
    require_admin,
    require_cron,
    sign_cron_timestamp,
    verify_cron_signature,
)
from app.exceptions import AuthenticationError, PermissionDeniedError


class TestBearerToken:

    def test_parses_case_insensitive_scheme(self):
        assert _bearer_token("Bearer abc") == "abc"
        assert _bearer_token("bearer  abc ") == "abc"

    def test_rejects_other_schemes_and_empty(self):
        assert _bearer_token("Basic abc") is None
        assert _bearer_token("Bearer ") is None
        assert _bearer_token(None) is None


class TestCurrentUser:

    @pytest.mark.asyncio
    async def test_valid_header(self):
        user_id = uuid4()
        assert await get_current_user_id(x_user_id=str(user_id)) == user_id

    @pytest.mark.asyncio
    async def test_missing_header(self):
        with pytest.raises(AuthenticationError):
            await get_current_user_id(x_user_id=None)

    @pytest.mark.asyncio
    async def test_malformed_header(self):
        with pytest.raises(AuthenticationError, match="Invalid user identity"):
            await get_current_user_id(x_user_id="not-a-uuid")

    @pytest.mark.asyncio
    async def test_profile_lookup_goes_through_user_service(self, mock_db_session, make_profile):
        from app.dependencies import get_current_profile

        profile = make_profile()
        with patch("app.dependencies.user_service") as users:
            users.get_profile = AsyncMock(return_value=profile)
            assert await get_current_profile(profile.id, mock_db_session) is profile
        users.get_profile.assert_awaited_once_with(mock_db_session, profile.id)


class TestRequireAdmin:

    @pytest.mark.asyncio
    async def test_valid_key_and_listed_email(self):
        email = await require_admin(authorization="Bearer test-admin-key", x_admin_email=" Admin@Example.com ")
        assert email == "admin@example.com"

    @pytest.mark.asyncio
    async def test_wrong_key(self):
        with pytest.raises(AuthenticationError):
            await require_admin(authorization="Bearer nope", x_admin_email="admin@example.com")

    @pytest.mark.asyncio
    async def test_unlisted_email(self):
        with pytest.raises(PermissionDeniedError):
            await require_admin(authorization="Bearer test-admin-key", x_admin_email="someone@example.com")

    @pytest.mark.asyncio
    async def test_missing_email(self):
        with pytest.raises(PermissionDeniedError):
            await require_admin(authorization="Bearer test-admin-key", x_admin_email=None)

    @pytest.mark.asyncio
    async def test_unconfigured_key_rejects_everyone(self):
        with patch.object(settings, "admin_api_key", ""):
            with pytest.raises(AuthenticationError):
                await require_admin(authorization="Bearer ", x_admin_email="admin@example.com")


class TestCronAuth:

    @pytest.mark.asyncio
    async def test_bearer_secret(self):
        assert await require_cron(authorization="Bearer test-cron-secret") is None

    @pytest.mark.asyncio
    async def test_wrong_secret(self):
        with pytest.raises(AuthenticationError):
            await require_cron(authorization="Bearer guess")

    @pytest.mark.asyncio
    async def test_no_secret_configured(self):
        with patch.object(settings, "cron_secret", ""):
            with pytest.raises(AuthenticationError):
                await require_cron(authorization="Bearer test-cron-secret")

    def test_fresh_signature_verifies(self):
        now = time.time()
        ts = int(now)
        assert verify_cron_signature(str(ts), sign_cron_timestamp(ts), now=now) is True

    def test_signature_is_case_insensitive_hex(self):
        ts = 1_700_000_000
        assert verify_cron_signature(str(ts), sign_cron_timestamp(ts).upper(), now=ts) is True

    def test_stale_signature_rejected(self):
        ts = 1_700_000_000
        window = settings.cron_signature_window_seconds
        assert verify_cron_signature(str(ts), sign_cron_timestamp(ts), now=ts + window + 1) is False
        assert verify_cron_signature(str(ts), sign_cron_timestamp(ts), now=ts - window - 1) is False

    def test_tampered_signature_rejected(self):
        ts = 1_700_000_000
        other = sign_cron_timestamp(ts, secret="someone-else")
        assert verify_cron_signature(str(ts), other, now=ts) is False
        assert verify_cron_signature(str(ts + 1), sign_cron_timestamp(ts), now=ts) is False

    def test_bad_input_rejected(self):
        assert verify_cron_signature("yesterday", "abc", now=0) is False
        assert verify_cron_signature(None, None) is False

    def test_non_hex_signature_rejected(self):
        ts = 1_700_000_000
        assert verify_cron_signature(str(ts), "\u00e9" * 64, now=ts) is False
        assert verify_cron_signature(str(ts), sign_cron_timestamp(ts)[:-1] + "\u00e9", now=ts) is False
        assert verify_cron_signature(str(ts), sign_cron_timestamp(ts) + "0", now=ts) is False

    def test_no_secret_never_verifies(self):
        ts = 1_700_000_000
        sig = sign_cron_timestamp(ts, secret="")
        with patch.object(settings, "cron_secret", ""):
            assert verify_cron_signature(str(ts), sig, now=ts) is False
