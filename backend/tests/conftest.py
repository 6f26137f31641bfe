"""
Prompt & Pause Backend — Test Configuration (conftest.py)
==========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: Mock async session (no real DB needed)
    ├── make_result:     Builds fake SQLAlchemy Result objects
    ├── make_profile:    Profile factory (free by default)
    ├── make_prefs:      UserPreferences factory
    ├── make_reflection: Reflection factory
    ├── fastapi_app:     The app, with dependency_overrides cleared afterwards
    └── test_client:     HTTPX AsyncClient bound to the app
"""

import os
import uuid
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Must run before anything imports app.config
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["RESEND_API_KEY"] = ""
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["ADMIN_EMAILS"] = "admin@example.com,ops@example.com"
os.environ["RETRY_MAX_ATTEMPTS"] = "1"
os.environ["LOG_LEVEL"] = "WARNING"

NOW = datetime(2025, 3, 12, 9, 15, tzinfo=timezone.utc)  # a Wednesday


# ══════════════════════════════════════════════════════════════════════════
# Database fakes
# ══════════════════════════════════════════════════════════════════════════

def _assign_id(obj) -> None:
    # the server default never runs against a mocked session
    if hasattr(type(obj), "id") and getattr(obj, "id", None) is None:
        obj.id = uuid.uuid4()


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.return_value = make_result(one=profile)
        profile = await user_service.get_profile(mock_db_session, user_id)

    Objects passed to add() get an id, as a flush would give them.
    begin_nested() returns one shared savepoint; its __aexit__ calls show
    which blocks ended in an exception.
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock(side_effect=_assign_id)

    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=savepoint)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested = MagicMock(return_value=savepoint)
    return session


@pytest.fixture
def make_result():
    """
    Builds a stand-in for a SQLAlchemy Result.

        make_result(scalar=3)            → result.scalar() == 3
        make_result(one=obj)             → result.scalar_one_or_none() is obj
        make_result(scalars=[a, b])      → result.scalars().all() == [a, b]
        make_result(rows=[(p, prefs)])   → result.all() == [(p, prefs)]
    """
    def _make(scalar=None, one=None, scalars=None, rows=None):
        result = MagicMock()
        result.scalar.return_value = scalar
        result.scalar_one_or_none.return_value = one
        result.scalars.return_value.all.return_value = list(scalars or [])
        result.all.return_value = list(rows or [])
        return result
    return _make


# ══════════════════════════════════════════════════════════════════════════
# Model factories
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_profile():
    from app.models.profile import Profile

    def _make(**overrides) -> Profile:
        fields = dict(
            id=uuid.uuid4(),
            email="sam@example.com",
            full_name="Sam Rivers",
            subscription_status="free",
            subscription_tier=None,
            billing_cycle=None,
            subscription_end_date=None,
            is_trial=False,
            trial_end_date=None,
            timezone_iana="Europe/London",
            timezone=None,
            created_at=NOW,
            updated_at=NOW,
        )
        fields.update(overrides)
        return Profile(**fields)
    return _make


@pytest.fixture
def premium_profile(make_profile):
    return make_profile(subscription_status="premium", subscription_tier="premium", billing_cycle="monthly")


@pytest.fixture
def make_prefs():
    from app.models.profile import UserPreferences

    def _make(user_id=None, **overrides) -> UserPreferences:
        fields = dict(
            id=uuid.uuid4(),
            user_id=user_id or uuid.uuid4(),
            daily_reminders=True,
            reminder_time="09:00",
            delivery_method="email",
            slack_webhook_url=None,
            focus_areas=[],
            reason=None,
            weekly_digest=True,
            updated_at=NOW,
        )
        fields.update(overrides)
        return UserPreferences(**fields)
    return _make


@pytest.fixture
def make_reflection():
    from app.models.reflection import Reflection

    def _make(user_id=None, **overrides) -> Reflection:
        fields = dict(
            id=uuid.uuid4(),
            user_id=user_id or uuid.uuid4(),
            prompt_id=None,
            prompt_text="What felt heavy today?",
            reflection_text="The commute, mostly. And the unanswered email.",
            mood="😊",
            tags=["work"],
            word_count=8,
            feedback=None,
            date=date(2025, 3, 12),
            created_at=NOW,
            updated_at=NOW,
        )
        fields.update(overrides)
        return Reflection(**fields)
    return _make


# ══════════════════════════════════════════════════════════════════════════
# API client
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def fastapi_app():
    """The application instance; any dependency override is removed after the test."""
    from app.main import app
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_client(fastapi_app):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
