"""
Prompt & Pause Backend — Email & Slack Delivery Tests
======================================================

What:  Delivery services with the network replaced by httpx.MockTransport.

What we test:
    ✅ Unconfigured provider / missing recipient fail without a request
    ✅ Every email attempt is written to email_logs
    ✅ Provider HTTP errors and transport errors become failed results
    ✅ Slack URLs outside the webhook prefix are refused offline
    ✅ Digest text rendering
"""

from datetime import date
from unittest.mock import patch

import httpx
import pytest

from app.config import settings
from app.models.email_log import EmailLog
from app.schemas.digest import WeeklyDigest, WeeklyInsights
from app.services.email_service import EmailService, render_digest_text
from app.services.slack_service import SlackService, is_valid_webhook_url

WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"


def _client_factory(handler, calls):
    """Replaces httpx.AsyncClient with one that routes every request to `handler`."""
    real_client = httpx.AsyncClient

    def recording_handler(request):
        calls.append(request)
        return handler(request)

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(recording_handler), **kwargs)

    return factory


def _digest() -> WeeklyDigest:
    return WeeklyDigest(
        week_start=date(2025, 3, 10),
        week_end=date(2025, 3, 16),
        total_reflections=3,
        top_tags=[],
        mood_distribution=[],
        average_word_count=40,
        current_streak=2,
        reflection_summaries=[],
    )


def _insights() -> WeeklyInsights:
    return WeeklyInsights(
        headline="A steady week.",
        observations=["You wrote in the mornings.", "Work came up twice."],
        theme_reflection="Rest kept coming up.",
        gentle_question="What would you keep?",
        provider="gemini",
    )


class TestRenderDigest:

    def test_contains_every_section(self):
        text = render_digest_text(_digest(), _insights(), "Sam Rivers")

        assert text.startswith("Hi Sam,")
        assert "A steady week." in text
        assert "3 reflection(s), current streak 2 day(s)" in text
        assert "- Work came up twice." in text
        assert text.endswith("A question to sit with: What would you keep?")

    def test_anonymous_greeting(self):
        assert render_digest_text(_digest(), _insights()).startswith("Hi there,")


class TestEmailService:

    def setup_method(self):
        self.service = EmailService()

    @pytest.mark.asyncio
    async def test_unconfigured_provider_logs_failure(self, mock_db_session):
        calls = []
        with patch.object(settings, "resend_api_key", ""), \
                patch("app.services.email_service.httpx.AsyncClient", _client_factory(None, calls)):
            result = await self.service.send_daily_prompt(mock_db_session, "sam@example.com", "Prompt?")

        assert result.success is False
        assert result.error == "Email provider not configured"
        assert calls == []

        log = mock_db_session.add.call_args.args[0]
        assert isinstance(log, EmailLog)
        assert log.status == "failed"
        assert log.email_type == "daily_prompt"
        assert log.error_message == "Email provider not configured"

    @pytest.mark.asyncio
    async def test_missing_recipient(self, mock_db_session):
        with patch.object(settings, "resend_api_key", "re_test"):
            result = await self.service.send(mock_db_session, "", "s", "t", "daily_prompt")

        assert result.error == "No recipient email address"

    @pytest.mark.asyncio
    async def test_successful_send(self, mock_db_session):
        calls = []

        def handler(request):
            return httpx.Response(200, json={"id": "re_123"})

        with patch.object(settings, "resend_api_key", "re_test"), \
                patch("app.services.email_service.httpx.AsyncClient", _client_factory(handler, calls)):
            result = await self.service.send_daily_prompt(
                mock_db_session, "sam@example.com", "What surprised you?", name="Sam Rivers"
            )

        assert result.success is True
        assert result.message_id == "re_123"

        request = calls[0]
        assert str(request.url) == f"{self.service.api_url}/emails"
        assert request.headers["Authorization"] == "Bearer re_test"
        assert b"What surprised you?" in request.content

        log = mock_db_session.add.call_args.args[0]
        assert log.status == "sent"
        assert log.provider_message_id == "re_123"

    @pytest.mark.asyncio
    async def test_provider_error_status(self, mock_db_session):
        def handler(request):
            return httpx.Response(422, text="invalid from address")

        with patch.object(settings, "resend_api_key", "re_test"), \
                patch("app.services.email_service.httpx.AsyncClient", _client_factory(handler, [])):
            result = await self.service.send_trial_expired(mock_db_session, "sam@example.com")

        assert result.success is False
        assert result.error == "Resend returned 422: invalid from address"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with patch.object(settings, "resend_api_key", "re_test"), \
                patch("app.services.email_service.httpx.AsyncClient", _client_factory(handler, [])):
            result = await self.service.send(None, "sam@example.com", "s", "t", "weekly_digest")

        assert result.success is False
        assert result.error.startswith("Email transport error")


class TestSlackService:

    def setup_method(self):
        self.service = SlackService()

    def test_webhook_validation(self):
        assert is_valid_webhook_url(WEBHOOK) is True
        assert is_valid_webhook_url("https://example.com/hook") is False
        assert is_valid_webhook_url(None) is False

    @pytest.mark.asyncio
    async def test_invalid_url_makes_no_request(self):
        calls = []
        with patch("app.services.slack_service.httpx.AsyncClient", _client_factory(None, calls)):
            result = await self.service.post_message("https://evil.example.com/hook", "hi")

        assert result.success is False
        assert result.error == "Invalid Slack webhook URL"
        assert calls == []

    @pytest.mark.asyncio
    async def test_daily_prompt_posted(self):
        calls = []

        def handler(request):
            return httpx.Response(200, text="ok")

        with patch("app.services.slack_service.httpx.AsyncClient", _client_factory(handler, calls)):
            result = await self.service.send_daily_prompt(WEBHOOK, "What did you notice?", "Sam Rivers")

        assert result.success is True
        body = calls[0].content.decode()
        assert "Morning Sam!" in body
        assert "What did you notice?" in body

    @pytest.mark.asyncio
    async def test_webhook_error_status(self):
        def handler(request):
            return httpx.Response(404, text="no_service")

        with patch("app.services.slack_service.httpx.AsyncClient", _client_factory(handler, [])):
            result = await self.service.send_weekly_digest(WEBHOOK, _digest(), _insights())

        assert result.success is False
        assert result.error == "Slack returned 404: no_service"
