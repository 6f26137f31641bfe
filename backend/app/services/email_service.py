"""
Prompt & Pause Backend — Email Delivery Service
================================================

What:  Sends transactional emails (daily prompt, weekly digest, trial expiry)
       through the Resend HTTP API.
How:   httpx.AsyncClient POSTs to {RESEND_API_URL}/emails with a bearer key.
       Every attempt, successful or not, is written to `email_logs`.
Who:   The daily prompt cron job, the trial expiry job, and the weekly digest
       send route.

Failure handling:
    Delivery never raises for transport or provider errors. Callers get a
    DeliveryResult and decide whether a failed send matters (the cron job
    records it and moves on to the next user).
"""

import logging
from typing import List, Optional
from uuid import UUID

import httpx
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.email_log import EmailLog
from app.schemas.digest import WeeklyDigest, WeeklyInsights

logger = logging.getLogger(__name__)


class DeliveryResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def _greeting(name: Optional[str]) -> str:
    first = (name or "").strip().split(" ")[0]
    return f"Hi {first}," if first else "Hi there,"


def render_digest_text(
    digest: WeeklyDigest,
    insights: WeeklyInsights,
    name: Optional[str] = None,
) -> str:
    """Plain-text digest body shared by email and Slack."""
    lines: List[str] = [
        _greeting(name),
        "",
        insights.headline,
        "",
        f"Week of {digest.week_start.isoformat()} to {digest.week_end.isoformat()}: "
        f"{digest.total_reflections} reflection(s), current streak {digest.current_streak} day(s).",
        "",
    ]
    lines += [f"- {obs}" for obs in insights.observations]
    lines += ["", insights.theme_reflection, "", f"A question to sit with: {insights.gentle_question}"]
    return "\n".join(lines)


class EmailService:
    """Resend-backed sender. Safe to call when unconfigured (sends are logged as failed)."""

    def __init__(self) -> None:
        self.api_url = settings.resend_api_url.rstrip("/")
        self.from_email = settings.resend_from_email

    @property
    def is_configured(self) -> bool:
        return bool(settings.resend_api_key)

    async def _post(self, payload: dict) -> DeliveryResult:
        """POST one email to Resend. Transport and HTTP errors become failed results."""
        headers = {
            "Authorization": f"Bearer {settings.resend_api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
                response = await client.post(f"{self.api_url}/emails", json=payload, headers=headers)
        except httpx.HTTPError as e:
            return DeliveryResult(success=False, error=f"Email transport error: {e}")

        if response.status_code >= 400:
            return DeliveryResult(
                success=False,
                error=f"Resend returned {response.status_code}: {response.text[:200]}",
            )
        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        return DeliveryResult(success=True, message_id=message_id)

    async def _log(
        self,
        db: Optional[AsyncSession],
        user_id: Optional[UUID],
        email_type: str,
        recipient: str,
        result: DeliveryResult,
    ) -> None:
        if db is None:
            return
        try:
            db.add(
                EmailLog(
                    user_id=user_id,
                    email_type=email_type,
                    recipient_email=recipient,
                    status="sent" if result.success else "failed",
                    provider_message_id=result.message_id,
                    error_message=result.error,
                )
            )
            await db.flush()
        except SQLAlchemyError as e:
            # the email itself went out (or not) regardless of the audit row
            logger.warning("Could not write email log for %s: %s", recipient, str(e))

    async def send(
        self,
        db: Optional[AsyncSession],
        to: str,
        subject: str,
        text: str,
        email_type: str,
        user_id: Optional[UUID] = None,
    ) -> DeliveryResult:
        if not to:
            result = DeliveryResult(success=False, error="No recipient email address")
        elif not self.is_configured:
            result = DeliveryResult(success=False, error="Email provider not configured")
        else:
            result = await self._post(
                {
                    "from": self.from_email,
                    "to": [to],
                    "subject": subject,
                    "text": text,
                }
            )

        if result.success:
            logger.info("Sent %s email to %s (id=%s)", email_type, to, result.message_id)
        else:
            logger.warning("Failed to send %s email to %s: %s", email_type, to, result.error)

        await self._log(db, user_id, email_type, to, result)
        return result

    # ── Email types ──────────────────────────────────────────────────────

    async def send_daily_prompt(
        self,
        db: Optional[AsyncSession],
        to: str,
        prompt_text: str,
        name: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> DeliveryResult:
        body = (
            f"{_greeting(name)}\n\n"
            f"Here is today's reflection prompt:\n\n"
            f"    {prompt_text}\n\n"
            f"Take a few minutes with it whenever suits you: {settings.app_url}/dashboard\n\n"
            f"{settings.app_name}"
        )
        return await self.send(
            db, to, "Your reflection prompt for today", body, "daily_prompt", user_id
        )

    async def send_weekly_digest(
        self,
        db: Optional[AsyncSession],
        to: str,
        digest: WeeklyDigest,
        insights: WeeklyInsights,
        name: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> DeliveryResult:
        body = f"{render_digest_text(digest, insights, name)}\n\n{settings.app_name}"
        return await self.send(
            db, to, "Your weekly reflection digest", body, "weekly_digest", user_id
        )

    async def send_trial_expired(
        self,
        db: Optional[AsyncSession],
        to: str,
        name: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> DeliveryResult:
        body = (
            f"{_greeting(name)}\n\n"
            f"Your premium trial has ended and your account is back on the free plan. "
            f"Your reflections are all still there.\n\n"
            f"If you'd like to keep daily prompts, weekly digests and mood analytics, "
            f"you can upgrade any time: {settings.app_url}/pricing\n\n"
            f"{settings.app_name}"
        )
        return await self.send(
            db, to, f"Your {settings.app_name} trial has ended", body, "trial_expired", user_id
        )


email_service = EmailService()
