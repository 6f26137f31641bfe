"""
Prompt & Pause Backend — Slack Delivery Service
================================================

What:  Posts plain-text messages to a user's Slack incoming webhook.
How:   httpx POST of {"text": ...}. URLs outside the Slack webhook prefix are
       refused before any network call.
Who:   Daily prompt cron job and the weekly digest send route (premium users).
"""

import logging
from typing import Optional

import httpx

from app.config import settings
from app.schemas.digest import WeeklyDigest, WeeklyInsights
from app.services.email_service import DeliveryResult, render_digest_text

logger = logging.getLogger(__name__)


def is_valid_webhook_url(url: Optional[str]) -> bool:
    return bool(url) and url.startswith(settings.slack_webhook_prefix)


class SlackService:

    async def post_message(self, webhook_url: Optional[str], text: str) -> DeliveryResult:
        if not is_valid_webhook_url(webhook_url):
            return DeliveryResult(success=False, error="Invalid Slack webhook URL")

        try:
            async with httpx.AsyncClient(timeout=settings.slack_timeout_seconds) as client:
                response = await client.post(webhook_url, json={"text": text})
        except httpx.HTTPError as e:
            logger.warning("Slack webhook transport error: %s", str(e))
            return DeliveryResult(success=False, error=f"Slack transport error: {e}")

        if response.status_code >= 400:
            logger.warning("Slack webhook returned %d", response.status_code)
            return DeliveryResult(
                success=False,
                error=f"Slack returned {response.status_code}: {response.text[:200]}",
            )
        return DeliveryResult(success=True)

    async def send_daily_prompt(
        self, webhook_url: Optional[str], prompt_text: str, name: Optional[str] = None
    ) -> DeliveryResult:
        first = (name or "").strip().split(" ")[0]
        opener = f"Morning {first}! " if first else ""
        text = (
            f"{opener}Your reflection prompt for today:\n>{prompt_text}\n"
            f"Write when you're ready: {settings.app_url}/dashboard"
        )
        return await self.post_message(webhook_url, text)

    async def send_weekly_digest(
        self,
        webhook_url: Optional[str],
        digest: WeeklyDigest,
        insights: WeeklyInsights,
        name: Optional[str] = None,
    ) -> DeliveryResult:
        return await self.post_message(webhook_url, render_digest_text(digest, insights, name))


slack_service = SlackService()
