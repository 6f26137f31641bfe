"""
Prompt & Pause Backend — User Service
======================================

What:  Profile lookup, reminder/delivery preferences, and support contact for
       the signed-in user.
Who:   The identity dependency, /api/user/preferences, /api/support/contact,
       and the prompt/digest routes (which need the preferences row).
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models.profile import Profile, UserPreferences
from app.models.support import SupportTicket
from app.schemas.prompt import PreferencesUpdate
from app.schemas.support import SupportContactRequest
from app.services import tier
from app.services.slack_service import is_valid_webhook_url

logger = logging.getLogger(__name__)

MAX_FOCUS_AREAS = 10


class UserService:

    async def get_profile(self, db: AsyncSession, user_id: UUID) -> Profile:
        """
        Raises:
            NotFoundError: No profile with this id.
        """
        try:
            result = await db.execute(select(Profile).where(Profile.id == user_id))
            profile = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error loading profile %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        if profile is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return profile

    async def find_preferences(self, db: AsyncSession, user_id: UUID) -> Optional[UserPreferences]:
        result = await db.execute(
            select(UserPreferences).where(UserPreferences.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_preferences(self, db: AsyncSession, user_id: UUID) -> UserPreferences:
        """Return the user's preferences, inserting the defaults on first read."""
        try:
            prefs = await self.find_preferences(db, user_id)
            if prefs is None:
                prefs = UserPreferences(
                    user_id=user_id,
                    daily_reminders=True,
                    reminder_time=settings.default_reminder_time,
                    delivery_method="email",
                    focus_areas=[],
                    weekly_digest=True,
                )
                db.add(prefs)
                await db.flush()
                logger.info("Created default preferences for user %s", user_id)
            return prefs
        except SQLAlchemyError as e:
            logger.error("Database error loading preferences for %s: %s", user_id, str(e))
            raise DatabaseError(message="Could not load your preferences. Please try again.")

    async def update_preferences(
        self,
        db: AsyncSession,
        profile: Profile,
        data: PreferencesUpdate,
    ) -> UserPreferences:
        """
        Apply a partial update.

        Raises:
            ValidationError: Slack delivery without a valid webhook URL.
            PermissionDeniedError: Slack delivery on the free plan.
        """
        prefs = await self.get_or_create_preferences(db, profile.id)
        changes = data.model_dump(exclude_unset=True)

        if "slack_webhook_url" in changes:
            url = (changes["slack_webhook_url"] or "").strip() or None
            if url is not None and not is_valid_webhook_url(url):
                raise ValidationError(
                    message=f"Slack webhook URL must start with {settings.slack_webhook_prefix}",
                    field="slack_webhook_url",
                )
            changes["slack_webhook_url"] = url

        if "focus_areas" in changes:
            areas = [a.strip() for a in changes["focus_areas"] or [] if a and a.strip()]
            changes["focus_areas"] = list(dict.fromkeys(areas))[:MAX_FOCUS_AREAS]

        # validate the state after the update, not just the fields sent
        method = changes.get("delivery_method") or prefs.delivery_method
        if method in ("slack", "both"):
            if changes.get("delivery_method") in ("slack", "both") and not tier.is_premium(profile):
                raise PermissionDeniedError(
                    message="Slack delivery is available on the premium plan.",
                    context={"feature": "slack_delivery"},
                )
            if not changes.get("slack_webhook_url", prefs.slack_webhook_url):
                raise ValidationError(
                    message="A Slack webhook URL is required for Slack delivery",
                    field="slack_webhook_url",
                )

        for field, value in changes.items():
            if value is None and field in ("daily_reminders", "reminder_time", "delivery_method", "weekly_digest"):
                continue
            setattr(prefs, field, value)
        prefs.updated_at = datetime.now(timezone.utc)

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving preferences for %s: %s", profile.id, str(e))
            raise DatabaseError(message="Could not save your preferences. Please try again.")

        logger.info("Preferences updated for user %s: %s", profile.id, sorted(changes))
        return prefs

    async def create_support_ticket(
        self,
        db: AsyncSession,
        profile: Profile,
        data: SupportContactRequest,
    ) -> SupportTicket:
        try:
            ticket = SupportTicket(
                user_id=profile.id,
                user_email=profile.email,
                subject=data.subject.strip(),
                description=data.description.strip(),
                category=data.category or "general",
                priority=data.priority,
                status="open",
            )
            db.add(ticket)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating support ticket: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not submit your request. Please try again.")

        logger.info("Support ticket %s opened by user %s", ticket.id, profile.id)
        return ticket


user_service = UserService()
