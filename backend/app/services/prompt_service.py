"""
Prompt & Pause Backend — Prompt Service
========================================

What:  Builds the personalization context for a user, asks the LLM for a
       reflection prompt, and stores one prompt per user per day.
How:   Context comes from preferences + recent reflections; generation goes
       through the LLMService interface (Gemini); rows live in prompts_history.
Who:   POST /api/prompts/generate, GET /api/prompts/today, and the daily
       prompt cron job.

Daily prompt lifecycle:
    none ──generate──▶ stored (used=False) ──reflection saved──▶ used=True

    - A stored prompt for today is always reused, never regenerated.
    - Free users get at most FREE_PROMPTS_PER_MONTH new prompts per calendar month.
    - When the AI fails, callers may choose the static fallback prompt.
"""

import logging
import random
from datetime import date, timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    DatabaseError,
    LLMServiceError,
    NotFoundError,
    PromptPauseError,
    QuotaExceededError,
)
from app.models.profile import Profile, UserPreferences
from app.models.reflection import PromptHistory, Reflection
from app.schemas.prompt import PromptContext
from app.services import tier
from app.services.analytics import analyze_mood_pattern, unique_recent_tags
from app.services.gemini_service import gemini_service

logger = logging.getLogger(__name__)

FALLBACK_PROMPT = "What emotion am I feeling right now, and what might be causing it?"
FALLBACK_PROVIDER = "fallback"

CONTEXT_LOOKBACK_DAYS = 30
CONTEXT_REFLECTION_LIMIT = 10
CONTEXT_MOOD_LIMIT = 7
CONTEXT_TOPIC_LIMIT = 5


# ══════════════════════════════════════════════════════════════════════════
# Prompt text builders
# ══════════════════════════════════════════════════════════════════════════

def build_system_prompt() -> str:
    return """You are a warm, empathetic friend helping someone on their mental wellness journey through "Prompt & Pause", a UK-based reflection service.

Your role is to create deeply personal, conversational reflection prompts that feel like a caring friend checking in: not a therapist or coach, but someone who truly understands and cares.

**Core Principles:**
1. Write as if you're having a genuine conversation with this specific person
2. Reference their actual life context, struggles, and growth areas naturally
3. Make it feel like you remember their journey and care about their progress
4. Be human: acknowledge that growth is hard and messy
5. Use everyday language they'd use with a close friend

**Tone & Style:**
- Conversational and natural
- Warm but not overly cheerful
- Specific to their situation, not generic advice
- Acknowledge difficulty when relevant

**Length & Format:**
- 1-3 sentences maximum (15-25 words ideal)
- Can be a question, gentle prompt, or invitation to reflect
- No emojis, quotes, or explanations

**Avoid:**
- Clinical/therapy language ("processing", "coping mechanisms", "self-care routine")
- Generic prompts that could apply to anyone
- Toxic positivity ("Just be grateful!", "Choose happiness!")
- Multiple questions in one prompt

**Generate ONE personalized prompt written specifically for this person's journey right now.**"""


_TASK_INSTRUCTION = """
**Your Task:**
Based on this person's unique context, generate ONE highly personalized reflection prompt that:
- Speaks directly to their situation (not generic)
- Feels like it was written by someone who knows them
- Connects naturally to their focus areas or recent experiences
- Uses conversational, everyday language
- Helps them explore something meaningful TODAY

Generate the prompt now (no quotes, no explanation, just the prompt):"""

_JUST_STARTING = (
    "This person is just starting their reflection journey. Generate a warm, welcoming "
    "prompt that helps them explore their current emotional state and what brought them "
    "here today. Make it feel safe and non-intimidating."
)


def build_user_context(ctx: PromptContext) -> str:
    """
    Render the personalization context as the user message for the LLM.

    Sections appear in a fixed order: journey, focus areas, today's focus,
    emotional state, recent topics; then the task instruction.
    """
    if ctx.is_empty:
        return _JUST_STARTING

    sections: List[str] = []

    if ctx.user_reason:
        sections.append(
            "**Their Journey:**\n"
            f'They came to Prompt & Pause because: "{ctx.user_reason}"\n'
            "This is what matters to them right now. Honor this in your prompt."
        )

    if ctx.focus_areas:
        areas = ", ".join(ctx.focus_areas)
        if len(ctx.focus_areas) == 1:
            sections.append(
                "**Current Focus:**\n"
                f"They're specifically working on: {areas}\n"
                "This is their main area of growth. Your prompt should directly relate to this."
            )
        else:
            sections.append(
                "**Growth Areas:**\n"
                f"They're juggling multiple things: {areas}\n"
                "These areas might intersect or conflict. Consider the whole picture."
            )

    if ctx.focus_area_name:
        sections.append(
            "**Today's Focus:**\n"
            f"This person wants to explore: {ctx.focus_area_name}\n"
            "Prioritize this above all others."
        )

    if ctx.recent_moods:
        sections.append(
            "**Emotional State:**\n"
            f"Recent moods: {' → '.join(ctx.recent_moods)}\n"
            f"{analyze_mood_pattern(ctx.recent_moods)}\n"
            "Meet them where they are emotionally."
        )

    if ctx.recent_topics:
        topics = ", ".join(ctx.recent_topics[:CONTEXT_TOPIC_LIMIT])
        sections.append(
            "**What's Been On Their Mind:**\n"
            f"Recent reflection topics: {topics}\n"
            "These themes are active in their life. Build on these or explore a connected angle."
        )

    return "\n\n".join(sections) + _TASK_INSTRUCTION


def clean_prompt_text(text: str) -> str:
    """Strip whitespace and any wrapping quotes the model added."""
    cleaned = text.strip()
    while len(cleaned) >= 2 and cleaned[0] in "\"'“‘" and cleaned[-1] in "\"'”’":
        cleaned = cleaned[1:-1].strip()
    return cleaned


def select_focus_area(focus_areas: List[str]) -> Optional[str]:
    if not focus_areas:
        return None
    return random.choice(focus_areas)


# ══════════════════════════════════════════════════════════════════════════
# Service
# ══════════════════════════════════════════════════════════════════════════

class PromptService:
    """Daily prompt generation and storage."""

    async def generate_prompt(self, ctx: PromptContext) -> Tuple[str, str, str]:
        """
        Ask the LLM for a prompt.

        Returns:
            (prompt_text, provider, model)

        Raises:
            LLMServiceError / CircuitBreakerOpenError from the provider, or
            LLMServiceError when the cleaned text is empty.
        """
        raw = await gemini_service.generate_text(build_system_prompt(), build_user_context(ctx))
        text = clean_prompt_text(raw)
        if not text:
            raise LLMServiceError(message="AI provider returned an empty prompt")
        return text, gemini_service.provider_name, gemini_service.model_name

    async def build_context_for_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        prefs: Optional[UserPreferences],
        today: date,
    ) -> PromptContext:
        """Recent moods and topics from the last 30 days, plus onboarding answers."""
        since = today - timedelta(days=CONTEXT_LOOKBACK_DAYS)
        result = await db.execute(
            select(Reflection.mood, Reflection.tags)
            .where(Reflection.user_id == user_id, Reflection.date >= since)
            .order_by(Reflection.date.desc(), Reflection.created_at.desc())
            .limit(CONTEXT_REFLECTION_LIMIT)
        )
        rows = result.all()

        focus_areas = list(prefs.focus_areas or []) if prefs else []
        return PromptContext(
            focus_areas=focus_areas,
            focus_area_name=select_focus_area(focus_areas),
            recent_moods=[r.mood for r in rows if r.mood][:CONTEXT_MOOD_LIMIT],
            recent_topics=unique_recent_tags((r.tags for r in rows), limit=CONTEXT_TOPIC_LIMIT),
            user_reason=prefs.reason if prefs else None,
        )

    async def find_prompt_for_day(
        self, db: AsyncSession, user_id: UUID, day: date
    ) -> Optional[PromptHistory]:
        result = await db.execute(
            select(PromptHistory).where(
                PromptHistory.user_id == user_id,
                PromptHistory.date_generated == day,
            )
        )
        return result.scalar_one_or_none()

    async def get_today_prompt(self, db: AsyncSession, user_id: UUID, today: date) -> PromptHistory:
        """
        Raises:
            NotFoundError: No prompt has been generated for today.
        """
        try:
            prompt = await self.find_prompt_for_day(db, user_id, today)
        except SQLAlchemyError as e:
            logger.error("Database error fetching today's prompt for %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})
        if prompt is None:
            raise NotFoundError(resource="prompt for today")
        return prompt

    async def count_prompts_this_month(self, db: AsyncSession, user_id: UUID, today: date) -> int:
        result = await db.execute(
            select(func.count(PromptHistory.id)).where(
                PromptHistory.user_id == user_id,
                PromptHistory.date_generated >= tier.month_start(today),
            )
        )
        return result.scalar() or 0

    async def get_or_create_today_prompt(
        self,
        db: AsyncSession,
        profile: Profile,
        prefs: Optional[UserPreferences],
        today: date,
        enforce_quota: bool = True,
        fallback_on_error: bool = True,
    ) -> PromptHistory:
        """
        Return today's prompt, generating and storing it if needed.

        Steps:
            1. Reuse an existing row for today (quota is not consumed again)
            2. Free users: enforce the monthly prompt quota (if enforce_quota)
            3. Generate with the LLM; on failure use FALLBACK_PROMPT when
               fallback_on_error, otherwise propagate the LLM error
            4. Insert the prompts_history row

        Raises:
            QuotaExceededError: Free user at the monthly limit.
            LLMServiceError / CircuitBreakerOpenError: AI failed and
                fallback_on_error is False.
            DatabaseError: Query or insert failed.
        """
        try:
            existing = await self.find_prompt_for_day(db, profile.id, today)
            if existing is not None:
                logger.debug("Reusing prompt %s for user %s", existing.id, profile.id)
                return existing

            if enforce_quota and not tier.is_premium(profile):
                used = await self.count_prompts_this_month(db, profile.id, today)
                if used >= settings.free_prompts_per_month:
                    raise QuotaExceededError(
                        message=(
                            f"Monthly prompt limit reached. Free accounts receive "
                            f"{settings.free_prompts_per_month} prompts per month."
                        ),
                        limit=settings.free_prompts_per_month,
                        used=used,
                    )

            ctx = await self.build_context_for_user(db, profile.id, prefs, today)

            try:
                text, provider, model = await self.generate_prompt(ctx)
            except PromptPauseError as e:
                if not fallback_on_error:
                    raise
                logger.warning(
                    "Prompt generation failed for user %s, using fallback: %s",
                    profile.id,
                    e.message,
                )
                text, provider, model = FALLBACK_PROMPT, FALLBACK_PROVIDER, None

            prompt = PromptHistory(
                user_id=profile.id,
                prompt_text=text,
                ai_provider=provider,
                ai_model=model,
                personalization_context=ctx.model_dump(),
                date_generated=today,
                used=False,
            )
            db.add(prompt)
            await db.flush()
            logger.info("Stored %s prompt %s for user %s", provider, prompt.id, profile.id)
            return prompt

        except PromptPauseError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error creating prompt for %s: %s", profile.id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create today's prompt. Please try again.",
                context={"user_id": str(profile.id)},
            )

    async def mark_used(
        self,
        db: AsyncSession,
        user_id: UUID,
        day: date,
        prompt_id: Optional[UUID] = None,
    ) -> None:
        """Mark the answered prompt (by id, or the user's prompt for `day`) as used."""
        stmt = update(PromptHistory).where(PromptHistory.user_id == user_id)
        if prompt_id is not None:
            stmt = stmt.where(PromptHistory.id == prompt_id)
        else:
            stmt = stmt.where(PromptHistory.date_generated == day)
        await db.execute(stmt.values(used=True))


prompt_service = PromptService()
