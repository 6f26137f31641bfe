"""
Prompt & Pause Backend — Weekly Digest Service
===============================================

What:  Summarizes a user's week of reflections and adds AI-written insights.
How:   The digest (counts, tags, moods, snippets) is computed from the
       reflections table; insights come from the LLM with a deterministic
       fallback. The current week's result is cached in `weekly_insights`.
Who:   GET/POST /api/premium/weekly-digest (premium users only).

Insight format expected from the model:

    HEADLINE:
    <one sentence>

    OBSERVATIONS:
    - <observation>
    - <observation>

    THEME_REFLECTION:
    <short paragraph>

    GENTLE_QUESTION:
    <one question>

Any section the model leaves out is filled with a fixed guardrail sentence,
so a partial answer still produces a complete digest.
"""

import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DatabaseError, PermissionDeniedError, PromptPauseError
from app.models.profile import Profile, UserPreferences
from app.models.reflection import Reflection, WeeklyInsight
from app.schemas.digest import (
    ChannelResult,
    DigestMoodCount,
    DigestSendResponse,
    ReflectionSummary,
    TagCount,
    WeeklyDigest,
    WeeklyDigestResponse,
    WeeklyInsights,
)
from app.services import analytics, tier
from app.services.email_service import email_service
from app.services.gemini_service import gemini_service
from app.services.slack_service import slack_service
from app.services.timezones import local_today

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 100
MAX_SUMMARIES = 7
MAX_OBSERVATIONS = 3
FALLBACK_PROVIDER = "fallback"
DIGEST_OFF_REASON = "Weekly digest is turned off in your preferences"

DEFAULT_HEADLINE = "This week left a few clear patterns."
DEFAULT_OBSERVATION = "Your entries captured the week as it was, without forcing it to be neat."
DEFAULT_THEME = "A few themes showed up more than once, which can be its own kind of signal."
DEFAULT_QUESTION = "What felt most worth naming this week?"


def week_bounds(today: date, week_offset: int = 0) -> Tuple[date, date]:
    """(Monday, Sunday) of the week `week_offset` weeks from the one containing `today`."""
    monday = tier.week_start(today) + timedelta(weeks=week_offset)
    return monday, monday + timedelta(days=6)


def make_snippet(text: str) -> str:
    if len(text) <= SNIPPET_LENGTH:
        return text
    return text[:SNIPPET_LENGTH] + "..."


# ── Insight prompt ───────────────────────────────────────────────────────

def build_insight_system_prompt() -> str:
    return """You are generating a weekly reflection summary.

Rules:
- Do not diagnose.
- Do not give advice.
- Do not tell the user what to do.
- Do not exaggerate emotional conclusions.
- Be specific, but cautious.
- Sound like a thoughtful observer, not a coach.

Structure (always exactly this):
1. One-sentence overview of the week.
2. 2-3 neutral observations.
3. One short thematic reflection.
4. One gentle reflective question.

Tone: calm, respectful, grounded, adult.

Output Format (use this exact structure):

HEADLINE:
[one sentence]

OBSERVATIONS:
- [observation 1]
- [observation 2]
- [observation 3 if needed]

THEME_REFLECTION:
[short paragraph]

GENTLE_QUESTION:
[one question]"""


def build_weekly_context(digest: WeeklyDigest, name: Optional[str] = None) -> str:
    lines = [
        f"Generate personalized insights for {name or 'there'} based on their weekly reflection data:",
        "",
        "**Week Summary:**",
        f"- Period: {digest.week_start.isoformat()} to {digest.week_end.isoformat()}",
        f"- Total reflections: {digest.total_reflections}",
        f"- Average word count: {digest.average_word_count}",
        f"- Current streak: {digest.current_streak} days",
    ]

    if digest.mood_distribution:
        lines += ["", "**Mood Distribution:**"]
        lines += [f"- {m.mood}: {m.count} time(s)" for m in digest.mood_distribution]

    if digest.top_tags:
        lines += ["", "**Top Themes:**"]
        lines += [f"- {t.tag} ({t.count} reflections)" for t in digest.top_tags]

    if digest.reflection_summaries:
        lines += ["", "**Recent Reflection Snippets:**"]
        lines += [
            f'- {s.date.isoformat()}: "{s.prompt}" - {s.snippet}'
            for s in digest.reflection_summaries[:3]
        ]

    return "\n".join(lines)


_SECTION_NAMES = ("HEADLINE", "OBSERVATIONS", "THEME_REFLECTION", "GENTLE_QUESTION")
_SECTION_RE = re.compile(
    r"^\s*(" + "|".join(_SECTION_NAMES) + r")\s*:\s*(.*)$",
    re.IGNORECASE,
)


def parse_insight_response(text: str) -> Dict[str, object]:
    """
    Split a model answer into its four sections.

    Returns a dict with keys headline, observations (list, at most three),
    theme_reflection and gentle_question. Missing sections get the
    guardrail defaults.
    """
    sections: Dict[str, List[str]] = {}
    current = None
    for line in (text or "").splitlines():
        match = _SECTION_RE.match(line)
        if match:
            current = match.group(1).upper()
            sections[current] = []
            rest = match.group(2).strip()
            if rest:
                sections[current].append(rest)
        elif current is not None:
            sections[current].append(line)

    def block(name: str) -> str:
        return "\n".join(sections.get(name, [])).strip()

    observations = [
        re.sub(r"^[-*•]\s*", "", line.strip()).strip()
        for line in sections.get("OBSERVATIONS", [])
        if line.strip()[:1] in ("-", "*", "•")
    ]
    observations = [o for o in observations if o][:MAX_OBSERVATIONS]

    return {
        "headline": block("HEADLINE") or DEFAULT_HEADLINE,
        "observations": observations or [DEFAULT_OBSERVATION],
        "theme_reflection": block("THEME_REFLECTION") or DEFAULT_THEME,
        "gentle_question": block("GENTLE_QUESTION") or DEFAULT_QUESTION,
    }


def basic_insights(digest: WeeklyDigest) -> WeeklyInsights:
    """Deterministic insights used when the AI is unavailable."""
    total = digest.total_reflections
    if digest.top_tags:
        theme = (
            f"A few of your entries kept circling back to {digest.top_tags[0].tag}. "
            "Not necessarily as a problem, just as something that stayed present."
        )
    else:
        theme = "Even without obvious themes, the way you showed up matters."

    return WeeklyInsights(
        headline=(
            "This week was quieter on the page."
            if total == 0
            else "This week held a steady thread, even when the days varied."
        ),
        observations=[f"You wrote {total} reflection{'' if total == 1 else 's'} this week."],
        theme_reflection=theme,
        gentle_question="What would feel most worth carrying forward into next week, and what can stay here?",
        provider=FALLBACK_PROVIDER,
    )


async def generate_weekly_insights(digest: WeeklyDigest, name: Optional[str] = None) -> WeeklyInsights:
    """AI insights for a digest; falls back to basic_insights on any provider error."""
    try:
        raw = await gemini_service.generate_text(
            build_insight_system_prompt(), build_weekly_context(digest, name)
        )
    except PromptPauseError as e:
        logger.warning("Weekly insight generation failed, using fallback: %s", e.message)
        return basic_insights(digest)

    return WeeklyInsights(**parse_insight_response(raw), provider=gemini_service.provider_name)


# ══════════════════════════════════════════════════════════════════════════
# Service
# ══════════════════════════════════════════════════════════════════════════

def _cache_usable(cached: WeeklyInsight) -> bool:
    return bool(cached.insights) and cached.insights.get("provider") != FALLBACK_PROVIDER


class DigestService:

    async def build_weekly_digest(
        self,
        db: AsyncSession,
        user_id: UUID,
        week_start: date,
        week_end: date,
        today: date,
    ) -> WeeklyDigest:
        result = await db.execute(
            select(Reflection)
            .where(
                Reflection.user_id == user_id,
                Reflection.date >= week_start,
                Reflection.date <= week_end,
            )
            .order_by(Reflection.date.asc(), Reflection.created_at.asc())
        )
        reflections = list(result.scalars().all())

        dates_result = await db.execute(
            select(Reflection.date).where(Reflection.user_id == user_id).distinct()
        )
        all_dates = list(dates_result.scalars().all())

        total = len(reflections)
        avg_words = round(sum(r.word_count or 0 for r in reflections) / total) if total else 0

        return WeeklyDigest(
            week_start=week_start,
            week_end=week_end,
            total_reflections=total,
            top_tags=[TagCount(**t) for t in analytics.top_tags(r.tags for r in reflections)],
            mood_distribution=[
                DigestMoodCount(**m)
                for m in analytics.mood_distribution(
                    (r.mood for r in reflections), with_percentage=False
                )
            ],
            average_word_count=avg_words,
            current_streak=analytics.calculate_current_streak(all_dates, today),
            reflection_summaries=[
                ReflectionSummary(
                    date=r.date,
                    prompt=r.prompt_text,
                    snippet=make_snippet(r.reflection_text),
                )
                for r in reflections[:MAX_SUMMARIES]
            ],
        )

    async def _cached(
        self, db: AsyncSession, user_id: UUID, week_start: date
    ) -> Optional[WeeklyInsight]:
        result = await db.execute(
            select(WeeklyInsight).where(
                WeeklyInsight.user_id == user_id,
                WeeklyInsight.week_start == week_start,
            )
        )
        return result.scalar_one_or_none()

    async def get_weekly_digest(
        self,
        db: AsyncSession,
        profile: Profile,
        week_offset: int = 0,
        refresh: bool = False,
        now: Optional[datetime] = None,
    ) -> WeeklyDigestResponse:
        """
        Digest plus insights for a week.

        The current week (offset 0) is cached per user; a cache hit skips
        the AI entirely unless `refresh` is set.

        Raises:
            PermissionDeniedError: Weekly digests are a premium feature.
            DatabaseError: Query failed.
        """
        now = now or datetime.now(timezone.utc)
        if not tier.is_premium(profile, now=now):
            raise PermissionDeniedError(
                message="Weekly digests are available on the premium plan.",
                context={"feature": "weekly_digest"},
            )

        today = local_today(now, profile.tz_name)
        start, end = week_bounds(today, week_offset)
        use_cache = week_offset == 0

        try:
            cached = await self._cached(db, profile.id, start) if use_cache else None
            if cached is not None and _cache_usable(cached) and not refresh:
                logger.debug("Weekly digest cache hit for %s (%s)", profile.id, start)
                return WeeklyDigestResponse(
                    digest=WeeklyDigest.model_validate(cached.digest),
                    insights=WeeklyInsights.model_validate(cached.insights),
                    cached=True,
                )

            digest = await self.build_weekly_digest(db, profile.id, start, end, today)
            insights = await generate_weekly_insights(digest, profile.full_name)

            # a fallback from a brief AI outage would otherwise stick for the week
            if use_cache and insights.provider != FALLBACK_PROVIDER:
                payload = digest.model_dump(mode="json")
                if cached is None:
                    db.add(
                        WeeklyInsight(
                            user_id=profile.id,
                            week_start=start,
                            week_end=end,
                            digest=payload,
                            insights=insights.model_dump(),
                            generated_at=now,
                        )
                    )
                else:
                    cached.digest = payload
                    cached.insights = insights.model_dump()
                    cached.generated_at = now
                await db.flush()

        except PromptPauseError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error building digest for %s: %s", profile.id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not build your weekly digest. Please try again.",
                context={"user_id": str(profile.id)},
            )

        return WeeklyDigestResponse(digest=digest, insights=insights, cached=False)

    async def send_weekly_digest(
        self,
        db: AsyncSession,
        profile: Profile,
        prefs: Optional[UserPreferences],
        week_offset: int = 0,
        send_email: bool = True,
        send_slack: bool = False,
        now: Optional[datetime] = None,
        built: Optional[WeeklyDigestResponse] = None,
    ) -> DigestSendResponse:
        """
        Build (or reuse `built`) the digest and deliver it on the requested
        channels. With `weekly_digest` off in the preferences nothing is sent;
        each requested channel comes back skipped with the reason.
        """
        result = built or await self.get_weekly_digest(db, profile, week_offset=week_offset, now=now)
        deliveries: List[ChannelResult] = []

        if prefs is not None and not prefs.weekly_digest:
            logger.info("Weekly digest for %s not sent: turned off in preferences", profile.id)
            for channel, requested in (("email", send_email), ("slack", send_slack)):
                if requested:
                    deliveries.append(
                        ChannelResult(channel=channel, success=False, skipped=True, error=DIGEST_OFF_REASON)
                    )
            return DigestSendResponse(digest=result.digest, insights=result.insights, deliveries=deliveries)

        if send_email:
            if profile.email:
                sent = await email_service.send_weekly_digest(
                    db, profile.email, result.digest, result.insights,
                    name=profile.full_name, user_id=profile.id,
                )
                deliveries.append(ChannelResult(channel="email", success=sent.success, error=sent.error))
            else:
                deliveries.append(ChannelResult(channel="email", success=False, error="No email address on file"))

        if send_slack:
            webhook = prefs.slack_webhook_url if prefs else None
            if webhook:
                sent = await slack_service.send_weekly_digest(
                    webhook, result.digest, result.insights, name=profile.full_name
                )
                deliveries.append(ChannelResult(channel="slack", success=sent.success, error=sent.error))
            else:
                deliveries.append(ChannelResult(channel="slack", success=False, error="No Slack webhook configured"))

        logger.info(
            "Weekly digest for %s delivered: %s",
            profile.id,
            ", ".join(f"{d.channel}={'ok' if d.success else 'failed'}" for d in deliveries) or "no channels",
        )
        return DigestSendResponse(digest=result.digest, insights=result.insights, deliveries=deliveries)


digest_service = DigestService()
