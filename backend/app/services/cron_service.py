"""
Prompt & Pause Backend — Scheduled Jobs
========================================

What:  The jobs an external scheduler triggers through /api/cron/{job}:
       hourly daily-prompt delivery, daily trial expiry and the weekly digest.
How:   Each job writes a `cron_job_runs` row ('running' → 'success'/'failed'),
       processes users one at a time inside a savepoint, and records per-user
       outcomes. A user whose work fails is rolled back alone; the batch and
       the rows already written for other users carry on.
Who:   The cron routes and the admin "trigger job" route.

Daily prompt job, per user:

    no prefs / reminders off ───────────────▶ skipped
    bad timezone / not their reminder hour ─▶ ignored this run
    today's prompt already used ────────────▶ skipped
    free, monthly quota spent, no prompt ───▶ skipped
    otherwise ─▶ reuse or generate today's prompt ─▶ deliver (email/slack/both)
                                                   ─▶ sent | failed | error
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import ValidationError
from app.models.admin import SubscriptionEvent
from app.models.cron import CronJobRun
from app.models.profile import Profile, UserPreferences
from app.schemas.cron import CronJobResult
from app.services import tier
from app.services.digest_service import digest_service, week_bounds
from app.services.email_service import email_service
from app.services.prompt_service import prompt_service
from app.services.slack_service import slack_service
from app.services.timezones import is_reminder_hour, local_today

logger = logging.getLogger(__name__)

RESULTS_SUMMARY_LIMIT = 10


class CronJob(ABC):
    """
    Base class for logged batch jobs.

    Subclasses implement `execute`; `run` wraps it with the run-log row and
    timing. A fatal error marks the run failed and propagates.
    """

    #: value stored in cron_job_runs.job_name
    job_name: str = ""

    @abstractmethod
    async def execute(self, db: AsyncSession, now: datetime, result: CronJobResult) -> Dict[str, Any]:
        """Process the batch, filling `result`. Returns extra run metadata."""

    async def run(self, db: AsyncSession, now: Optional[datetime] = None) -> CronJobResult:
        now = now or datetime.now(timezone.utc)
        started = time.perf_counter()

        run = CronJobRun(job_name=self.job_name, started_at=now, status="running")
        db.add(run)
        await db.flush()

        result = CronJobResult(job_name=self.job_name, run_id=run.id)
        logger.info("Cron job %s started (run %s)", self.job_name, run.id)

        try:
            extra = await self.execute(db, now, result)
        except Exception as e:
            elapsed = int((time.perf_counter() - started) * 1000)
            logger.error("Cron job %s failed: %s", self.job_name, str(e), exc_info=True)
            await self._record_failure(db, now, elapsed, str(e))
            raise

        result.execution_time_ms = int((time.perf_counter() - started) * 1000)
        run.status = "success"
        run.completed_at = datetime.now(timezone.utc)
        run.total_users = result.total_processed
        run.successful_sends = result.sent
        run.failed_sends = result.failed
        run.execution_time_ms = result.execution_time_ms
        run.run_metadata = {
            "skipped": result.skipped,
            **extra,
            "results_summary": result.results[:RESULTS_SUMMARY_LIMIT],
        }
        await db.flush()

        logger.info(
            "Cron job %s complete: processed=%d sent=%d skipped=%d failed=%d (%dms)",
            self.job_name,
            result.total_processed,
            result.sent,
            result.skipped,
            result.failed,
            result.execution_time_ms,
        )
        return result

    async def _record_failure(
        self, db: AsyncSession, started_at: datetime, elapsed_ms: int, message: str
    ) -> None:
        # the request transaction is lost, so the failed run is committed on its own
        try:
            await db.rollback()
            db.add(
                CronJobRun(
                    job_name=self.job_name,
                    started_at=started_at,
                    completed_at=datetime.now(timezone.utc),
                    status="failed",
                    execution_time_ms=elapsed_ms,
                    error_message=message[:2000],
                )
            )
            await db.commit()
        except SQLAlchemyError as e:
            logger.error("Could not record failed run of %s: %s", self.job_name, str(e))


class DailyPromptJob(CronJob):
    """Hourly: send today's prompt to every user whose local reminder hour is now."""

    job_name = "send_daily_prompts"

    async def _load_users(self, db: AsyncSession):
        result = await db.execute(
            select(Profile, UserPreferences)
            .outerjoin(UserPreferences, UserPreferences.user_id == Profile.id)
            .where(Profile.email.is_not(None))
        )
        return result.all()

    async def _deliver(self, profile: Profile, prefs: UserPreferences, prompt_text: str, db: AsyncSession):
        method = prefs.delivery_method or "email"
        channels = {"email": False, "slack": False}
        errors: List[str] = []

        if method in ("email", "both"):
            sent = await email_service.send_daily_prompt(
                db, profile.email, prompt_text, name=profile.full_name, user_id=profile.id
            )
            channels["email"] = sent.success
            if not sent.success:
                errors.append(f"Email: {sent.error}")

        if method in ("slack", "both") and prefs.slack_webhook_url:
            sent = await slack_service.send_daily_prompt(
                prefs.slack_webhook_url, prompt_text, name=profile.full_name
            )
            channels["slack"] = sent.success
            if not sent.success:
                errors.append(f"Slack: {sent.error}")

        return channels, errors

    async def _process_user(
        self,
        db: AsyncSession,
        profile: Profile,
        prefs: Optional[UserPreferences],
        now: datetime,
        result: CronJobResult,
    ) -> None:
        if prefs is None or not prefs.daily_reminders:
            result.skipped += 1
            return

        try:
            due = is_reminder_hour(now, profile.tz_name, prefs.reminder_time)
        except ValidationError as e:
            logger.warning("Skipping user %s: %s", profile.id, e.message)
            return
        if not due:
            return

        today = local_today(now, profile.tz_name)
        existing = await prompt_service.find_prompt_for_day(db, profile.id, today)
        if existing is not None and existing.used:
            logger.debug("User %s already answered today's prompt", profile.id)
            result.skipped += 1
            return

        if existing is None and not tier.is_premium(profile, now=now):
            used = await prompt_service.count_prompts_this_month(db, profile.id, today)
            if used >= settings.free_prompts_per_month:
                logger.info("User %s reached the free monthly prompt limit", profile.id)
                result.skipped += 1
                return

        prompt = existing or await prompt_service.get_or_create_today_prompt(
            db, profile, prefs, today, enforce_quota=False, fallback_on_error=True
        )

        channels, errors = await self._deliver(profile, prefs, prompt.prompt_text, db)
        if channels["email"] or channels["slack"]:
            result.sent += 1
            result.results.append({
                "user_id": str(profile.id),
                "email": profile.email,
                "status": "sent",
                "channels": channels,
            })
        else:
            result.failed += 1
            result.results.append({
                "user_id": str(profile.id),
                "email": profile.email,
                "status": "failed",
                "error": ", ".join(errors) or "No delivery channel available",
            })

    async def execute(self, db: AsyncSession, now: datetime, result: CronJobResult) -> Dict[str, Any]:
        rows = await self._load_users(db)
        result.total_processed = len(rows)

        for profile, prefs in rows:
            try:
                # a failed user rolls back to here; earlier users keep their rows
                async with db.begin_nested():
                    await self._process_user(db, profile, prefs, now, result)
            except Exception as e:
                _record_user_error(result, profile, e)

        return {"current_hour": now.astimezone(timezone.utc).hour}


class ExpireTrialsJob(CronJob):
    """Daily: move premium trials past their end date back to the free plan."""

    job_name = "expire_trials"

    async def _expire(self, db: AsyncSession, profile: Profile, now: datetime, result: CronJobResult) -> None:
        old_status = profile.subscription_status
        profile.subscription_status = tier.FREE
        profile.subscription_tier = None
        profile.is_trial = False
        profile.updated_at = now
        db.add(
            SubscriptionEvent(
                user_id=profile.id,
                event_type="trial_expired",
                old_status=old_status,
                new_status=tier.FREE,
                event_metadata={
                    "trial_end_date": profile.trial_end_date.isoformat()
                    if profile.trial_end_date else None,
                },
            )
        )
        await db.flush()

        entry: Dict[str, Any] = {"user_id": str(profile.id), "email": profile.email, "status": "expired"}
        if profile.email:
            sent = await email_service.send_trial_expired(
                db, profile.email, name=profile.full_name, user_id=profile.id
            )
            entry["email_sent"] = sent.success
            if sent.success:
                result.sent += 1
            else:
                entry["error"] = sent.error
        result.results.append(entry)

    async def execute(self, db: AsyncSession, now: datetime, result: CronJobResult) -> Dict[str, Any]:
        found = await db.execute(
            select(Profile).where(
                Profile.is_trial.is_(True),
                Profile.subscription_status == tier.PREMIUM,
                Profile.trial_end_date < now,
            )
        )
        profiles = list(found.scalars().all())
        result.total_processed = len(profiles)
        expired = 0

        for profile in profiles:
            try:
                async with db.begin_nested():
                    await self._expire(db, profile, now, result)
                expired += 1
            except Exception as e:
                _record_user_error(result, profile, e)

        return {"expired": expired}


class WeeklyDigestJob(CronJob):
    """
    Weekly (Sunday evening): refresh and deliver the current week's digest
    to premium users who keep `weekly_digest` on.

    Users with no reflections this week are skipped. Users without a
    preferences row get the default, which is on.
    """

    job_name = "send_weekly_digests"

    async def _load_users(self, db: AsyncSession):
        result = await db.execute(
            select(Profile, UserPreferences)
            .outerjoin(UserPreferences, UserPreferences.user_id == Profile.id)
            .where(
                or_(Profile.subscription_status == tier.PREMIUM, Profile.subscription_tier == tier.PREMIUM),
                or_(UserPreferences.user_id.is_(None), UserPreferences.weekly_digest.is_(True)),
            )
        )
        return result.all()

    async def _process_user(
        self,
        db: AsyncSession,
        profile: Profile,
        prefs: Optional[UserPreferences],
        now: datetime,
        result: CronJobResult,
    ) -> None:
        if not tier.is_premium(profile, now=now):
            result.skipped += 1
            return

        built = await digest_service.get_weekly_digest(db, profile, refresh=True, now=now)
        if built.digest.total_reflections == 0:
            logger.debug("User %s has no reflections this week", profile.id)
            result.skipped += 1
            return

        webhook = prefs.slack_webhook_url if prefs else None
        method = prefs.delivery_method if prefs else "email"
        send_slack = method in ("slack", "both") and bool(webhook)
        send_email = bool(profile.email) and (method in ("email", "both") or not send_slack)

        sent = await digest_service.send_weekly_digest(
            db, profile, prefs, send_email=send_email, send_slack=send_slack, now=now, built=built
        )
        delivered = [d.channel for d in sent.deliveries if d.success]
        if delivered:
            result.sent += 1
            result.results.append({"user_id": str(profile.id), "status": "sent", "channels": delivered})
        else:
            result.failed += 1
            result.results.append({
                "user_id": str(profile.id),
                "status": "failed",
                "error": ", ".join(f"{d.channel}: {d.error}" for d in sent.deliveries)
                or "No delivery channel available",
            })

    async def execute(self, db: AsyncSession, now: datetime, result: CronJobResult) -> Dict[str, Any]:
        rows = await self._load_users(db)
        result.total_processed = len(rows)

        for profile, prefs in rows:
            try:
                async with db.begin_nested():
                    await self._process_user(db, profile, prefs, now, result)
            except Exception as e:
                _record_user_error(result, profile, e)

        return {"week_start": week_bounds(now.astimezone(timezone.utc).date())[0].isoformat()}


def _record_user_error(result: CronJobResult, profile: Profile, error: Exception) -> None:
    logger.error("Error processing user %s: %s", profile.id, str(error), exc_info=True)
    result.failed += 1
    result.results.append({"user_id": str(profile.id), "status": "error", "error": str(error)})


JOBS: Dict[str, CronJob] = {
    "send-daily-prompts": DailyPromptJob(),
    "expire-trials": ExpireTrialsJob(),
    "send-weekly-digests": WeeklyDigestJob(),
}


async def run_job(db: AsyncSession, name: str, now: Optional[datetime] = None) -> CronJobResult:
    """
    Run a registered job by its route name.

    Raises:
        ValidationError: Unknown job name.
    """
    job = JOBS.get(name)
    if job is None:
        raise ValidationError(
            message=f"Unknown cron job '{name}'",
            field="job",
            context={"available_jobs": sorted(JOBS)},
        )
    return await job.run(db, now=now)
