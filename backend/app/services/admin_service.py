"""
Prompt & Pause Backend — Admin Service
=======================================

What:  Back-office operations: user and subscription management, the support
       queue, cron monitoring, and runtime system settings.
How:   Plain SQLAlchemy queries over the shared tables. Every mutation also
       writes an `admin_activity_logs` row naming the acting admin.
Who:   /api/admin/* routes (guarded by the admin dependency).
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DatabaseError, NotFoundError, PromptPauseError, ValidationError
from app.models.admin import AdminActivityLog, SubscriptionEvent, SystemSetting
from app.models.cron import CronJobRun
from app.models.profile import Profile
from app.models.reflection import Reflection
from app.models.support import SupportResponse, SupportTicket
from app.schemas.admin import (
    AdminUserDetail,
    AdminUserListResponse,
    AdminUserSummary,
    AdminUserUpdate,
    Pricing,
    SubscriptionDetail,
    SubscriptionEventResponse,
    SubscriptionListResponse,
    SubscriptionStats,
    SubscriptionSummary,
    SystemSettingResponse,
)
from app.schemas.cron import (
    CronJobResult,
    CronJobRunListResponse,
    CronJobRunResponse,
    CronJobStats,
    RecentRuns,
)
from app.schemas.prompt import PreferencesResponse
from app.schemas.support import (
    SupportReplyResponse,
    SupportStats,
    SupportTicketDetail,
    SupportTicketListResponse,
    SupportTicketResponse,
    SupportTicketUpdate,
)
from app.services import cron_service
from app.services.timezones import get_zone
from app.services.user_service import user_service

logger = logging.getLogger(__name__)

USER_SORT_COLUMNS = {
    "created_at": Profile.created_at,
    "signup_date": Profile.created_at,
    "email": Profile.email,
    "full_name": Profile.full_name,
    "subscription_status": Profile.subscription_status,
}

DEFAULT_MONTHLY_PRICE = 12.00
DEFAULT_YEARLY_PRICE = 99.00
DEFAULT_CURRENCY = "GBP"


async def _count(db: AsyncSession, stmt: Select) -> int:
    result = await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    return result.scalar() or 0


def _search(term: Optional[str], *columns):
    pattern = f"%{term.strip()}%"
    return or_(*(col.ilike(pattern) for col in columns))


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class AdminService:
    """All admin operations. Methods taking `admin_email` are audited."""

    async def log_activity(
        self,
        db: AsyncSession,
        admin_email: str,
        action_type: str,
        target_user_id: Optional[UUID] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        db.add(
            AdminActivityLog(
                admin_email=admin_email,
                action_type=action_type,
                target_user_id=target_user_id,
                details=details or {},
            )
        )
        await db.flush()
        logger.info("Admin %s: %s (target=%s)", admin_email, action_type, target_user_id)

    # ══════════════════════════════════════════════════════════════════════
    # Users
    # ══════════════════════════════════════════════════════════════════════

    async def _get_profile(self, db: AsyncSession, user_id: UUID) -> Profile:
        result = await db.execute(select(Profile).where(Profile.id == user_id))
        profile = result.scalar_one_or_none()
        if profile is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return profile

    async def list_users(
        self,
        db: AsyncSession,
        limit: int = 50,
        offset: int = 0,
        subscription_status: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> AdminUserListResponse:
        """
        Raises:
            ValidationError: sort_by or sort_order is not whitelisted.
        """
        column = USER_SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationError(
                message=f"Cannot sort by '{sort_by}'",
                field="sort_by",
                context={"allowed": sorted(USER_SORT_COLUMNS)},
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationError(message="sort_order must be 'asc' or 'desc'", field="sort_order")

        stmt = select(Profile)
        if subscription_status == "free":
            stmt = stmt.where(or_(Profile.subscription_status.is_(None), Profile.subscription_status == "free"))
        elif subscription_status:
            stmt = stmt.where(Profile.subscription_status == subscription_status)
        if search:
            stmt = stmt.where(_search(search, Profile.email, Profile.full_name))

        try:
            total = await _count(db, stmt)
            ordered = column.asc() if sort_order == "asc" else column.desc()
            result = await db.execute(stmt.order_by(ordered).offset(offset).limit(limit))
            users = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing users: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not load users.")

        return AdminUserListResponse(
            users=[AdminUserSummary.model_validate(u) for u in users],
            total_count=total,
        )

    async def get_user(self, db: AsyncSession, user_id: UUID) -> AdminUserDetail:
        try:
            profile = await self._get_profile(db, user_id)
            prefs = await user_service.find_preferences(db, user_id)
            count = await db.execute(
                select(func.count(Reflection.id)).where(Reflection.user_id == user_id)
            )
            reflection_count = count.scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error loading user %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        return AdminUserDetail(
            user=AdminUserSummary.model_validate(profile),
            preferences=PreferencesResponse.model_validate(prefs) if prefs else None,
            reflection_count=reflection_count,
        )

    async def update_user(
        self, db: AsyncSession, user_id: UUID, data: AdminUserUpdate, admin_email: str
    ) -> AdminUserSummary:
        changes = data.model_dump(exclude_unset=True)
        if "timezone_iana" in changes and changes["timezone_iana"]:
            get_zone(changes["timezone_iana"])

        try:
            profile = await self._get_profile(db, user_id)
            for field, value in changes.items():
                setattr(profile, field, value)
            profile.updated_at = datetime.now(timezone.utc)
            await db.flush()
            await self.log_activity(
                db, admin_email, "user_updated", target_user_id=user_id,
                details={"fields": sorted(changes)},
            )
        except PromptPauseError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error updating user %s: %s", user_id, str(e))
            raise DatabaseError(message="Could not update the user.")

        return AdminUserSummary.model_validate(profile)

    async def delete_user(self, db: AsyncSession, user_id: UUID, admin_email: str) -> None:
        try:
            profile = await self._get_profile(db, user_id)
            email = profile.email
            await db.delete(profile)
            await db.flush()
            await self.log_activity(
                db, admin_email, "user_deleted", target_user_id=user_id,
                details={"email": email},
            )
        except PromptPauseError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error deleting user %s: %s", user_id, str(e))
            raise DatabaseError(message="Could not delete the user.")

    # ══════════════════════════════════════════════════════════════════════
    # Subscriptions
    # ══════════════════════════════════════════════════════════════════════

    async def list_subscriptions(
        self,
        db: AsyncSession,
        limit: int = 50,
        offset: int = 0,
        status: Optional[str] = None,
        billing_cycle: Optional[str] = None,
        search: Optional[str] = None,
    ) -> SubscriptionListResponse:
        stmt = select(Profile)
        if status == "free":
            stmt = stmt.where(or_(Profile.subscription_status.is_(None), Profile.subscription_status == "free"))
        elif status:
            stmt = stmt.where(Profile.subscription_status == status)
        if billing_cycle:
            stmt = stmt.where(Profile.billing_cycle == billing_cycle)
        if search:
            stmt = stmt.where(_search(search, Profile.email, Profile.full_name))

        try:
            total = await _count(db, stmt)
            result = await db.execute(
                stmt.order_by(Profile.updated_at.desc()).offset(offset).limit(limit)
            )
            profiles = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing subscriptions: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not load subscriptions.")

        return SubscriptionListResponse(
            subscriptions=[SubscriptionSummary.model_validate(p) for p in profiles],
            total_count=total,
        )

    async def get_subscription(self, db: AsyncSession, user_id: UUID) -> SubscriptionDetail:
        try:
            profile = await self._get_profile(db, user_id)
            result = await db.execute(
                select(SubscriptionEvent)
                .where(SubscriptionEvent.user_id == user_id)
                .order_by(SubscriptionEvent.created_at.desc())
            )
            events = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error loading subscription %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        return SubscriptionDetail(
            subscription=SubscriptionSummary.model_validate(profile),
            events=[SubscriptionEventResponse.model_validate(e) for e in events],
        )

    async def cancel_subscription(
        self,
        db: AsyncSession,
        user_id: UUID,
        admin_email: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SubscriptionSummary:
        """Set the status to 'cancelled' effective now and record the event."""
        now = now or datetime.now(timezone.utc)
        try:
            profile = await self._get_profile(db, user_id)
            old_status = profile.subscription_status
            profile.subscription_status = "cancelled"
            profile.subscription_end_date = now
            profile.updated_at = now
            db.add(
                SubscriptionEvent(
                    user_id=user_id,
                    event_type="cancelled",
                    old_status=old_status,
                    new_status="cancelled",
                    event_metadata={
                        "cancelled_by": admin_email,
                        "reason": reason or "Admin cancellation",
                    },
                )
            )
            await db.flush()
            await self.log_activity(
                db, admin_email, "subscription_cancel", target_user_id=user_id,
                details={"reason": reason, "old_status": old_status},
            )
        except PromptPauseError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error cancelling subscription %s: %s", user_id, str(e))
            raise DatabaseError(message="Could not cancel the subscription.")

        return SubscriptionSummary.model_validate(profile)

    async def _pricing(self, db: AsyncSession) -> Pricing:
        result = await db.execute(
            select(SystemSetting.key, SystemSetting.value).where(
                SystemSetting.key.in_(("monthly_price", "yearly_price", "currency"))
            )
        )
        values = {row.key: row.value for row in result.all()}
        return Pricing(
            monthly=_as_float(values.get("monthly_price"), DEFAULT_MONTHLY_PRICE),
            yearly=_as_float(values.get("yearly_price"), DEFAULT_YEARLY_PRICE),
            currency=str(values.get("currency") or DEFAULT_CURRENCY),
        )

    async def subscription_stats(
        self, db: AsyncSession, now: Optional[datetime] = None
    ) -> SubscriptionStats:
        """
        Plan counts. 'free' includes NULL and cancelled statuses (cancelled
        users are also counted on their own); monthly/annual count premium
        users only.
        """
        now = now or datetime.now(timezone.utc)
        try:
            result = await db.execute(
                select(
                    Profile.subscription_status,
                    Profile.billing_cycle,
                    func.count(Profile.id),
                ).group_by(Profile.subscription_status, Profile.billing_cycle)
            )
            rows = result.all()

            cancellations = await db.execute(
                select(func.count(SubscriptionEvent.id)).where(
                    SubscriptionEvent.event_type == "cancelled",
                    SubscriptionEvent.created_at >= now - timedelta(days=30),
                )
            )
            recent_cancellations = cancellations.scalar() or 0
            pricing = await self._pricing(db)
        except SQLAlchemyError as e:
            logger.error("Database error computing subscription stats: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not load subscription stats.")

        counts = {"total": 0, "free": 0, "premium": 0, "cancelled": 0, "monthly_subs": 0, "annual_subs": 0}
        for status, cycle, count in rows:
            counts["total"] += count
            if status in (None, "free", "cancelled"):
                counts["free"] += count
            if status == "cancelled":
                counts["cancelled"] += count
            if status == "premium":
                counts["premium"] += count
                if cycle == "monthly":
                    counts["monthly_subs"] += count
                elif cycle == "yearly":
                    counts["annual_subs"] += count

        return SubscriptionStats(**counts, recent_cancellations=recent_cancellations, pricing=pricing)

    # ══════════════════════════════════════════════════════════════════════
    # Support
    # ══════════════════════════════════════════════════════════════════════

    async def _get_ticket(self, db: AsyncSession, ticket_id: UUID) -> SupportTicket:
        result = await db.execute(select(SupportTicket).where(SupportTicket.id == ticket_id))
        ticket = result.scalar_one_or_none()
        if ticket is None:
            raise NotFoundError(resource="support ticket", resource_id=str(ticket_id))
        return ticket

    async def list_tickets(
        self,
        db: AsyncSession,
        limit: int = 50,
        offset: int = 0,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
    ) -> SupportTicketListResponse:
        stmt = select(SupportTicket)
        if status:
            stmt = stmt.where(SupportTicket.status == status)
        if priority:
            stmt = stmt.where(SupportTicket.priority == priority)
        if search:
            stmt = stmt.where(_search(search, SupportTicket.subject, SupportTicket.description))

        try:
            total = await _count(db, stmt)
            result = await db.execute(
                stmt.order_by(SupportTicket.created_at.desc()).offset(offset).limit(limit)
            )
            tickets = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing tickets: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not load support tickets.")

        return SupportTicketListResponse(
            tickets=[SupportTicketResponse.model_validate(t) for t in tickets],
            total_count=total,
        )

    async def get_ticket(self, db: AsyncSession, ticket_id: UUID) -> SupportTicketDetail:
        try:
            ticket = await self._get_ticket(db, ticket_id)
            result = await db.execute(
                select(SupportResponse)
                .where(SupportResponse.ticket_id == ticket_id)
                .order_by(SupportResponse.created_at.asc())
            )
            responses = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error loading ticket %s: %s", ticket_id, str(e))
            raise DatabaseError(context={"ticket_id": str(ticket_id)})

        return SupportTicketDetail(
            ticket=SupportTicketResponse.model_validate(ticket),
            responses=[SupportReplyResponse.model_validate(r) for r in responses],
        )

    async def update_ticket(
        self, db: AsyncSession, ticket_id: UUID, data: SupportTicketUpdate, admin_email: str
    ) -> SupportTicketResponse:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        try:
            ticket = await self._get_ticket(db, ticket_id)
            for field, value in changes.items():
                setattr(ticket, field, value)
            ticket.updated_at = datetime.now(timezone.utc)
            await db.flush()
            await self.log_activity(
                db, admin_email, "support_ticket_updated",
                details={"ticket_id": str(ticket_id), "updates": changes},
            )
        except PromptPauseError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error updating ticket %s: %s", ticket_id, str(e))
            raise DatabaseError(message="Could not update the ticket.")

        return SupportTicketResponse.model_validate(ticket)

    async def respond_to_ticket(
        self,
        db: AsyncSession,
        ticket_id: UUID,
        message: str,
        admin_email: str,
        is_internal: bool = False,
    ) -> SupportReplyResponse:
        try:
            ticket = await self._get_ticket(db, ticket_id)
            response = SupportResponse(
                ticket_id=ticket_id,
                responder_email=admin_email,
                message=message,
                is_internal=is_internal,
            )
            db.add(response)
            ticket.updated_at = datetime.now(timezone.utc)
            await db.flush()
            await self.log_activity(
                db, admin_email, "support_response_added",
                details={"ticket_id": str(ticket_id), "is_internal": is_internal},
            )
        except PromptPauseError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error responding to ticket %s: %s", ticket_id, str(e))
            raise DatabaseError(message="Could not add the response.")

        return SupportReplyResponse.model_validate(response)

    async def support_stats(self, db: AsyncSession) -> SupportStats:
        """Ticket counts by status and the mean hours until the first public reply."""
        first_reply = (
            select(
                SupportResponse.ticket_id,
                func.min(SupportResponse.created_at).label("first_at"),
            )
            .where(SupportResponse.is_internal.is_(False))
            .group_by(SupportResponse.ticket_id)
            .subquery()
        )
        try:
            status_rows = (
                await db.execute(
                    select(SupportTicket.status, func.count(SupportTicket.id)).group_by(SupportTicket.status)
                )
            ).all()
            reply_rows = (
                await db.execute(
                    select(SupportTicket.created_at, first_reply.c.first_at).join(
                        first_reply, first_reply.c.ticket_id == SupportTicket.id
                    )
                )
            ).all()
        except SQLAlchemyError as e:
            logger.error("Database error computing support stats: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not load support stats.")

        by_status = {status: count for status, count in status_rows}
        waits = [(first - created).total_seconds() / 3600 for created, first in reply_rows]
        return SupportStats(
            total_tickets=sum(by_status.values()),
            open_tickets=by_status.get("open", 0),
            in_progress_tickets=by_status.get("in_progress", 0),
            resolved_tickets=by_status.get("resolved", 0),
            avg_response_time_hours=round(sum(waits) / len(waits), 1) if waits else 0.0,
        )

    # ══════════════════════════════════════════════════════════════════════
    # Cron monitoring
    # ══════════════════════════════════════════════════════════════════════

    async def list_cron_runs(
        self,
        db: AsyncSession,
        limit: int = 50,
        offset: int = 0,
        job_name: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> CronJobRunListResponse:
        stmt = select(CronJobRun)
        if job_name:
            stmt = stmt.where(CronJobRun.job_name == job_name)
        if status:
            stmt = stmt.where(CronJobRun.status == status)
        if start_date:
            stmt = stmt.where(
                CronJobRun.started_at >= datetime.combine(start_date, datetime.min.time(), tzinfo=timezone.utc)
            )
        if end_date:
            stmt = stmt.where(
                CronJobRun.started_at < datetime.combine(
                    end_date + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc
                )
            )

        try:
            total = await _count(db, stmt)
            result = await db.execute(
                stmt.order_by(CronJobRun.started_at.desc()).offset(offset).limit(limit)
            )
            runs = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing cron runs: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not load cron runs.")

        return CronJobRunListResponse(
            runs=[CronJobRunResponse.model_validate(r) for r in runs],
            total_count=total,
        )

    async def cron_stats(self, db: AsyncSession, now: Optional[datetime] = None) -> CronJobStats:
        now = now or datetime.now(timezone.utc)

        def by_status(since: Optional[datetime] = None):
            stmt = select(CronJobRun.status, func.count(CronJobRun.id)).group_by(CronJobRun.status)
            if since is not None:
                stmt = stmt.where(CronJobRun.started_at >= since)
            return stmt

        try:
            overall = {s: c for s, c in (await db.execute(by_status())).all()}
            recent = {s: c for s, c in (await db.execute(by_status(now - timedelta(hours=24)))).all()}
            avg = (await db.execute(select(func.avg(CronJobRun.execution_time_ms)))).scalar()
        except SQLAlchemyError as e:
            logger.error("Database error computing cron stats: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not load cron stats.")

        total = sum(overall.values())
        successful = overall.get("success", 0)
        return CronJobStats(
            total_runs=total,
            successful_runs=successful,
            failed_runs=overall.get("failed", 0),
            success_rate=round(successful / total * 100, 1) if total else 0.0,
            average_execution_time_ms=int(avg or 0),
            last_24h=RecentRuns(
                total=sum(recent.values()),
                successful=recent.get("success", 0),
                failed=recent.get("failed", 0),
            ),
        )

    async def trigger_job(self, db: AsyncSession, job_name: str, admin_email: str) -> CronJobResult:
        """Run a registered job now, in this request."""
        result = await cron_service.run_job(db, job_name)
        await self.log_activity(
            db, admin_email, "cron_job_triggered",
            details={"job_name": job_name, "run_id": str(result.run_id) if result.run_id else None},
        )
        return result

    # ══════════════════════════════════════════════════════════════════════
    # System settings
    # ══════════════════════════════════════════════════════════════════════

    async def list_settings(self, db: AsyncSession) -> List[SystemSettingResponse]:
        try:
            result = await db.execute(
                select(SystemSetting).order_by(SystemSetting.category.asc(), SystemSetting.key.asc())
            )
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing settings: %s", str(e))
            raise DatabaseError(message="Could not load settings.")
        return [SystemSettingResponse.model_validate(s) for s in rows]

    async def update_setting(
        self, db: AsyncSession, key: str, value: Any, admin_email: str
    ) -> SystemSettingResponse:
        try:
            result = await db.execute(select(SystemSetting).where(SystemSetting.key == key))
            setting = result.scalar_one_or_none()
            if setting is None:
                raise NotFoundError(resource="setting", resource_id=key)

            old_value = setting.value
            setting.value = value
            setting.updated_by = admin_email
            setting.updated_at = datetime.now(timezone.utc)
            await db.flush()
            await self.log_activity(
                db, admin_email, "setting_updated",
                details={"key": key, "old_value": old_value, "value": value},
            )
        except PromptPauseError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error updating setting %s: %s", key, str(e))
            raise DatabaseError(message="Could not update the setting.")

        return SystemSettingResponse.model_validate(setting)


admin_service = AdminService()
