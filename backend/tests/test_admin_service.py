"""
Prompt & Pause Backend — Admin Service Tests
=============================================

What we test:
    ✅ Whitelisted user sorting
    ✅ Mutations write an admin activity log row
    ✅ Subscription cancel records an event
    ✅ Subscription / support / cron statistics arithmetic
    ✅ Missing rows → NotFoundError
"""

from collections import namedtuple
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.exceptions import NotFoundError, ValidationError
from app.models.admin import AdminActivityLog, SubscriptionEvent
from app.schemas.admin import AdminUserUpdate
from app.schemas.cron import CronJobResult
from app.services.admin_service import AdminService

NOW = datetime(2025, 3, 12, 9, 15, tzinfo=timezone.utc)
SettingRow = namedtuple("SettingRow", ["key", "value"])


def _added(session, kind):
    return [c.args[0] for c in session.add.call_args_list if isinstance(c.args[0], kind)]


class TestUsers:

    def setup_method(self):
        self.service = AdminService()

    @pytest.mark.asyncio
    async def test_unknown_sort_column_rejected(self, mock_db_session):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.list_users(mock_db_session, sort_by="password; drop table")

        assert "created_at" in exc_info.value.context["allowed"]
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_sort_order_rejected(self, mock_db_session):
        with pytest.raises(ValidationError):
            await self.service.list_users(mock_db_session, sort_order="sideways")

    @pytest.mark.asyncio
    async def test_list_users(self, mock_db_session, make_result, make_profile):
        users = [make_profile(), make_profile(email="kim@example.com")]
        mock_db_session.execute.side_effect = [make_result(scalar=2), make_result(scalars=users)]

        result = await self.service.list_users(mock_db_session, search="example", sort_by="email", sort_order="asc")

        assert result.total_count == 2
        assert [u.email for u in result.users] == ["sam@example.com", "kim@example.com"]

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_timezone(self, mock_db_session):
        with pytest.raises(ValidationError):
            await self.service.update_user(
                mock_db_session, uuid4(), AdminUserUpdate(timezone_iana="Nowhere/Special"), "admin@example.com"
            )
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_logs_activity(self, mock_db_session, make_result, make_profile):
        profile = make_profile()
        mock_db_session.execute.return_value = make_result(one=profile)

        result = await self.service.update_user(
            mock_db_session, profile.id, AdminUserUpdate(full_name="Sam R.", timezone_iana="Asia/Tokyo"),
            "admin@example.com",
        )

        assert result.full_name == "Sam R."
        log = _added(mock_db_session, AdminActivityLog)[0]
        assert log.action_type == "user_updated"
        assert log.target_user_id == profile.id
        assert log.details == {"fields": ["full_name", "timezone_iana"]}

    @pytest.mark.asyncio
    async def test_delete_missing_user(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(one=None)

        with pytest.raises(NotFoundError):
            await self.service.delete_user(mock_db_session, uuid4(), "admin@example.com")
        mock_db_session.delete.assert_not_called()


class TestSubscriptions:

    def setup_method(self):
        self.service = AdminService()

    @pytest.mark.asyncio
    async def test_cancel_records_event_and_log(self, mock_db_session, make_result, premium_profile):
        mock_db_session.execute.return_value = make_result(one=premium_profile)

        result = await self.service.cancel_subscription(
            mock_db_session, premium_profile.id, "ops@example.com", reason="Refund requested", now=NOW
        )

        assert result.subscription_status == "cancelled"
        assert result.subscription_end_date == NOW

        event = _added(mock_db_session, SubscriptionEvent)[0]
        assert (event.old_status, event.new_status) == ("premium", "cancelled")
        assert event.event_metadata == {"cancelled_by": "ops@example.com", "reason": "Refund requested"}
        assert _added(mock_db_session, AdminActivityLog)[0].action_type == "subscription_cancel"

    @pytest.mark.asyncio
    async def test_stats(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(rows=[
                (None, None, 3),
                ("free", None, 2),
                ("cancelled", "monthly", 1),
                ("premium", "monthly", 4),
                ("premium", "yearly", 2),
            ]),
            make_result(scalar=1),
            make_result(rows=[SettingRow("monthly_price", 9.5), SettingRow("currency", "USD")]),
        ]

        stats = await self.service.subscription_stats(mock_db_session, now=NOW)

        assert stats.total == 12
        assert stats.free == 6
        assert stats.cancelled == 1
        assert stats.premium == 6
        assert (stats.monthly_subs, stats.annual_subs) == (4, 2)
        assert stats.recent_cancellations == 1
        assert stats.pricing.model_dump() == {"monthly": 9.5, "yearly": 99.0, "currency": "USD"}


class TestSupportAndCron:

    def setup_method(self):
        self.service = AdminService()

    @pytest.mark.asyncio
    async def test_support_stats(self, mock_db_session, make_result):
        opened = NOW - timedelta(days=1)
        mock_db_session.execute.side_effect = [
            make_result(rows=[("open", 2), ("in_progress", 1), ("resolved", 3)]),
            make_result(rows=[(opened, opened + timedelta(hours=2)), (opened, opened + timedelta(hours=5))]),
        ]

        stats = await self.service.support_stats(mock_db_session)

        assert stats.total_tickets == 6
        assert stats.open_tickets == 2
        assert stats.avg_response_time_hours == 3.5

    @pytest.mark.asyncio
    async def test_respond_to_missing_ticket(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(one=None)

        with pytest.raises(NotFoundError):
            await self.service.respond_to_ticket(mock_db_session, uuid4(), "Hello", "ops@example.com")

    @pytest.mark.asyncio
    async def test_cron_stats(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(rows=[("success", 8), ("failed", 2)]),
            make_result(rows=[("success", 1)]),
            make_result(scalar=1234.5),
        ]

        stats = await self.service.cron_stats(mock_db_session, now=NOW)

        assert stats.total_runs == 10
        assert stats.success_rate == 80.0
        assert stats.average_execution_time_ms == 1234
        assert stats.last_24h.model_dump() == {"total": 1, "successful": 1, "failed": 0}

    @pytest.mark.asyncio
    async def test_cron_stats_without_runs(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(rows=[]), make_result(rows=[]), make_result(scalar=None)]

        stats = await self.service.cron_stats(mock_db_session, now=NOW)

        assert stats.success_rate == 0.0
        assert stats.average_execution_time_ms == 0

    @pytest.mark.asyncio
    async def test_trigger_job_is_audited(self, mock_db_session):
        run_id = uuid4()
        result = CronJobResult(job_name="expire_trials", run_id=run_id)

        with patch("app.services.admin_service.cron_service.run_job", AsyncMock(return_value=result)):
            returned = await self.service.trigger_job(mock_db_session, "expire-trials", "admin@example.com")

        assert returned is result
        log = _added(mock_db_session, AdminActivityLog)[0]
        assert log.details == {"job_name": "expire-trials", "run_id": str(run_id)}

    @pytest.mark.asyncio
    async def test_update_missing_setting(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(one=None)

        with pytest.raises(NotFoundError):
            await self.service.update_setting(mock_db_session, "monthly_price", 10, "admin@example.com")
