"""Tests for audit service."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from portal.audit.models import CronLog, EmailLog
from portal.audit.service import (
    get_email_statistics,
    get_job_summary,
    get_recent_executions,
    get_system_health,
    log_cron_run,
    log_email,
    serialize_cron_log,
)

NOW = datetime(2025, 6, 10, 1, 0, tzinfo=UTC)


class TestLogWrites:
    def test_log_email(self, db_session):
        assert log_email(db_session, "expiry_reminder", ["a@example.com"], 1, 1, 0, details={"materials": ["M-1"]})

        log = db_session.query(EmailLog).one()
        assert log.action == "expiry_reminder"
        assert log.recipients == ["a@example.com"]
        assert log.details == {"materials": ["M-1"]}

    def test_log_cron_run_completed(self, db_session):
        log_cron_run(db_session, "daily-email-reminder", "completed", "ok", records_found=2, emails_sent=2)

        log = db_session.query(CronLog).one()
        assert log.status == "completed"
        assert log.completed_at is not None
        assert log.details == {}

    def test_failed_write_returns_false(self):
        db = MagicMock()
        db.commit.side_effect = OperationalError("INSERT", {}, Exception("read-only"))

        assert log_email(db, "expiry_reminder", [], 0, 0, 1) is False
        db.rollback.assert_called_once()


class TestRecentExecutions:
    def test_newest_first_and_serialized(self, db_session):
        log_cron_run(db_session, "daily-email-reminder", "completed", "old", execution_time=NOW - timedelta(days=1))
        log_cron_run(db_session, "daily-email-reminder", "failed", "new", execution_time=NOW, completed=False)

        recent = get_recent_executions(db_session)

        assert [log.result for log in recent] == ["new", "old"]
        data = serialize_cron_log(recent[0])
        assert data["execution_time"] == "2025-06-10T01:00:00+00:00"
        assert data["completed_at"] is None
        assert data["status"] == "failed"


class TestJobSummary:
    def test_totals_per_job(self, db_session):
        log_cron_run(db_session, "daily-email-reminder", "completed", "", emails_sent=3, emails_failed=1,
                     execution_time=NOW - timedelta(hours=2))
        log_cron_run(db_session, "daily-email-reminder", "failed", "", execution_time=NOW - timedelta(hours=1))
        log_cron_run(db_session, "monthly-milestone-reminder", "completed", "", emails_sent=5,
                     execution_time=NOW - timedelta(days=3))

        summary = {row["job_name"]: row for row in get_job_summary(db_session)}

        daily = summary["daily-email-reminder"]
        assert daily["total_runs"] == 2
        assert daily["failed_runs"] == 1
        assert daily["last_status"] == "failed"
        assert daily["total_emails_sent"] == 3
        assert daily["total_emails_failed"] == 1
        assert summary["monthly-milestone-reminder"]["failed_runs"] == 0

    def test_empty(self, db_session):
        assert get_job_summary(db_session) == []


class TestEmailStatistics:
    def test_empty_window(self, db_session):
        assert get_email_statistics(db_session, now=NOW) == {
            "total_emails_sent": 0,
            "total_reminders": 0,
            "success_rate": 0.0,
            "last_email_sent": None,
        }

    def test_success_rate_over_recent_rows(self, db_session):
        rows = [(1, 0), (1, 0), (0, 1)]
        for i, (sent, failed) in enumerate(rows):
            db_session.add(
                EmailLog(action="expiry_reminder", emails_sent=sent, emails_failed=failed,
                         created_at=NOW - timedelta(hours=i + 1))
            )
        db_session.add(EmailLog(action="expiry_reminder", emails_sent=9, created_at=NOW - timedelta(days=45)))
        db_session.commit()

        stats = get_email_statistics(db_session, now=NOW)

        assert stats["total_emails_sent"] == 2
        assert stats["total_reminders"] == 3
        assert stats["success_rate"] == 66.67
        assert stats["last_email_sent"] == "2025-06-10T00:00:00+00:00"


class TestSystemHealth:
    def test_healthy_when_recent(self):
        last = CronLog(job_name="daily-email-reminder", status="completed", execution_time=NOW - timedelta(hours=3))

        health = get_system_health(last, 4, now=NOW)

        assert health["status"] == "healthy"
        assert health["hours_since_last_run"] == 3
        assert health["current_expiring_records"] == 4
        assert health["message"] == "System running normally"

    def test_warning_when_stale(self):
        last = CronLog(job_name="daily-email-reminder", status="completed", execution_time=NOW - timedelta(hours=25))

        assert get_system_health(last, 0, now=NOW)["status"] == "warning"

    def test_warning_when_never_run(self):
        health = get_system_health(None, 0, now=NOW)

        assert health["status"] == "warning"
        assert health["hours_since_last_run"] is None
        assert health["last_execution"] is None
