"""Audit log service for reminder jobs.

Writes are committed one row at a time so a run that dies halfway still leaves
the sends it completed on record. A failed write is logged and swallowed:
auditing never fails a run.
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import CronLog, EmailLog

logger = logging.getLogger(__name__)


def _commit_row(db: Session, row, what: str) -> bool:
    try:
        db.add(row)
        db.commit()
        return True
    except SQLAlchemyError as exc:
        logger.warning("Failed to write %s: %s", what, exc)
        try:
            db.rollback()
        except SQLAlchemyError:
            logger.warning("Rollback after failed %s write also failed", what)
        return False


def log_email(
    db: Session,
    action: str,
    recipients: list[str],
    records_count: int,
    emails_sent: int,
    emails_failed: int,
    details: dict | None = None,
    user_id=None,
) -> bool:
    """Write one email_logs row for a single send attempt."""
    return _commit_row(
        db,
        EmailLog(
            action=action,
            recipients=list(recipients),
            user_id=user_id,
            records_count=records_count,
            emails_sent=emails_sent,
            emails_failed=emails_failed,
            details=details or {},
        ),
        "email log",
    )


def log_cron_run(
    db: Session,
    job_name: str,
    status: str,
    result: str,
    records_found: int = 0,
    emails_sent: int = 0,
    emails_failed: int = 0,
    details: dict | None = None,
    execution_time: datetime | None = None,
    completed: bool = True,
    error_details: str | None = None,
) -> bool:
    """Write one cron_logs row summarising a job run."""
    now = datetime.now(UTC)
    return _commit_row(
        db,
        CronLog(
            job_name=job_name,
            execution_time=execution_time or now,
            status=status,
            records_found=records_found,
            emails_sent=emails_sent,
            emails_failed=emails_failed,
            result=result,
            details=details or {},
            completed_at=now if completed else None,
            error_details=error_details,
        ),
        "cron log",
    )


# ── Status aggregation ────────────────────────────────────────────────


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _iso(value: datetime | None) -> str | None:
    value = _as_utc(value)
    return value.isoformat() if value else None


def serialize_cron_log(log: CronLog) -> dict:
    return {
        "id": str(log.id),
        "job_name": log.job_name,
        "execution_time": _iso(log.execution_time),
        "status": log.status,
        "records_found": log.records_found or 0,
        "emails_sent": log.emails_sent or 0,
        "emails_failed": log.emails_failed or 0,
        "result": log.result or "",
        "details": log.details or {},
        "completed_at": _iso(log.completed_at),
        "error_details": log.error_details,
    }


def get_recent_executions(db: Session, limit: int = 10) -> list[CronLog]:
    return db.query(CronLog).order_by(CronLog.execution_time.desc()).limit(limit).all()


def get_job_summary(db: Session) -> list[dict]:
    """Per-job run counts and totals, most recently run job first."""
    rows = (
        db.query(
            CronLog.job_name,
            func.count(CronLog.id),
            func.max(CronLog.execution_time),
            func.coalesce(func.sum(CronLog.emails_sent), 0),
            func.coalesce(func.sum(CronLog.emails_failed), 0),
        )
        .group_by(CronLog.job_name)
        .order_by(func.max(CronLog.execution_time).desc())
        .all()
    )
    summary = []
    for job_name, runs, last_execution, sent, failed in rows:
        failed_runs = (
            db.query(func.count(CronLog.id))
            .filter(CronLog.job_name == job_name, CronLog.status == "failed")
            .scalar()
        )
        last_status = (
            db.query(CronLog.status)
            .filter(CronLog.job_name == job_name)
            .order_by(CronLog.execution_time.desc())
            .limit(1)
            .scalar()
        )
        summary.append(
            {
                "job_name": job_name,
                "total_runs": int(runs),
                "failed_runs": int(failed_runs or 0),
                "last_status": last_status,
                "last_execution": _iso(last_execution),
                "total_emails_sent": int(sent),
                "total_emails_failed": int(failed),
            }
        )
    return summary


def get_email_statistics(db: Session, days: int = 30, now: datetime | None = None) -> dict:
    since = (now or datetime.now(UTC)) - timedelta(days=days)
    logs = db.query(EmailLog).filter(EmailLog.created_at >= since).order_by(EmailLog.created_at.desc()).all()
    if not logs:
        return {"total_emails_sent": 0, "total_reminders": 0, "success_rate": 0.0, "last_email_sent": None}

    clean = sum(1 for log in logs if (log.emails_failed or 0) == 0)
    return {
        "total_emails_sent": sum(log.emails_sent or 0 for log in logs),
        "total_reminders": len(logs),
        "success_rate": round(clean / len(logs) * 100, 2),
        "last_email_sent": _iso(logs[0].created_at),
    }


def get_system_health(
    last_execution: CronLog | None,
    expiring_count: int,
    threshold_hours: int = 25,
    now: datetime | None = None,
) -> dict:
    """``healthy`` when the last run is younger than the threshold."""
    now = now or datetime.now(UTC)
    executed_at = _as_utc(last_execution.execution_time) if last_execution else None
    hours_ago = int((now - executed_at).total_seconds() // 3600) if executed_at else None
    healthy = hours_ago is not None and hours_ago < threshold_hours
    return {
        "status": "healthy" if healthy else "warning",
        "last_execution": _iso(executed_at),
        "hours_since_last_run": hours_ago,
        "current_expiring_records": expiring_count,
        "message": "System running normally" if healthy else "Warning: No recent cron execution detected",
    }
