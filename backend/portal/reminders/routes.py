"""Reminder job triggers (scheduler + manual) and status view."""

import asyncio
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..audit.service import (
    get_email_statistics,
    get_job_summary,
    get_recent_executions,
    get_system_health,
    serialize_cron_log,
)
from ..config import settings
from ..database.base import get_db
from ..dependencies import CronCaller, get_reminder_services, verify_cron_request
from ..materials.service import RecordQueryError, get_expiring_records, summarize_record
from ..rate_limit import limiter
from .dispatch import (
    DAILY_JOB,
    MONTHLY_JOB,
    ReminderServices,
    RunSummary,
    attempt_send,
    record_failed_run,
    run_daily_reminder,
    run_monthly_reminder,
)
from .recipients import monitoring_recipients, resolve_distribution_list
from .schemas import DebugMode, ErrorResponse, ManualTriggerRequest, RunDetails, RunResponse
from .templates import render_test_email
from .transport import OutboundEmail
from .windows import now_in, short_horizon_window

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reminder", tags=["reminder"])


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def _error(error: str, message: str, status_code: int = 500) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, timestamp=_timestamp())
    return JSONResponse(body.model_dump(), status_code=status_code)


def _run_response(summary: RunSummary) -> dict:
    details = RunDetails(
        total_expiring_records=summary.records_found,
        emails_sent=summary.emails_sent,
        emails_failed=summary.emails_failed,
        recipients=len(summary.recipients),
        failed_emails=summary.failures,
        method=summary.method,
        source=summary.source,
    )
    if summary.job_name == MONTHLY_JOB:
        details.monthly_milestone_records = summary.matched
        details.breakdown = summary.breakdown
        message = (
            "Monthly milestone reminder completed successfully"
            if summary.matched
            else "Cron job completed - no monthly milestone records found"
        )
    else:
        details.expiring_records = summary.matched
        message = (
            "Daily email reminder cron job completed successfully"
            if summary.matched
            else "Cron job completed - no expiring records found"
        )
    return RunResponse(message=message, timestamp=_timestamp(), details=details).model_dump(exclude_none=True)


async def _run_job(job_name: str, db: Session, services: ReminderServices, method: str, caller: CronCaller):
    runner = run_monthly_reminder if job_name == MONTHLY_JOB else run_daily_reminder
    try:
        summary = await runner(db, services, method=method, source=caller.source)
    except RecordQueryError as exc:
        return _error("Database error", str(exc))
    except Exception as exc:
        logger.exception("Cron job %s failed", job_name)
        await asyncio.to_thread(record_failed_run, db, job_name, exc)
        return _error("Cron job failed", str(exc))
    return JSONResponse(_run_response(summary))


# ── Triggers ──────────────────────────────────────────────────────────


@router.get("/daily")
async def daily_reminder_scheduled(
    caller: CronCaller = Depends(verify_cron_request),
    services: ReminderServices = Depends(get_reminder_services),
    db: Session = Depends(get_db),
):
    return await _run_job(DAILY_JOB, db, services, "GET", caller)


@router.post("/daily")
@limiter.limit(settings.rate_limit_manual_trigger)
async def daily_reminder_manual(
    request: Request,
    caller: CronCaller = Depends(verify_cron_request),
    services: ReminderServices = Depends(get_reminder_services),
    db: Session = Depends(get_db),
):
    try:
        payload = ManualTriggerRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        payload = ManualTriggerRequest()

    mode = payload.debug_mode
    if mode is DebugMode.EMAIL_CONFIG:
        return await _email_config(db, services)
    if mode is DebugMode.SEND_TEST_EMAIL:
        return await _send_test_email(services)
    if mode is DebugMode.RUN_MONTHLY_CRON:
        return await _run_job(MONTHLY_JOB, db, services, "POST", caller)
    return await _run_job(DAILY_JOB, db, services, "POST", caller)


@router.get("/monthly")
async def monthly_reminder_scheduled(
    caller: CronCaller = Depends(verify_cron_request),
    services: ReminderServices = Depends(get_reminder_services),
    db: Session = Depends(get_db),
):
    return await _run_job(MONTHLY_JOB, db, services, "GET", caller)


# ── Debug helpers ─────────────────────────────────────────────────────


async def _email_config(db: Session, services: ReminderServices) -> JSONResponse:
    config = services.settings
    recipients = await asyncio.to_thread(resolve_distribution_list, db, config)
    return JSONResponse(
        {
            "smtp_from": config.smtp_from,
            "smtp_user": config.smtp_user,
            "smtp_host": config.smtp_host,
            "smtp_configured": config.smtp_configured,
            "daily_transport": services.daily_transport.name,
            "daily_mode": config.reminder_daily_mode,
            "recipients": recipients,
            "monitoring": monitoring_recipients(config),
            "timestamp": _timestamp(),
            "app_url": config.app_url,
        }
    )


async def _send_test_email(services: ReminderServices) -> JSONResponse:
    config = services.settings
    to = monitoring_recipients(config)
    rendered = render_test_email(config, ", ".join(to), datetime.now(UTC))
    outcome = await attempt_send(
        services.smtp_transport,
        OutboundEmail(to=to, subject=rendered.subject, html=rendered.html, text=rendered.text),
    )
    if not outcome.ok:
        return JSONResponse({"success": False, "error": outcome.error}, status_code=500)
    return JSONResponse({"success": True, "message_id": outcome.message_id, "from": config.smtp_from, "to": to})


# ── Status ────────────────────────────────────────────────────────────


@router.get("/status")
def reminder_status(
    services: ReminderServices = Depends(get_reminder_services),
    db: Session = Depends(get_db),
):
    config = services.settings
    try:
        recent = get_recent_executions(db)
        job_summary = get_job_summary(db)
        email_stats = get_email_statistics(db)
        window = short_horizon_window(now_in(config.reminder_timezone).date(), config.reminder_horizon_days)
        expiring = get_expiring_records(db, window.outer.start, window.outer.end)
    except (RecordQueryError, SQLAlchemyError) as exc:
        logger.error("Status query failed: %s", exc)
        return _error("Failed to fetch cron status", str(exc))

    health = get_system_health(
        recent[0] if recent else None,
        len(expiring),
        threshold_hours=config.reminder_health_threshold_hours,
    )
    return JSONResponse(
        {
            "success": True,
            "timestamp": _timestamp(),
            "data": {
                "system_health": health,
                "cron_summary": job_summary,
                "recent_executions": [serialize_cron_log(log) for log in recent],
                "email_statistics": email_stats,
                "current_expiring_records": {
                    "count": len(expiring),
                    "records": [summarize_record(r) for r in expiring],
                },
            },
        }
    )
