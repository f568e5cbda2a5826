"""Reminder jobs: query, bucket, resolve recipients, send, audit.

Daily job: every active record expiring within the short horizon is mailed to
the shared distribution list. Sends fan out concurrently.

Monthly job: records whose expiry sits 3/2/1 months after their report date
are grouped per owner and mailed one owner at a time, with a fixed pacing
delay between sends to stay under the SMTP provider's rate limit.

Database work (queries, rendering over loaded rows, audit writes) runs in
worker threads via ``asyncio.to_thread``; the event loop only awaits sends and
the pacing delay.

Per-send failures are counted and logged, never raised. Only a failing
repository read (``RecordQueryError``) or an unexpected bug escapes.
"""

import asyncio
import logging
import traceback
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..audit.service import log_cron_run, log_email
from ..config import Settings
from ..materials.service import get_expiring_records, get_owned_expiring_records, summarize_record
from .recipients import group_by_recipient, resolve_distribution_list
from .templates import render_consolidated_email, render_expiry_email, render_monthly_email
from .transport import MailTransport, OutboundEmail
from .windows import bucket_records, days_until, monthly_windows, now_in, short_horizon_window

logger = logging.getLogger(__name__)

DAILY_JOB = "daily-email-reminder"
MONTHLY_JOB = "monthly-milestone-reminder"

ACTION_DAILY = "expiry_reminder"
ACTION_DAILY_CONSOLIDATED = "cron_expiry_reminder_consolidated"
ACTION_MONTHLY = "monthly_milestone_reminder"

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class ReminderServices:
    """Long-lived collaborators built once at startup and handed to each run."""

    settings: Settings
    daily_transport: MailTransport
    smtp_transport: MailTransport


@dataclass
class DispatchResult:
    ok: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class RunSummary:
    job_name: str
    method: str
    source: str
    records_found: int = 0
    matched: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    recipients: list[str] = field(default_factory=list)
    breakdown: dict[str, int] | None = None
    failures: list[str] = field(default_factory=list)
    result: str = ""

    def record(self, outcome: DispatchResult) -> None:
        if outcome.ok:
            self.emails_sent += 1
        else:
            self.emails_failed += 1
            self.failures.append(outcome.error or "Unknown error")


# ── Sending primitives ────────────────────────────────────────────────


async def attempt_send(transport: MailTransport, email: OutboundEmail) -> DispatchResult:
    """Send one email and turn any failure into a failed result."""
    try:
        message_id = await transport.send(email)
    except Exception as exc:
        logger.error("Email '%s' to %s failed: %s", email.subject, ", ".join(email.to) or "-", exc)
        return DispatchResult(ok=False, error=str(exc) or exc.__class__.__name__)
    logger.info("Email '%s' sent via %s, id=%s", email.subject, transport.name, message_id)
    return DispatchResult(ok=True, message_id=message_id)


async def gather_settled(
    tasks: Sequence[Callable[[], Awaitable[DispatchResult]]],
    limit: int = 10,
) -> list[DispatchResult]:
    """Run task factories concurrently, at most ``limit`` at a time.

    Results come back in task order. A task that raises is reported as a
    failed result instead of cancelling its siblings.
    """
    semaphore = asyncio.Semaphore(max(limit, 1))

    async def _run(task: Callable[[], Awaitable[DispatchResult]]) -> DispatchResult:
        async with semaphore:
            try:
                return await task()
            except Exception as exc:
                logger.exception("Dispatch task crashed")
                return DispatchResult(ok=False, error=str(exc) or exc.__class__.__name__)

    return list(await asyncio.gather(*(_run(t) for t in tasks)))


@dataclass
class PreparedSend:
    """A rendered email plus the audit details recorded for its attempt."""

    email: OutboundEmail
    records_count: int
    details: dict[str, Any]
    user_id: UUID | None = None


def _write_send_log(db: Session, action: str, send: PreparedSend, outcome: DispatchResult, transport_name: str) -> None:
    log_email(
        db,
        action,
        send.email.to,
        send.records_count,
        int(outcome.ok),
        int(not outcome.ok),
        details={
            **send.details,
            "message_id": outcome.message_id,
            "error": outcome.error,
            "transport": transport_name,
        },
        user_id=send.user_id,
    )


def _write_cron_log(
    db: Session, job_name: str, summary: RunSummary, details: dict, execution_time: datetime
) -> None:
    log_cron_run(
        db,
        job_name,
        "completed",
        summary.result,
        records_found=summary.records_found,
        emails_sent=summary.emails_sent,
        emails_failed=summary.emails_failed,
        details=details,
        execution_time=execution_time,
    )


# ── Daily job ─────────────────────────────────────────────────────────


def _prepare_daily(
    db: Session, config: Settings, now: datetime, method: str, source: str
) -> tuple[RunSummary, dict, list[PreparedSend]]:
    """Query, resolve recipients and render. Blocking; runs in a worker thread."""
    windows = short_horizon_window(now.date(), config.reminder_horizon_days)
    logger.info(
        "Daily reminder started (%s via %s): expiry between %s and %s",
        method, source, windows.outer.start, windows.outer.end,
    )
    records = get_expiring_records(db, windows.outer.start, windows.outer.end)
    logger.info("Found %d expiring records", len(records))

    summary = RunSummary(DAILY_JOB, method, source, records_found=len(records), matched=len(records))
    details = {
        "date_range": windows.outer.as_dict(),
        "method": method,
        "source": source,
        "mode": config.reminder_daily_mode,
        "expiring_records": [summarize_record(r) for r in records],
    }
    if not records:
        return summary, details, []

    summary.recipients = resolve_distribution_list(db, config)

    if config.reminder_daily_mode == "consolidated":
        rendered = render_consolidated_email(records, now, sender=config.smtp_from)
        sends = [
            PreparedSend(
                _outbound(rendered, summary.recipients),
                len(records),
                {"email_type": "consolidated", "materials": [r.material for r in records]},
            )
        ]
    else:
        sends = []
        for record in records:
            days = days_until(record.tanggal_expire, now)
            sends.append(
                PreparedSend(
                    _outbound(render_expiry_email(record, days), summary.recipients),
                    1,
                    {"email_type": "per_record", "materials": [record.material], "days_until_expiry": days},
                )
            )
    return summary, details, sends


def _write_daily_logs(
    db: Session,
    action: str,
    sends: list[PreparedSend],
    outcomes: list[DispatchResult],
    transport_name: str,
    summary: RunSummary,
    details: dict,
    execution_time: datetime,
) -> None:
    for send, outcome in zip(sends, outcomes):
        _write_send_log(db, action, send, outcome, transport_name)
    _write_cron_log(db, DAILY_JOB, summary, details, execution_time)


async def run_daily_reminder(
    db: Session,
    services: ReminderServices,
    method: str = "GET",
    source: str = "manual",
    now: datetime | None = None,
) -> RunSummary:
    config = services.settings
    now = now or now_in(config.reminder_timezone)
    execution_time = datetime.now(UTC)

    summary, details, sends = await asyncio.to_thread(_prepare_daily, db, config, now, method, source)
    if not sends:
        summary.result = "No expiring records found"
        await asyncio.to_thread(
            log_cron_run, db, DAILY_JOB, "completed", summary.result, details=details, execution_time=execution_time
        )
        return summary

    transport = services.daily_transport
    outcomes = await gather_settled(
        [lambda email=send.email: attempt_send(transport, email) for send in sends],
        limit=config.reminder_max_concurrency,
    )
    for outcome in outcomes:
        summary.record(outcome)

    if config.reminder_daily_mode == "consolidated":
        action = ACTION_DAILY_CONSOLIDATED
        summary.result = (
            f"Berhasil mengirim 1 email konsolidasi dengan {summary.records_found} material"
            if outcomes[0].ok
            else "Gagal mengirim email konsolidasi"
        )
    else:
        action = ACTION_DAILY
        summary.result = f"Berhasil mengirim {summary.emails_sent} dari {len(sends)} email pengingat"

    details["recipients"] = summary.recipients
    await asyncio.to_thread(
        _write_daily_logs, db, action, sends, outcomes, transport.name, summary, details, execution_time
    )
    logger.info("Daily reminder done: %d sent, %d failed", summary.emails_sent, summary.emails_failed)
    return summary


# ── Monthly job ───────────────────────────────────────────────────────


def _prepare_monthly(
    db: Session, config: Settings, now: datetime, method: str, source: str
) -> tuple[RunSummary, dict, list[PreparedSend]]:
    """Query, bucket, group per owner and render. Blocking; runs in a worker thread."""
    tolerance = config.reminder_tolerance_days
    windows = monthly_windows(now.date(), tolerance_days=tolerance)
    logger.info(
        "Monthly milestone reminder started (%s via %s): expiry between %s and %s",
        method, source, windows.outer.start, windows.outer.end,
    )
    records = get_owned_expiring_records(db, windows.outer.start, windows.outer.end)
    buckets = bucket_records(records, tolerance)
    groups = group_by_recipient(records, tolerance)

    summary = RunSummary(
        MONTHLY_JOB,
        method,
        source,
        records_found=len(records),
        matched=sum(len(g.records) for g in groups.values()),
        breakdown=buckets.breakdown(),
    )
    details = {
        "windows": windows.as_dict(),
        "method": method,
        "source": source,
        "breakdown": summary.breakdown,
    }
    logger.info("Monthly buckets: %s, %d recipients", summary.breakdown, len(groups))

    sends = [
        PreparedSend(
            _outbound(render_monthly_email(group), [group.email]),
            len(group.records),
            {"materials": [r.material for r in group.records], "breakdown": group.breakdown},
            user_id=group.user_id,
        )
        for group in groups.values()
    ]
    return summary, details, sends


async def run_monthly_reminder(
    db: Session,
    services: ReminderServices,
    method: str = "GET",
    source: str = "manual",
    now: datetime | None = None,
    sleep: Sleep = asyncio.sleep,
) -> RunSummary:
    config = services.settings
    now = now or now_in(config.reminder_timezone)
    execution_time = datetime.now(UTC)

    summary, details, sends = await asyncio.to_thread(_prepare_monthly, db, config, now, method, source)
    if not sends:
        summary.result = "No monthly milestone records found"
        await asyncio.to_thread(_write_cron_log, db, MONTHLY_JOB, summary, details, execution_time)
        return summary

    transport = services.smtp_transport
    for index, send in enumerate(sends):
        summary.recipients.extend(send.email.to)
        outcome = await attempt_send(transport, send.email)
        summary.record(outcome)
        await asyncio.to_thread(_write_send_log, db, ACTION_MONTHLY, send, outcome, transport.name)
        if index < len(sends) - 1:
            await sleep(config.reminder_pacing_seconds)

    summary.result = (
        f"Mengirim {summary.emails_sent} email milestone ke {len(sends)} penerima, {summary.emails_failed} gagal"
    )
    details["recipients"] = summary.recipients
    await asyncio.to_thread(_write_cron_log, db, MONTHLY_JOB, summary, details, execution_time)
    logger.info("Monthly reminder done: %d sent, %d failed", summary.emails_sent, summary.emails_failed)
    return summary


def record_failed_run(db: Session, job_name: str, exc: Exception) -> None:
    """Best-effort ``failed`` cron log after an unexpected error. Blocking."""
    try:
        db.rollback()
    except SQLAlchemyError:
        logger.warning("Rollback before failure log failed")
    log_cron_run(
        db,
        job_name,
        "failed",
        f"Error: {exc}",
        completed=False,
        error_details="".join(traceback.format_exception(exc)),
    )
