"""Shared FastAPI dependencies."""

import hmac
import logging
from dataclasses import dataclass

from fastapi import Depends, Request

from .reminders.dispatch import ReminderServices

logger = logging.getLogger(__name__)


class CronUnauthorized(Exception):
    """Raised when a job trigger is neither the scheduler nor carries the secret.

    Handled by the exception handler in main.py.
    """


@dataclass(frozen=True)
class CronCaller:
    source: str  # scheduler signature or "manual"


def get_reminder_services(request: Request) -> ReminderServices:
    """Get the reminder collaborators from app state."""
    return request.app.state.reminders


def verify_cron_request(
    request: Request,
    services: ReminderServices = Depends(get_reminder_services),
) -> CronCaller:
    """Accept the scheduler's user agent or ``Authorization: Bearer <CRON_SECRET>``."""
    config = services.settings

    user_agent = request.headers.get("user-agent", "")
    if config.cron_user_agent and config.cron_user_agent in user_agent:
        return CronCaller(source=config.cron_user_agent)

    auth_header = request.headers.get("authorization", "")
    if config.cron_secret and hmac.compare_digest(auth_header.encode(), f"Bearer {config.cron_secret}".encode()):
        return CronCaller(source="manual")

    logger.warning("Unauthorized cron job attempt on %s %s", request.method, request.url.path)
    raise CronUnauthorized()
