"""Reminder endpoint schemas."""

import enum

from pydantic import BaseModel, Field


class DebugMode(enum.StrEnum):
    EMAIL_CONFIG = "email_config"
    SEND_TEST_EMAIL = "send_test_email"
    RUN_MONTHLY_CRON = "run_monthly_cron"


class ManualTriggerRequest(BaseModel):
    test: str | None = None

    @property
    def debug_mode(self) -> DebugMode | None:
        try:
            return DebugMode(self.test) if self.test else None
        except ValueError:
            return None


class RunDetails(BaseModel):
    total_expiring_records: int = 0
    expiring_records: int | None = None
    monthly_milestone_records: int | None = None
    emails_sent: int = 0
    emails_failed: int = 0
    recipients: int = 0
    breakdown: dict[str, int] | None = None
    failed_emails: list[str] = Field(default_factory=list)
    method: str
    source: str


class RunResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: str
    details: RunDetails


class ErrorResponse(BaseModel):
    error: str
    message: str = ""
    timestamp: str
