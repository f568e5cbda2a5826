"""Audit trail for reminder jobs: one row per run, one row per send attempt."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base


def _now():
    return datetime.now(UTC)


class CronLog(Base):
    __tablename__ = "cron_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_name = Column(String(100), nullable=False, index=True)
    execution_time = Column(DateTime(timezone=True), default=_now, index=True)
    status = Column(String(20), nullable=False)  # "completed" | "failed"
    records_found = Column(Integer, default=0)
    emails_sent = Column(Integer, default=0)
    emails_failed = Column(Integer, default=0)
    result = Column(Text, default="")
    details = Column(JSON, default=dict)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    error_details = Column(Text, nullable=True)


class EmailLog(Base):
    __tablename__ = "email_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    action = Column(String(100), nullable=False, index=True)
    recipients = Column(JSON, default=list)
    user_id = Column(UUID(as_uuid=True), nullable=True)
    records_count = Column(Integer, default=0)
    emails_sent = Column(Integer, default=0)
    emails_failed = Column(Integer, default=0)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=_now, index=True)
