"""Shared test fixtures."""

import uuid
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from portal.audit.models import CronLog, EmailLog
from portal.auth.models import User, UserRole
from portal.config import Settings
from portal.database.base import Base
from portal.masterdata.models import DocumentType, PartName, PartNumber, Supplier
from portal.materials.models import MaterialControl
from portal.reminders.dispatch import ReminderServices
from portal.reminders.transport import MailDeliveryError, OutboundEmail

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [User, Supplier, PartName, PartNumber, DocumentType, MaterialControl, CronLog, EmailLog]

JAKARTA = ZoneInfo("Asia/Jakarta")

# 08:00 WIB on 2025-06-10: "today" for every job test
FIXED_NOW = datetime(2025, 6, 10, 8, 0, tzinfo=JAKARTA)


class FakeTransport:
    """Records every send; fails for addresses listed in ``fail_for``."""

    def __init__(self, name="fake", fail_for=()):
        self.name = name
        self.fail_for = {a.lower() for a in fail_for}
        self.sent: list[OutboundEmail] = []
        self.attempts: list[OutboundEmail] = []

    async def send(self, email: OutboundEmail) -> str:
        self.attempts.append(email)
        if any(a.lower() in self.fail_for for a in email.to):
            raise MailDeliveryError(f"Rejected by provider: {', '.join(email.to)}")
        self.sent.append(email)
        return f"<msg-{len(self.sent)}@test>"


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing.

    Note: SQLite doesn't support all PostgreSQL features (UUID),
    but works for basic service logic testing.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        cron_secret="test-cron-secret",
        secret_key="test-secret",
        reminder_monitoring_email="monitor@example.com",
        reminder_fallback_recipients=["qa@example.com"],
        reminder_pacing_seconds=5.0,
        log_dir=str(tmp_path / "logs"),
        run_migrations=False,
    )


@pytest.fixture
def daily_transport():
    return FakeTransport(name="fake-resend")


@pytest.fixture
def smtp_transport():
    return FakeTransport(name="fake-smtp")


@pytest.fixture
def services(test_settings, daily_transport, smtp_transport):
    return ReminderServices(settings=test_settings, daily_transport=daily_transport, smtp_transport=smtp_transport)


@pytest.fixture
def lookups(db_session):
    """One row in each reference table."""
    supplier = Supplier(nama="PT Baja Utama")
    part_name = PartName(nama="Bracket")
    part_number = PartNumber(nama="BR-1001")
    doc_type = DocumentType(nama="Mill Sheet")
    db_session.add_all([supplier, part_name, part_number, doc_type])
    db_session.commit()
    return {
        "id_supplier": supplier.id_supplier,
        "id_part_name": part_name.id_part_name,
        "id_part_number": part_number.id_part_number,
        "id_jenis_dokumen": doc_type.id_jenis_dokumen,
    }


@pytest.fixture
def make_user(db_session):
    def _make(email, role=UserRole.USER, verified=True, nama=""):
        user = User(id=uuid.uuid4(), email=email, role=role, email_verified=verified, nama=nama)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_record(db_session, lookups):
    def _make(material, expire, report=None, owner=None, status=True, with_lookups=True):
        record = MaterialControl(
            material=material,
            tanggal_report=report,
            tanggal_expire=expire,
            status=status,
            user_id=owner.id if owner else None,
            **(lookups if with_lookups else {}),
        )
        db_session.add(record)
        db_session.commit()
        return record

    return _make


@pytest.fixture
def monthly_owners(make_user, make_record):
    """Five owners, each with one record on the 3-month milestone."""
    owners = []
    for i in range(1, 6):
        owner = make_user(f"owner{i}@example.com", nama=f"Owner {i}")
        make_record(f"MAT-{i}", expire=date(2025, 7, 10), report=date(2025, 4, 10), owner=owner)
        owners.append(owner)
    return owners
