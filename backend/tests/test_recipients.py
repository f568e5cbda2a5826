"""Tests for recipient grouping and distribution list resolution."""

from datetime import date
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from portal.auth.models import UserRole
from portal.reminders.recipients import group_by_recipient, monitoring_recipients, resolve_distribution_list


class TestGroupByRecipient:
    def test_groups_per_owner_in_first_seen_order(self, make_user, make_record):
        alice = make_user("alice@example.com", nama="Alice")
        bob = make_user("bob@example.com")
        r1 = make_record("A-1", expire=date(2025, 7, 10), report=date(2025, 4, 10), owner=alice)
        r2 = make_record("B-1", expire=date(2025, 7, 10), report=date(2025, 6, 10), owner=bob)
        r3 = make_record("A-2", expire=date(2025, 7, 10), report=date(2025, 5, 10), owner=alice)

        groups = group_by_recipient([r1, r2, r3])

        assert [g.email for g in groups.values()] == ["alice@example.com", "bob@example.com"]
        alice_group = groups[str(alice.id)]
        assert alice_group.records == [r1, r3]
        assert alice_group.name == "Alice"
        assert alice_group.user_id == alice.id
        assert alice_group.breakdown == {"three_months": 1, "two_months": 1, "one_month": 0, "other": 0}
        assert r1.owner_email == "alice@example.com"

    def test_skips_records_without_owner_email(self, make_user, make_record):
        no_email = make_user(None)
        orphan = make_record("X-1", expire=date(2025, 7, 10), report=date(2025, 4, 10))
        silent = make_record("X-2", expire=date(2025, 7, 10), report=date(2025, 4, 10), owner=no_email)

        assert orphan.owner_email is None
        assert silent.owner_email is None
        assert group_by_recipient([orphan, silent]) == {}

    def test_skips_unmatched_records(self, make_user, make_record):
        owner = make_user("carol@example.com")
        record = make_record("C-1", expire=date(2025, 7, 10), report=None, owner=owner)

        assert group_by_recipient([record]) == {}


class TestDistributionList:
    def test_verified_admins_and_managers_plus_fallback(self, db_session, make_user, test_settings):
        make_user("admin@example.com", role=UserRole.ADMIN)
        make_user("manager@example.com", role=UserRole.MANAGER)
        make_user("pending@example.com", role=UserRole.MANAGER, verified=False)
        make_user("plain@example.com", role=UserRole.USER)

        recipients = resolve_distribution_list(db_session, test_settings)

        assert sorted(recipients[:2]) == ["admin@example.com", "manager@example.com"]
        assert recipients[2:] == ["qa@example.com"]

    def test_duplicates_removed_case_insensitively(self, db_session, make_user, test_settings):
        make_user("QA@example.com", role=UserRole.ADMIN)

        assert resolve_distribution_list(db_session, test_settings) == ["QA@example.com"]

    def test_nobody_found_uses_monitoring_address(self, db_session, test_settings):
        assert resolve_distribution_list(db_session, test_settings) == ["monitor@example.com"]

    def test_query_failure_uses_monitoring_address(self, test_settings):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

        assert resolve_distribution_list(db, test_settings) == ["monitor@example.com"]
        db.rollback.assert_called_once()

    def test_monitoring_recipients_empty_when_unset(self, test_settings):
        test_settings.reminder_monitoring_email = ""
        assert monitoring_recipients(test_settings) == []
