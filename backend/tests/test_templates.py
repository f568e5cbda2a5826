"""Tests for reminder email rendering."""

from datetime import UTC, date, datetime

from conftest import FIXED_NOW

from portal.reminders.recipients import group_by_recipient
from portal.reminders.templates import (
    NOT_SPECIFIED,
    TIDAK_DITENTUKAN,
    format_date_id,
    format_timestamp_wib,
    render_consolidated_email,
    render_expiry_email,
    render_monthly_email,
    render_test_email,
)


class TestFormatting:
    def test_format_date_id(self):
        assert format_date_id(date(2025, 6, 5)) == "5/6/2025"
        assert format_date_id("2025-12-31") == "31/12/2025"
        assert format_date_id(None) is None

    def test_timestamp_in_wib(self):
        assert format_timestamp_wib(datetime(2025, 6, 10, 1, 2, 3, tzinfo=UTC)) == "10 Juni 2025 08.02.03 WIB"


class TestExpiryEmail:
    def test_subject_tags_and_fields(self, make_record):
        record = make_record("SS400 Plate", expire=date(2025, 6, 12), report=date(2025, 3, 12))

        email = render_expiry_email(record, 2)

        assert email.subject == "URGENT: Mill Sheet Expiring in 2 day(s) - SS400 Plate"
        assert "PT Baja Utama" in email.html
        assert "12/6/2025" in email.html
        assert email.tags == {"category": "mill-sheet-reminder", "material": "SS400_Plate", "days_until_expiry": "2"}
        assert "Supplier:      PT Baja Utama" in email.text

    def test_missing_lookups_use_placeholder(self, make_record):
        record = make_record("Bare", expire=date(2025, 6, 12), with_lookups=False)

        email = render_expiry_email(record, 1)

        assert NOT_SPECIFIED in email.html
        assert f"Report Date:   {NOT_SPECIFIED}" in email.text

    def test_values_are_escaped(self, make_record):
        record = make_record("<b>Steel & Co</b>", expire=date(2025, 6, 12))

        email = render_expiry_email(record, 1)

        assert "&lt;b&gt;Steel &amp; Co&lt;/b&gt;" in email.html
        assert "<b>Steel" not in email.html


class TestConsolidatedEmail:
    def test_sorted_by_urgency_with_counts(self, make_record):
        later = make_record("Later", expire=date(2025, 6, 13))
        sooner = make_record("Sooner", expire=date(2025, 6, 11))
        middle = make_record("Middle", expire=date(2025, 6, 12), with_lookups=False)

        email = render_consolidated_email([later, sooner, middle], FIXED_NOW, sender="noreply@example.com")

        assert email.subject == "PENTING: 3 Dokumen Akan Segera Kedaluwarsa"
        assert email.html.index("Sooner") < email.html.index("Middle") < email.html.index("Later")
        assert "1 hari lagi" in email.html
        assert "3 hari lagi" in email.html
        assert TIDAK_DITENTUKAN in email.html
        assert "noreply@example.com" in email.html
        assert "10 Juni 2025 08.00.00 WIB" in email.html


class TestMonthlyEmail:
    def test_lists_each_bucket_with_calendar_month_label(self, make_user, make_record):
        owner = make_user("owner@example.com", nama="Budi")
        make_record("Three", expire=date(2025, 7, 10), report=date(2025, 4, 10), owner=owner)
        make_record("One", expire=date(2025, 7, 11), report=date(2025, 6, 10), owner=owner)
        records = owner.materials

        group = next(iter(group_by_recipient(records).values()))
        email = render_monthly_email(group)

        assert email.subject == "Pengingat: 2 Dokumen Mendekati Masa Kedaluwarsa"
        assert "Halo Budi" in email.html
        assert "3 bulan dari laporan" in email.html
        assert "1 bulan dari laporan" in email.html
        assert email.html.index("Three") < email.html.index("One")
        assert "Three (3 bulan dari laporan)" in email.text


class TestTestEmail:
    def test_subject_and_sender(self, test_settings):
        test_settings.smtp_from = "noreply@example.com"

        email = render_test_email(test_settings, "monitor@example.com", FIXED_NOW)

        assert email.subject == "Test Email - Sistem Pengingat Harian"
        assert "noreply@example.com" in email.html
        assert "monitor@example.com" in email.html
