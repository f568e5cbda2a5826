"""Email bodies for expiry reminders.

Pure string rendering: every dynamic value is HTML-escaped and missing lookups
fall back to a placeholder instead of raising.
"""

from dataclasses import dataclass, field
from datetime import datetime
from html import escape
from zoneinfo import ZoneInfo

from ..config import Settings
from .recipients import RecipientGroup
from .windows import MilestoneBucket, days_until, to_date

NOT_SPECIFIED = "Not specified"
TIDAK_DITENTUKAN = "Tidak ditentukan"

_WIB = ZoneInfo("Asia/Jakarta")
_BULAN = (
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
)


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str = ""
    tags: dict[str, str] = field(default_factory=dict)


# ── Formatting helpers ─────────────────────────────────────────────────


def format_date_id(value) -> str | None:
    """id-ID short date (d/m/yyyy), None when the value is not a date."""
    d = to_date(value)
    if d is None:
        return None
    return f"{d.day}/{d.month}/{d.year}"


def format_timestamp_wib(now: datetime) -> str:
    local = now.astimezone(_WIB)
    return f"{local.day} {_BULAN[local.month - 1]} {local.year} {local:%H.%M.%S} WIB"


def _field(value, placeholder: str) -> str:
    return escape(str(value)) if value else placeholder


def _record_fields(record, placeholder: str) -> dict[str, str]:
    return {
        "material": escape(record.material or ""),
        "supplier": _field(record.supplier_name, placeholder),
        "part_number": _field(record.part_number_name, placeholder),
        "part_name": _field(record.part_name_name, placeholder),
        "document_type": _field(record.document_type_name, placeholder),
        "report_date": format_date_id(record.tanggal_report) or placeholder,
        "expire_date": format_date_id(record.tanggal_expire) or placeholder,
    }


def _tag_value(value: str) -> str:
    return "".join(ch if ch.isascii() and ch.isalnum() else "_" for ch in value)


def _info_rows(fields: dict[str, str], labels: dict[str, str]) -> str:
    rows = []
    for key, label in labels.items():
        style = "color:#dc2626; font-weight:700;" if key == "expire_date" else "color:#111827;"
        rows.append(
            f'<tr><td style="padding:10px 16px; background:#f9fafb; color:#374151; font-weight:600; '
            f'width:35%; border-bottom:1px solid #e5e7eb;">{label}</td>'
            f'<td style="padding:10px 16px; {style} border-bottom:1px solid #e5e7eb;">{fields[key]}</td></tr>'
        )
    return "\n".join(rows)


def _document(title: str, header: str, subheader: str, content: str, footer: str) -> str:
    return f"""\
<!DOCTYPE html>
<html lang="id">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="margin:0; padding:0; background-color:#f5f5f5; font-family:Arial,Helvetica,sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="background-color:#f5f5f5;">
    <tr><td align="center" style="padding:24px 16px;">
      <table role="presentation" width="640" cellpadding="0" cellspacing="0"
             style="background-color:#ffffff; border-radius:8px; box-shadow:0 4px 6px rgba(0,0,0,0.1);">
        <tr><td style="background-color:#dc2626; padding:28px 24px; text-align:center; border-radius:8px 8px 0 0;">
          <h1 style="margin:0; color:#ffffff; font-size:24px;">{header}</h1>
          <p style="margin:8px 0 0; color:#ffffff; font-size:16px;">{subheader}</p>
        </td></tr>
        <tr><td style="padding:28px 24px;">
{content}
        </td></tr>
        <tr><td style="background-color:#1f2937; color:#d1d5db; padding:20px; text-align:center;
                       border-radius:0 0 8px 8px; font-size:13px;">
{footer}
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


# ── Daily: one record per email ────────────────────────────────────────

_EN_LABELS = {
    "material": "Material",
    "supplier": "Supplier",
    "part_number": "Part Number",
    "part_name": "Part Name",
    "document_type": "Document Type",
    "report_date": "Report Date",
    "expire_date": "Expire Date",
}


def render_expiry_email(record, days_until_expiry: int) -> RenderedEmail:
    fields = _record_fields(record, NOT_SPECIFIED)
    subject = f"URGENT: Mill Sheet Expiring in {days_until_expiry} day(s) - {record.material}"

    content = f"""\
          <div style="background:#fef2f2; border-left:4px solid #dc2626; padding:16px; margin:0 0 24px;">
            <strong style="color:#dc2626;">Warning:</strong> The following mill sheet will expire in
            <span style="display:inline-block; padding:4px 12px; background:#dc2626; color:#ffffff;
                         border-radius:20px; font-weight:600;">{days_until_expiry} day(s)</span>
          </div>
          <h3 style="margin:0 0 16px; color:#1f2937;">Mill Sheet Details:</h3>
          <table role="presentation" width="100%" cellpadding="0" cellspacing="0"
                 style="border:1px solid #e5e7eb; border-collapse:collapse;">
{_info_rows(fields, _EN_LABELS)}
          </table>
          <div style="background:#f0f9ff; padding:20px; margin:24px 0 0; border:1px solid #bae6fd; border-radius:6px;">
            <h4 style="margin:0 0 12px; color:#0c4a6e;">Required Actions:</h4>
            <ul style="margin:0; padding-left:20px; color:#374151;">
              <li>Review and renew the mill sheet certificate</li>
              <li>Contact supplier for updated documentation</li>
              <li>Update system records with new expiry date</li>
              <li>Verify material compliance status</li>
              <li>Upload new document to the system</li>
            </ul>
          </div>"""

    footer = """\
          <p style="margin:0;"><strong>Mill Sheet Management System</strong></p>
          <p style="margin:4px 0 0;"><small>This is an automated reminder. Please do not reply to this email.</small></p>"""

    html = _document("Mill Sheet Expiry Reminder", "Mill Sheet Expiry Alert", "Immediate attention required", content, footer)

    text = (
        f"Mill Sheet Expiry Alert\n"
        f"{'=' * 23}\n\n"
        f"The following mill sheet will expire in {days_until_expiry} day(s).\n\n"
        f"  Material:      {record.material}\n"
        f"  Supplier:      {record.supplier_name or NOT_SPECIFIED}\n"
        f"  Part Number:   {record.part_number_name or NOT_SPECIFIED}\n"
        f"  Part Name:     {record.part_name_name or NOT_SPECIFIED}\n"
        f"  Document Type: {record.document_type_name or NOT_SPECIFIED}\n"
        f"  Report Date:   {format_date_id(record.tanggal_report) or NOT_SPECIFIED}\n"
        f"  Expire Date:   {format_date_id(record.tanggal_expire) or NOT_SPECIFIED}\n"
    )

    tags = {
        "category": "mill-sheet-reminder",
        "material": _tag_value(record.material or ""),
        "days_until_expiry": str(days_until_expiry),
    }
    return RenderedEmail(subject=subject, html=html, text=text, tags=tags)


# ── Daily: consolidated digest ─────────────────────────────────────────

_ID_LABELS = {
    "supplier": "Supplier",
    "part_number": "Part Number",
    "part_name": "Part Name",
    "document_type": "Jenis Dokumen",
    "report_date": "Tanggal Laporan",
    "expire_date": "Tanggal Kedaluwarsa",
}

_BADGE_COLORS = {1: "#dc2626", 2: "#f59e0b"}


def render_consolidated_email(records, now: datetime, sender: str = "") -> RenderedEmail:
    """Single digest listing every expiring record, most urgent first."""
    with_days = [(days_until(to_date(r.tanggal_expire), now), r) for r in records if to_date(r.tanggal_expire)]
    with_days.sort(key=lambda pair: pair[0])

    counts = {n: sum(1 for days, _ in with_days if days == n) for n in (1, 2, 3)}
    total = len(records)

    cards = []
    for days, record in with_days:
        fields = _record_fields(record, TIDAK_DITENTUKAN)
        color = _BADGE_COLORS.get(days, "#3b82f6")
        cards.append(f"""\
          <div style="margin:20px 0; border:1px solid #e5e7eb; border-radius:12px; overflow:hidden;">
            <div style="background:#f3f4f6; padding:14px 20px; border-bottom:1px solid #e5e7eb;">
              <strong style="font-size:18px; color:#1f2937;">{fields["material"]}</strong>
              <span style="float:right; padding:4px 12px; background:{color}; color:#ffffff;
                           border-radius:20px; font-size:13px;">{days} hari lagi</span>
            </div>
            <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="border-collapse:collapse;">
{_info_rows(fields, _ID_LABELS)}
            </table>
          </div>""")

    summary = "".join(
        f'<td align="center" style="padding:12px; background:#ffffff;">'
        f'<div style="font-size:24px; font-weight:700; color:{_BADGE_COLORS.get(n, "#3b82f6")};">{counts[n]}</div>'
        f"<div>{label}</div></td>"
        for n, label in ((1, "Besok"), (2, "2 Hari"), (3, "3 Hari"))
    )

    content = f"""\
          <div style="background:#fef2f2; border-left:6px solid #dc2626; padding:20px; margin:0 0 24px;">
            <strong style="color:#dc2626;">Peringatan Kritis:</strong> Anda memiliki <strong>{total} dokumen</strong>
            yang akan kedaluwarsa dalam 3 hari ke depan. Diperlukan tindakan segera untuk menjaga kepatuhan.
          </div>
          <div style="background:#f0f9ff; padding:20px; border:1px solid #bae6fd; border-radius:8px;">
            <h4 style="margin:0 0 12px; color:#0c4a6e;">Ringkasan Kedaluwarsa</h4>
            <table role="presentation" width="100%" cellpadding="0" cellspacing="8"><tr>{summary}</tr></table>
          </div>
          <h3 style="margin:28px 0 12px; color:#1f2937;">Detail Dokumen ({total})</h3>
{"".join(cards)}"""

    footer = f"""\
          <p style="margin:0;"><strong>Sistem Manajemen Portal Dokumen</strong></p>
          <p style="margin:4px 0 0;"><small>Email dikirim dari: {escape(sender)}. Mohon untuk tidak membalas email ini.</small></p>
          <p style="margin:4px 0 0;"><small>Dibuat pada {format_timestamp_wib(now)}</small></p>"""

    html = _document(
        f"Pemberitahuan Kedaluwarsa Dokumen - {total} Material",
        "Peringatan Kedaluwarsa Dokumen",
        f"{total} Dokumen Memerlukan Perhatian Segera",
        content,
        footer,
    )

    lines = [f"- {r.material}: {days} hari lagi ({format_date_id(r.tanggal_expire)})" for days, r in with_days]
    text = f"Peringatan Kedaluwarsa Dokumen\n\n{total} dokumen akan kedaluwarsa dalam 3 hari:\n" + "\n".join(lines) + "\n"

    return RenderedEmail(
        subject=f"PENTING: {total} Dokumen Akan Segera Kedaluwarsa",
        html=html,
        text=text,
        tags={"category": "mill-sheet-digest"},
    )


# ── Monthly: one email per owner ───────────────────────────────────────

_MONTH_SECTIONS = (
    (MilestoneBucket.THREE_MONTHS, "3 Bulan", "#3b82f6"),
    (MilestoneBucket.TWO_MONTHS, "2 Bulan", "#f59e0b"),
    (MilestoneBucket.ONE_MONTH, "1 Bulan", "#dc2626"),
)


def render_monthly_email(group: RecipientGroup) -> RenderedEmail:
    total = len(group.records)
    greeting = escape(group.name) if group.name else escape(group.email)

    summary = "".join(
        f'<td align="center" style="padding:12px; background:#ffffff;">'
        f'<div style="font-size:24px; font-weight:700; color:{color};">{len(group.buckets.get(bucket))}</div>'
        f"<div>{label}</div></td>"
        for bucket, label, color in _MONTH_SECTIONS
    )

    rows = []
    for bucket, label, color in _MONTH_SECTIONS:
        for record in group.buckets.get(bucket):
            fields = _record_fields(record, TIDAK_DITENTUKAN)
            rows.append(
                f"<tr>"
                f'<td style="padding:8px; border-bottom:1px solid #e5e7eb;"><strong>{fields["material"]}</strong></td>'
                f'<td style="padding:8px; border-bottom:1px solid #e5e7eb;">{fields["supplier"]}</td>'
                f'<td style="padding:8px; border-bottom:1px solid #e5e7eb;">{fields["part_number"]}</td>'
                f'<td style="padding:8px; border-bottom:1px solid #e5e7eb;">{fields["part_name"]}</td>'
                f'<td style="padding:8px; border-bottom:1px solid #e5e7eb;">{fields["document_type"]}</td>'
                f'<td style="padding:8px; border-bottom:1px solid #e5e7eb;">{fields["report_date"]}</td>'
                f'<td style="padding:8px; border-bottom:1px solid #e5e7eb; color:#dc2626; font-weight:700;">'
                f'{fields["expire_date"]}</td>'
                f'<td style="padding:8px; border-bottom:1px solid #e5e7eb;">'
                f'<span style="padding:2px 10px; background:{color}; color:#ffffff; border-radius:12px; font-size:12px;">'
                f"{bucket.months} bulan dari laporan</span></td>"
                f"</tr>"
            )

    header_cells = "".join(
        f'<th align="left" style="padding:8px; background:#f3f4f6; font-size:12px;">{h}</th>'
        for h in ("Material", "Supplier", "Part Number", "Part Name", "Jenis Dokumen",
                  "Tanggal Laporan", "Tanggal Kedaluwarsa", "Milestone")
    )

    content = f"""\
          <p style="margin:0 0 16px; color:#374151;">Halo {greeting},</p>
          <p style="margin:0 0 16px; color:#374151;">
            Anda memiliki <strong>{total} dokumen</strong> yang mencapai milestone masa berlaku.
            Mohon siapkan pembaruan dokumen sebelum tanggal kedaluwarsa.
          </p>
          <div style="background:#f0f9ff; padding:20px; border:1px solid #bae6fd; border-radius:8px;">
            <h4 style="margin:0 0 12px; color:#0c4a6e;">Ringkasan Milestone</h4>
            <table role="presentation" width="100%" cellpadding="0" cellspacing="8"><tr>{summary}</tr></table>
          </div>
          <table role="presentation" width="100%" cellpadding="0" cellspacing="0"
                 style="margin-top:24px; border:1px solid #e5e7eb; border-collapse:collapse; font-size:13px;">
            <tr>{header_cells}</tr>
{chr(10).join(rows)}
          </table>"""

    footer = """\
          <p style="margin:0;"><strong>Sistem Manajemen Portal Dokumen</strong></p>
          <p style="margin:4px 0 0;"><small>Pengingat bulanan otomatis. Mohon untuk tidak membalas email ini.</small></p>"""

    html = _document(
        f"Pengingat Milestone Dokumen - {total} Material",
        "Pengingat Milestone Dokumen",
        f"{total} Dokumen Mendekati Masa Kedaluwarsa",
        content,
        footer,
    )

    text_lines = [
        f"- {r.material} ({bucket.months} bulan dari laporan), kedaluwarsa {format_date_id(r.tanggal_expire)}"
        for bucket, _, _ in _MONTH_SECTIONS
        for r in group.buckets.get(bucket)
    ]
    text = (
        f"Pengingat Milestone Dokumen\n\nHalo {group.name or group.email},\n\n"
        f"Anda memiliki {total} dokumen yang mencapai milestone masa berlaku:\n" + "\n".join(text_lines) + "\n"
    )

    return RenderedEmail(
        subject=f"Pengingat: {total} Dokumen Mendekati Masa Kedaluwarsa",
        html=html,
        text=text,
        tags={"category": "mill-sheet-monthly"},
    )


# ── Debug ──────────────────────────────────────────────────────────────


def render_test_email(settings: Settings, to: str, now: datetime) -> RenderedEmail:
    html = f"""\
<h2>Test Email Berhasil</h2>
<p><strong>From:</strong> {escape(settings.smtp_from)}</p>
<p><strong>To:</strong> {escape(to)}</p>
<p><strong>Time:</strong> {now.isoformat()}</p>
<p><strong>SMTP User:</strong> {escape(settings.smtp_user)}</p>"""
    return RenderedEmail(
        subject="Test Email - Sistem Pengingat Harian",
        html=html,
        text=f"Test email sent at {now.isoformat()}\n",
        tags={"category": "test"},
    )
