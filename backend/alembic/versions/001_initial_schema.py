"""Initial schema: users, reference data, material_control, reminder audit logs.

Revision ID: 001
Revises: None
Create Date: 2025-06-02
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=True),
        sa.Column("nama", sa.String(255), server_default=""),
        sa.Column("role", sa.String(20), server_default="user"),
        sa.Column("email_verified", sa.Boolean(), server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])

    for table, pk in (
        ("supplier", "id_supplier"),
        ("part_name", "id_part_name"),
        ("part_number", "id_part_number"),
        ("jenis_dokumen", "id_jenis_dokumen"),
    ):
        op.create_table(
            table,
            sa.Column(pk, sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("nama", sa.String(255), nullable=False),
        )

    op.create_table(
        "material_control",
        sa.Column("id_material_control", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("material", sa.String(255), nullable=False),
        sa.Column("tanggal_report", sa.Date(), nullable=True),
        sa.Column("tanggal_expire", sa.Date(), nullable=True),
        sa.Column("status", sa.Boolean(), server_default=sa.true()),
        sa.Column("file_url", sa.String(500), server_default=""),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("id_supplier", sa.Integer(), sa.ForeignKey("supplier.id_supplier", ondelete="SET NULL")),
        sa.Column("id_part_name", sa.Integer(), sa.ForeignKey("part_name.id_part_name", ondelete="SET NULL")),
        sa.Column("id_part_number", sa.Integer(), sa.ForeignKey("part_number.id_part_number", ondelete="SET NULL")),
        sa.Column(
            "id_jenis_dokumen", sa.Integer(), sa.ForeignKey("jenis_dokumen.id_jenis_dokumen", ondelete="SET NULL")
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_material_status_expire", "material_control", ["status", "tanggal_expire"])
    op.create_index("idx_material_user", "material_control", ["user_id"])

    op.create_table(
        "cron_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("job_name", sa.String(100), nullable=False),
        sa.Column("execution_time", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("records_found", sa.Integer(), server_default="0"),
        sa.Column("emails_sent", sa.Integer(), server_default="0"),
        sa.Column("emails_failed", sa.Integer(), server_default="0"),
        sa.Column("result", sa.Text(), server_default=""),
        sa.Column("details", JSONB(), server_default="{}"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_details", sa.Text(), nullable=True),
    )
    op.create_index("ix_cron_logs_job_name", "cron_logs", ["job_name"])
    op.create_index("ix_cron_logs_execution_time", "cron_logs", ["execution_time"])

    op.create_table(
        "email_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("recipients", JSONB(), server_default="[]"),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("records_count", sa.Integer(), server_default="0"),
        sa.Column("emails_sent", sa.Integer(), server_default="0"),
        sa.Column("emails_failed", sa.Integer(), server_default="0"),
        sa.Column("details", JSONB(), server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_email_logs_action", "email_logs", ["action"])
    op.create_index("ix_email_logs_created_at", "email_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("email_logs")
    op.drop_table("cron_logs")
    op.drop_table("material_control")
    for table in ("jenis_dokumen", "part_number", "part_name", "supplier"):
        op.drop_table(table)
    op.drop_table("users")
