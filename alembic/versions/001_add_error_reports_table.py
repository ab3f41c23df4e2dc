"""Add error_reports table.

Revision ID: 001
Revises:
Create Date: 2026-01-31
"""

from typing import Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "error_reports",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("exception_class", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("file", sa.String(1024), nullable=False),
        sa.Column("line", sa.Integer(), nullable=False),
        sa.Column("trace", sa.Text(), nullable=False),
        sa.Column("fingerprint", sa.String(64), nullable=False),
        sa.Column("dedupe_window", sa.Integer(), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("category", sa.String(50), nullable=False, server_default="other"),
        sa.Column("analysis", sa.JSON(), nullable=False),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "fingerprint", "dedupe_window", name="uq_error_reports_fingerprint_window"
        ),
    )
    op.create_index("ix_error_reports_occurred_at", "error_reports", ["occurred_at"])
    op.create_index("ix_error_reports_severity", "error_reports", ["severity"])
    op.create_index("ix_error_reports_category", "error_reports", ["category"])
    op.create_index(
        "ix_error_reports_severity_occurred_at", "error_reports", ["severity", "occurred_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_error_reports_severity_occurred_at", table_name="error_reports")
    op.drop_index("ix_error_reports_category", table_name="error_reports")
    op.drop_index("ix_error_reports_severity", table_name="error_reports")
    op.drop_index("ix_error_reports_occurred_at", table_name="error_reports")
    op.drop_table("error_reports")
