"""Create applications table

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create applications table, one row per reference number"""
    op.create_table(
        "applications",
        sa.Column("reference_number", sa.String(length=32), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("programme", sa.String(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("reference_number"),
    )
    op.create_index(op.f("ix_applications_email"), "applications", ["email"], unique=False)
    op.create_index(op.f("ix_applications_programme"), "applications", ["programme"], unique=False)
    op.create_index(op.f("ix_applications_submitted_at"), "applications", ["submitted_at"], unique=False)
    op.create_index(
        "ix_applications_programme_submitted",
        "applications",
        ["programme", "submitted_at"],
        unique=False,
    )


def downgrade() -> None:
    """Drop applications table"""
    op.drop_index("ix_applications_programme_submitted", table_name="applications")
    op.drop_index(op.f("ix_applications_submitted_at"), table_name="applications")
    op.drop_index(op.f("ix_applications_programme"), table_name="applications")
    op.drop_index(op.f("ix_applications_email"), table_name="applications")
    op.drop_table("applications")
