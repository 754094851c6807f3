"""Employee profile claims: self-profile flag and claim metadata on queue items

Revision ID: 0002_employee_claims
Revises: 0001_init
Create Date: 2026-10-19
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_employee_claims"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    conn = op.get_bind()
    dialect = conn.dialect.name if conn is not None else "sqlite"
    false_def = sa.text("false") if dialect == "postgresql" else sa.text("0")
    op.add_column(
        "employees",
        sa.Column("is_self_profile", sa.Boolean(), nullable=False, server_default=false_def),
    )
    op.add_column("moderation_queue", sa.Column("request_metadata", sa.JSON(), nullable=True))
    op.add_column("moderation_queue", sa.Column("verification_proof", sa.JSON(), nullable=True))
    op.create_index("ix_employees_user_id", "employees", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_employees_user_id", table_name="employees")
    op.drop_column("moderation_queue", "verification_proof")
    op.drop_column("moderation_queue", "request_metadata")
    op.drop_column("employees", "is_self_profile")
