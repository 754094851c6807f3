"""Initial schema

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

DEFAULT_CATEGORIES = [
    {"id": 1, "name": "Bar", "icon": "bar", "color": "#e91e63"},
    {"id": 2, "name": "GoGo Bar", "icon": "gogo", "color": "#9c27b0"},
    {"id": 3, "name": "Nightclub", "icon": "club", "color": "#3f51b5"},
    {"id": 4, "name": "Massage Salon", "icon": "massage", "color": "#009688"},
    {"id": 5, "name": "Restaurant", "icon": "restaurant", "color": "#ff9800"},
]


def _uuid_col(name: str = "id", **kw):
    return sa.Column(name, sa.String(length=36), primary_key=True, **kw)


def upgrade() -> None:
    conn = op.get_bind()
    dialect = conn.dialect.name if conn is not None else "sqlite"
    true_def = sa.text("TRUE") if dialect == "postgresql" else sa.text("1")
    false_def = sa.text("FALSE") if dialect == "postgresql" else sa.text("0")
    op.create_table(
        "users",
        _uuid_col(),
        sa.Column("email", sa.String(length=200), nullable=False, unique=True),
        sa.Column("pseudonym", sa.String(length=100), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("account_type", sa.String(length=30), nullable=False, server_default="regular"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=true_def),
        sa.Column("refresh_token_jti", sa.String(length=64)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    categories = op.create_table(
        "establishment_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("icon", sa.String(length=50)),
        sa.Column("color", sa.String(length=20)),
    )
    op.create_table(
        "establishments",
        _uuid_col(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("address", sa.String(length=300)),
        sa.Column("description", sa.Text()),
        sa.Column("phone", sa.String(length=50)),
        sa.Column("website", sa.String(length=300)),
        sa.Column("logo_url", sa.String(length=500)),
        sa.Column("opening_hours", sa.JSON()),
        sa.Column("services", sa.JSON()),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("establishment_categories.id")),
        sa.Column("zone", sa.String(length=50)),
        sa.Column("grid_row", sa.Integer()),
        sa.Column("grid_col", sa.Integer()),
        sa.Column("location", sa.String(length=200)),
        sa.Column("ladydrink", sa.String(length=50)),
        sa.Column("barfine", sa.String(length=50)),
        sa.Column("rooms", sa.String(length=50)),
        sa.Column("pricing", sa.JSON()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("users.id")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "consumable_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("category", sa.String(length=40), nullable=False),
        sa.Column("icon", sa.String(length=50)),
        sa.Column("default_price", sa.Float()),
    )
    op.create_table(
        "establishment_consumables",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("establishment_id", sa.String(length=36), sa.ForeignKey("establishments.id"), nullable=False),
        sa.Column("consumable_id", sa.Integer(), sa.ForeignKey("consumable_templates.id"), nullable=False),
        sa.Column("price", sa.Float()),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=true_def),
    )
    op.create_table(
        "employees",
        _uuid_col(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("nickname", sa.String(length=120)),
        sa.Column("age", sa.Integer()),
        sa.Column("sex", sa.String(length=20), nullable=False),
        sa.Column("nationality", sa.JSON()),
        sa.Column("description", sa.Text()),
        sa.Column("photos", sa.JSON()),
        sa.Column("social_media", sa.JSON()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=false_def),
        sa.Column("is_freelance", sa.Boolean(), nullable=False, server_default=false_def),
        sa.Column("vip_expires_at", sa.DateTime()),
        sa.Column("current_establishment_id", sa.String(length=36), sa.ForeignKey("establishments.id")),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("users.id")),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id")),
        sa.Column("self_removal_requested", sa.Boolean(), nullable=False, server_default=false_def),
        sa.Column("self_removal_info", sa.Text()),
        sa.Column("self_removal_requested_at", sa.DateTime()),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=false_def),
        sa.Column("hidden_by", sa.String(length=36), sa.ForeignKey("users.id")),
        sa.Column("hidden_at", sa.DateTime()),
        sa.Column("hide_reason", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "employment_history",
        _uuid_col(),
        sa.Column("employee_id", sa.String(length=36), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("establishment_id", sa.String(length=36), sa.ForeignKey("establishments.id"), nullable=False),
        sa.Column("position", sa.String(length=80)),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date()),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=true_def),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("users.id")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "establishment_owners",
        _uuid_col(),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("establishment_id", sa.String(length=36), sa.ForeignKey("establishments.id"), nullable=False),
        sa.Column("owner_role", sa.String(length=20), nullable=False, server_default="owner"),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("assigned_by", sa.String(length=36), sa.ForeignKey("users.id")),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "establishment_id", name="uq_owner_user_establishment"),
    )
    op.create_table(
        "establishment_ownership_requests",
        _uuid_col(),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("establishment_id", sa.String(length=36), sa.ForeignKey("establishments.id"), nullable=False),
        sa.Column("documents_urls", sa.JSON(), nullable=False),
        sa.Column("verification_code", sa.String(length=50)),
        sa.Column("request_message", sa.Text()),
        sa.Column("contact_me", sa.Boolean(), nullable=False, server_default=false_def),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("admin_notes", sa.Text()),
        sa.Column("reviewed_by", sa.String(length=36), sa.ForeignKey("users.id")),
        sa.Column("reviewed_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "comments",
        _uuid_col(),
        sa.Column("employee_id", sa.String(length=36), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("rating", sa.Integer()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "reports",
        _uuid_col(),
        sa.Column("comment_id", sa.String(length=36), sa.ForeignKey("comments.id"), nullable=False),
        sa.Column("reported_by", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("reviewed_by", sa.String(length=36), sa.ForeignKey("users.id")),
        sa.Column("reviewed_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "moderation_queue",
        _uuid_col(),
        sa.Column("item_type", sa.String(length=20), nullable=False),
        sa.Column("item_id", sa.String(length=36), nullable=False),
        sa.Column("submitted_by", sa.String(length=36), sa.ForeignKey("users.id")),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("moderator_id", sa.String(length=36), sa.ForeignKey("users.id")),
        sa.Column("moderator_notes", sa.Text()),
        sa.Column("reviewed_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "notifications",
        _uuid_col(),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=300)),
        sa.Column("related_entity_type", sa.String(length=30)),
        sa.Column("related_entity_id", sa.String(length=36)),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=false_def),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "xp_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("xp_amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=50), nullable=False),
        sa.Column("entity_type", sa.String(length=30)),
        sa.Column("entity_id", sa.String(length=36)),
        sa.Column("description", sa.String(length=300)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "user_points",
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("total_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("monthly_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "employee_existence_votes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("employee_id", sa.String(length=36), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("vote_type", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("employee_id", "user_id", name="uq_vote_employee_user"),
    )
    op.create_index("ix_establishments_status", "establishments", ["status"])
    op.create_index("ix_employees_status_hidden", "employees", ["status", "is_hidden"])
    op.create_index("ix_employment_employee_current", "employment_history", ["employee_id", "is_current"])
    op.create_index("ix_moderation_queue_status_type", "moderation_queue", ["status", "item_type"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])
    op.bulk_insert(categories, DEFAULT_CATEGORIES)


def downgrade() -> None:
    op.drop_index("ix_notifications_user_read", table_name="notifications")
    op.drop_index("ix_moderation_queue_status_type", table_name="moderation_queue")
    op.drop_index("ix_employment_employee_current", table_name="employment_history")
    op.drop_index("ix_employees_status_hidden", table_name="employees")
    op.drop_index("ix_establishments_status", table_name="establishments")
    op.drop_table("employee_existence_votes")
    op.drop_table("user_points")
    op.drop_table("xp_transactions")
    op.drop_table("notifications")
    op.drop_table("moderation_queue")
    op.drop_table("reports")
    op.drop_table("comments")
    op.drop_table("establishment_ownership_requests")
    op.drop_table("establishment_owners")
    op.drop_table("employment_history")
    op.drop_table("employees")
    op.drop_table("establishment_consumables")
    op.drop_table("consumable_templates")
    op.drop_table("establishments")
    op.drop_table("establishment_categories")
    op.drop_table("users")
