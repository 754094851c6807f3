"""SQLAlchemy models for the venue directory (no relationships wired; services join explicitly)."""

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, validates

MODERATION_STATUSES = ("pending", "approved", "rejected")
REPORT_STATUSES = ("pending", "dismissed", "resolved")
USER_ROLES = ("user", "moderator", "admin")
ACCOUNT_TYPES = ("regular", "employee", "establishment_owner")
OWNER_ROLES = ("owner", "manager")
VOTE_TYPES = ("exists", "not_exists")


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class _ModeratedMixin:
    """Confines `status` to the moderation enum before anything reaches the DB."""

    @validates("status")
    def _validate_status(self, _key: str, value: str) -> str:
        if value not in MODERATION_STATUSES:
            raise ValueError(f"invalid status {value!r}")
        return value


# --- Users ---
class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(200), unique=True)
    pseudonym: Mapped[str] = mapped_column(String(100), unique=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default="user")  # user, moderator, admin
    account_type: Mapped[str] = mapped_column(String(30), default="regular")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    refresh_token_jti: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


# --- Establishments ---
class EstablishmentCategory(Base):
    __tablename__ = "establishment_categories"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)


class Establishment(_ModeratedMixin, Base):
    __tablename__ = "establishments"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200))
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    website: Mapped[str | None] = mapped_column(String(300), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    opening_hours: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    services: Mapped[list | None] = mapped_column(JSON, nullable=True)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("establishment_categories.id"), nullable=True)
    zone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    grid_row: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grid_col: Mapped[int | None] = mapped_column(Integer, nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    ladydrink: Mapped[str | None] = mapped_column(String(50), nullable=True)
    barfine: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rooms: Mapped[str | None] = mapped_column(String(50), nullable=True)
    pricing: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    created_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (Index("ix_establishments_status", "status"),)


class ConsumableTemplate(Base):
    __tablename__ = "consumable_templates"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    category: Mapped[str] = mapped_column(String(40))  # beer, shot, cocktail, soft ...
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    default_price: Mapped[float | None] = mapped_column(Float, nullable=True)


class EstablishmentConsumable(Base):
    __tablename__ = "establishment_consumables"
    id: Mapped[int] = mapped_column(primary_key=True)
    establishment_id: Mapped[str] = mapped_column(ForeignKey("establishments.id"))
    consumable_id: Mapped[int] = mapped_column(ForeignKey("consumable_templates.id"))
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)


# --- Employees ---
class Employee(_ModeratedMixin, Base):
    __tablename__ = "employees"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(120))
    nickname: Mapped[str | None] = mapped_column(String(120), nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sex: Mapped[str] = mapped_column(String(20))
    nationality: Mapped[list | None] = mapped_column(JSON, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    photos: Mapped[list | None] = mapped_column(JSON, nullable=True)
    social_media: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    is_freelance: Mapped[bool] = mapped_column(Boolean, default=False)
    vip_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    current_establishment_id: Mapped[str | None] = mapped_column(ForeignKey("establishments.id"), nullable=True)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    user_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)  # linked account
    is_self_profile: Mapped[bool] = mapped_column(Boolean, default=False)
    self_removal_requested: Mapped[bool] = mapped_column(Boolean, default=False)
    self_removal_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    self_removal_requested_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False)
    hidden_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    hidden_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    hide_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (
        Index("ix_employees_status_hidden", "status", "is_hidden"),
        Index("ix_employees_user_id", "user_id"),
    )


class EmploymentHistory(Base):
    __tablename__ = "employment_history"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    employee_id: Mapped[str] = mapped_column(ForeignKey("employees.id"))
    establishment_id: Mapped[str] = mapped_column(ForeignKey("establishments.id"))
    position: Mapped[str | None] = mapped_column(String(80), nullable=True)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (Index("ix_employment_employee_current", "employee_id", "is_current"),)


# --- Ownership ---
class EstablishmentOwner(Base):
    __tablename__ = "establishment_owners"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    establishment_id: Mapped[str] = mapped_column(ForeignKey("establishments.id"))
    owner_role: Mapped[str] = mapped_column(String(20), default="owner")  # owner | manager
    permissions: Mapped[dict] = mapped_column(JSON, default=dict)
    assigned_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (UniqueConstraint("user_id", "establishment_id", name="uq_owner_user_establishment"),)


class OwnershipRequest(_ModeratedMixin, Base):
    __tablename__ = "establishment_ownership_requests"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    establishment_id: Mapped[str] = mapped_column(ForeignKey("establishments.id"))
    documents_urls: Mapped[list] = mapped_column(JSON, default=list)
    verification_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    request_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact_me: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


# --- Comments & reports ---
class Comment(_ModeratedMixin, Base):
    __tablename__ = "comments"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    employee_id: Mapped[str] = mapped_column(ForeignKey("employees.id"))
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    content: Mapped[str] = mapped_column(Text)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1..5
    status: Mapped[str] = mapped_column(String(20), default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class Report(Base):
    __tablename__ = "reports"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    comment_id: Mapped[str] = mapped_column(ForeignKey("comments.id"))
    reported_by: Mapped[str] = mapped_column(ForeignKey("users.id"))
    reason: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending | dismissed | resolved
    reviewed_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    @validates("status")
    def _validate_status(self, _key: str, value: str) -> str:
        if value not in REPORT_STATUSES:
            raise ValueError(f"invalid report status {value!r}")
        return value


class ModerationQueueItem(_ModeratedMixin, Base):
    __tablename__ = "moderation_queue"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    item_type: Mapped[str] = mapped_column(String(20))  # employee | establishment | comment | employee_claim
    item_id: Mapped[str] = mapped_column(String(36))
    submitted_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    moderator_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    request_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    verification_proof: Mapped[list | None] = mapped_column(JSON, nullable=True)
    moderator_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (Index("ix_moderation_queue_status_type", "status", "item_type"),)


# --- Notifications & gamification ---
class Notification(Base):
    __tablename__ = "notifications"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    type: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(200))
    message: Mapped[str] = mapped_column(Text)
    link: Mapped[str | None] = mapped_column(String(300), nullable=True)
    related_entity_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    related_entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)


class XPTransaction(Base):
    __tablename__ = "xp_transactions"
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    xp_amount: Mapped[int] = mapped_column(Integer)
    reason: Mapped[str] = mapped_column(String(50))
    entity_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    description: Mapped[str | None] = mapped_column(String(300), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class UserPoints(Base):
    __tablename__ = "user_points"
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), primary_key=True)
    total_xp: Mapped[int] = mapped_column(Integer, default=0)
    monthly_xp: Mapped[int] = mapped_column(Integer, default=0)
    current_level: Mapped[int] = mapped_column(Integer, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class ExistenceVote(Base):
    __tablename__ = "employee_existence_votes"
    id: Mapped[int] = mapped_column(primary_key=True)
    employee_id: Mapped[str] = mapped_column(ForeignKey("employees.id"))
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    vote_type: Mapped[str] = mapped_column(String(20))  # exists | not_exists
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (UniqueConstraint("employee_id", "user_id", name="uq_vote_employee_user"),)
