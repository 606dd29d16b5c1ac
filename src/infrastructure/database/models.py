"""SQLAlchemy ORM models."""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from domain.entities.group import utcnow

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class GroupModel(Base):
    """Group record.

    ``members`` and ``requests`` are JSON maps keyed by user ID, read and
    written only through ``infrastructure.database.request_ledger``.
    ``version`` is the optimistic-concurrency token.
    """

    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: uuid4().hex)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(50))
    privacy: Mapped[str] = mapped_column(
        String(20),
        CheckConstraint("privacy IN ('public', 'private', 'restricted')"),
        nullable=False,
        default="public",
    )
    creator_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    admins: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    members: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requests: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )


class UserGroupModel(Base):
    """User-group index row (composite PK on user_id + group_id)."""

    __tablename__ = "user_groups"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    group_id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class RateLimitModel(Base):
    """Last recorded action per rate-limit key (epoch seconds)."""

    __tablename__ = "rate_limits"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    last_action_at: Mapped[float] = mapped_column(Float, nullable=False)


class NotificationModel(Base):
    """In-app notification inbox row, one per recipient."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: uuid4().hex)
    recipient_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    group_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(128), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
