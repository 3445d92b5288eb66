from typing import List, Optional
from datetime import datetime
import uuid
from sqlalchemy import (
    String,
    Boolean,
    Integer,
    Text,
    ForeignKey,
    Enum,
    Index,
    Table,
    Column,
    func,
    DateTime,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import enum


class Base(DeclarativeBase):
    pass


def generate_uuid() -> str:
    return str(uuid.uuid4())


# Enums
class UserRole(enum.Enum):
    ADMIN = "ADMIN"
    SENDER = "SENDER"


class NotificationStatus(enum.Enum):
    PENDING = "PENDING"
    SCHEDULED = "SCHEDULED"
    SENT = "SENT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


# Association tables
subscriber_groups = Table(
    "subscriber_groups",
    Base.metadata,
    Column(
        "subscriber_id",
        String(36),
        ForeignKey("subscribers.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "group_id",
        String(36),
        ForeignKey("groups.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

notification_log_groups = Table(
    "notification_log_groups",
    Base.metadata,
    Column(
        "notification_log_id",
        String(36),
        ForeignKey("notification_logs.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "group_id",
        String(36),
        ForeignKey("groups.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


# Models
class User(Base, AuditMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False
    )  # RFC 5321 max length
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), default=UserRole.SENDER, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    notification_logs: Mapped[List["NotificationLog"]] = relationship(
        back_populates="created_by"
    )

    # Constraints
    __table_args__ = (
        Index("idx_users_email", "email"),
        Index("idx_users_role_active", "role", "is_active"),
    )


class Subscriber(Base, AuditMixin):
    __tablename__ = "subscribers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    # Provider-issued player id, the natural merge key for reconciliation
    external_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    contact: Mapped[Optional[str]] = mapped_column(String(32))

    # Relationships
    groups: Mapped[List["Group"]] = relationship(
        secondary=subscriber_groups, back_populates="subscribers"
    )

    # Constraints
    __table_args__ = (
        Index("idx_subscribers_contact", "contact"),
        Index("idx_subscribers_created_at", "created_at"),
    )


class Group(Base, AuditMixin):
    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    subscribers: Mapped[List["Subscriber"]] = relationship(
        secondary=subscriber_groups, back_populates="groups"
    )
    notification_logs: Mapped[List["NotificationLog"]] = relationship(
        secondary=notification_log_groups, back_populates="groups"
    )

    # Constraints
    __table_args__ = (Index("idx_groups_name", "name"),)


class NotificationLog(Base, AuditMixin):
    __tablename__ = "notification_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[Optional[str]] = mapped_column(String(2048))
    image_url: Mapped[Optional[str]] = mapped_column(String(2048))
    status: Mapped[NotificationStatus] = mapped_column(
        Enum(NotificationStatus), default=NotificationStatus.PENDING, nullable=False
    )
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    provider_notification_id: Mapped[Optional[str]] = mapped_column(String(255))
    delivered: Mapped[Optional[int]] = mapped_column(Integer)
    failed: Mapped[Optional[int]] = mapped_column(Integer)
    created_by_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )

    # Relationships
    created_by: Mapped[Optional["User"]] = relationship(
        back_populates="notification_logs"
    )
    groups: Mapped[List["Group"]] = relationship(
        secondary=notification_log_groups, back_populates="notification_logs"
    )

    # Constraints
    __table_args__ = (
        Index("idx_notification_logs_status", "status"),
        Index("idx_notification_logs_created_at", "created_at"),
        Index("idx_notification_logs_created_by", "created_by_id"),
    )
