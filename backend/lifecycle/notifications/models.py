"""Notification model and its closed type/priority sets."""

import enum
import uuid

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Index, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import JSONB, UUID

from ..database.base import Base, UTCDateTime, utcnow


class NotificationType(enum.StrEnum):
    # Auth & account
    EMAIL_VERIFIED = "email_verified"
    PASSWORD_CHANGED = "password_changed"
    NEW_LOGIN = "new_login"
    # Admin
    NEW_USER_REGISTERED = "new_user_registered"
    USER_INACTIVE_15_DAYS = "user_inactive_15_days"
    USER_INACTIVE_25_DAYS = "user_inactive_25_days"
    USER_DEACTIVATED_30_DAYS = "user_deactivated_30_days"
    USER_DELETION_WARNING = "user_deletion_warning"
    USER_DELETED_365_DAYS = "user_deleted_365_days"
    # General
    SYSTEM_ANNOUNCEMENT = "system_announcement"


class NotificationPriority(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    type = Column(
        SQLEnum(NotificationType, name="notification_type", values_callable=lambda e: [t.value for t in e]),
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(
        SQLEnum(NotificationPriority, name="notification_priority", values_callable=lambda e: [p.value for p in e]),
        default=NotificationPriority.MEDIUM,
        nullable=False,
    )
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    action_url = Column(Text, nullable=True)

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_notifications_user_created", "user_id", "created_at"),
        Index("idx_notifications_user_unread", "user_id", "is_read"),
    )
