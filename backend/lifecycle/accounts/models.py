"""Account model: identity, activity, lifecycle state and inactivity markers."""

import enum
import uuid

from sqlalchemy import Boolean, Column, Index, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base, UTCDateTime, utcnow


class UserRole(enum.StrEnum):
    USER = "user"
    OPERATOR = "operator"


class SuspensionReason(enum.StrEnum):
    INACTIVITY = "inactivity"
    MANUAL = "manual"
    POLICY_VIOLATION = "policy_violation"
    ABUSE = "abuse"


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=lambda e: [r.value for r in e]),
        default=UserRole.USER,
        nullable=False,
    )

    # Activity
    last_login_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    # Lifecycle
    is_active = Column(Boolean, default=True, nullable=False)
    suspended_at = Column(UTCDateTime, nullable=True)
    suspension_reason = Column(
        SQLEnum(SuspensionReason, name="suspension_reason", values_callable=lambda e: [r.value for r in e]),
        nullable=True,
    )
    suspension_note = Column(Text, nullable=True)

    # Inactivity markers: set once by the engine, never cleared by it
    inactivity_email_15_days_sent_at = Column(UTCDateTime, nullable=True)
    inactivity_email_25_days_sent_at = Column(UTCDateTime, nullable=True)
    inactivity_email_30_days_sent_at = Column(UTCDateTime, nullable=True)
    deletion_warning_sent_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_active_last_login", "is_active", "last_login_at"),
        Index("idx_users_suspension", "suspension_reason", "suspended_at"),
    )

    @property
    def is_operator(self) -> bool:
        return self.role == UserRole.OPERATOR
