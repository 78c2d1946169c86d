"""Audit log model for account and lifecycle events."""

import uuid

from sqlalchemy import Column, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base, UTCDateTime, utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Actor for request events, subject for lifecycle events; null once the account is gone
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), nullable=False, index=True)
    detail = Column(Text, default="")
    ip_address = Column(String(45), default="")
    created_at = Column(UTCDateTime, default=utcnow, index=True)
