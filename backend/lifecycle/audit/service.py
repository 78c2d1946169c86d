"""Audit log service."""

import contextlib
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from ..rate_limit import client_ip
from .models import AuditLog


def record_audit(
    db: Session,
    action: str,
    detail: str = "",
    user_id: UUID | None = None,
    ip_address: str = "",
) -> None:
    """Add an audit entry to the current transaction; committed with the change it describes."""
    db.add(
        AuditLog(
            user_id=user_id,
            action=action,
            detail=detail,
            ip_address=ip_address,
        )
    )


def audit(db: Session, request: Request, action: str, detail: str = "", user_id: UUID | None = None) -> None:
    """Write an audit log entry for an HTTP request."""
    if user_id is None:
        uid = request.session.get("user_id")
        if uid:
            with contextlib.suppress(ValueError, AttributeError):
                user_id = UUID(uid)

    record_audit(db, action, detail, user_id=user_id, ip_address=client_ip(request))
