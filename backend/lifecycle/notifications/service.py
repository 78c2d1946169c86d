"""Notification store.

Every mutation is scoped to the recipient. The unread count is never stored:
it is recomputed from ``is_read = false`` on each read, so it cannot drift
from the notification rows whatever the interleaving of writers.
"""

import math
from collections.abc import Iterable
from typing import Any
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database.base import utcnow
from .metadata import serialize_metadata
from .models import Notification, NotificationPriority, NotificationType


def create_notification(
    db: Session,
    recipient_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    priority: NotificationPriority = NotificationPriority.MEDIUM,
    metadata: BaseModel | dict[str, Any] | None = None,
    action_url: str | None = None,
) -> Notification:
    """Insert an unread notification. Single creation entrypoint for all collaborators."""
    notification = Notification(
        user_id=recipient_id,
        type=NotificationType(type),
        title=title,
        message=message,
        priority=NotificationPriority(priority),
        metadata_=serialize_metadata(NotificationType(type), metadata),
        action_url=action_url,
        is_read=False,
    )
    db.add(notification)
    db.flush()
    return notification


def get_unread_count(db: Session, recipient_id: UUID) -> int:
    return (
        db.query(func.count(Notification.id))
        .filter(Notification.user_id == recipient_id, Notification.is_read == False)  # noqa: E712
        .scalar()
        or 0
    )


def list_for_recipient(
    db: Session,
    recipient_id: UUID,
    page: int = 1,
    limit: int = 20,
    unread_only: bool = False,
) -> dict:
    """Newest-first page of a recipient's notifications, with totals and a fresh unread count."""
    page = max(page, 1)
    limit = max(min(limit, 100), 1)

    query = db.query(Notification).filter(Notification.user_id == recipient_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712

    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
        },
        "unread_count": get_unread_count(db, recipient_id),
    }


def get_notification(db: Session, notification_id: UUID, recipient_id: UUID) -> Notification | None:
    return (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == recipient_id)
        .first()
    )


def mark_read(db: Session, notification_id: UUID, recipient_id: UUID) -> Notification | None:
    """Mark one notification read. Already-read rows are left untouched (read_at preserved).

    Returns None when the notification doesn't exist or belongs to someone else.
    """
    _mark_unread_rows(db, recipient_id, [notification_id])
    return get_notification(db, notification_id, recipient_id)


def mark_many_read(db: Session, notification_ids: Iterable[UUID], recipient_id: UUID) -> int:
    """Mark the given notifications read. Returns how many actually changed state."""
    ids = list(notification_ids)
    if not ids:
        return 0
    return _mark_unread_rows(db, recipient_id, ids)


def mark_all_read(db: Session, recipient_id: UUID) -> int:
    return _mark_unread_rows(db, recipient_id, None)


def _mark_unread_rows(db: Session, recipient_id: UUID, ids: list[UUID] | None) -> int:
    # The is_read = false guard makes concurrent markers race-free: only one UPDATE flips a row.
    query = db.query(Notification).filter(
        Notification.user_id == recipient_id,
        Notification.is_read == False,  # noqa: E712
    )
    if ids is not None:
        query = query.filter(Notification.id.in_(ids))
    return query.update({Notification.is_read: True, Notification.read_at: utcnow()}, synchronize_session="fetch")


def delete_notification(db: Session, notification_id: UUID, recipient_id: UUID) -> bool:
    deleted = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == recipient_id)
        .delete(synchronize_session="fetch")
    )
    return deleted > 0


def delete_all_notifications(db: Session, recipient_id: UUID) -> int:
    return db.query(Notification).filter(Notification.user_id == recipient_id).delete(synchronize_session="fetch")
