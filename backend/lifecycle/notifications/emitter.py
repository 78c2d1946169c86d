"""Create-then-push helpers: the durable write always commits before any live delta."""

import logging
from typing import Any
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.orm import Session

from .live import DeltaPublisher
from .models import Notification, NotificationPriority, NotificationType
from .service import create_notification, get_unread_count

logger = logging.getLogger(__name__)


def publish_unread_count(db: Session, publisher: DeltaPublisher, recipient_id: UUID) -> int:
    """Push the recipient's current unread count, read fresh from the store."""
    unread = get_unread_count(db, recipient_id)
    publisher.push_unread_count(recipient_id, unread)
    return unread


def publish_created(db: Session, publisher: DeltaPublisher, notification: Notification) -> None:
    """Best-effort push of an already committed notification and the new unread count."""
    try:
        publisher.push_notification(notification)
        publish_unread_count(db, publisher, notification.user_id)
    except Exception:
        logger.exception("Live push failed for notification %s", notification.id)


def emit_notification(
    db: Session,
    publisher: DeltaPublisher,
    recipient_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    priority: NotificationPriority = NotificationPriority.MEDIUM,
    metadata: BaseModel | dict[str, Any] | None = None,
    action_url: str | None = None,
) -> Notification:
    notification = create_notification(
        db,
        recipient_id,
        type,
        title,
        message,
        priority=priority,
        metadata=metadata,
        action_url=action_url,
    )
    db.commit()
    publish_created(db, publisher, notification)
    return notification
