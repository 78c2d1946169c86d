"""Operator fan-out: one logical event delivered to every operator account."""

import logging
from typing import Any

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..accounts.service import get_operator_ids
from ..notifications.emitter import emit_notification
from ..notifications.live import DeltaPublisher
from ..notifications.models import Notification, NotificationPriority, NotificationType

logger = logging.getLogger(__name__)

ADMIN_USERS_URL = "/admin/users"


def notify_admins(
    db: Session,
    publisher: DeltaPublisher,
    type: NotificationType,
    title: str,
    message: str,
    metadata: BaseModel | dict[str, Any] | None = None,
) -> list[Notification]:
    """Create one high-priority notification per operator, then push it live.

    Each recipient is committed on its own: a failure for one operator is
    logged and does not affect the others. No operators is a no-op.
    """
    operator_ids = get_operator_ids(db)
    if not operator_ids:
        logger.warning("No operators found to notify about %s", type)
        return []

    delivered: list[Notification] = []
    for operator_id in operator_ids:
        try:
            notification = emit_notification(
                db,
                publisher,
                operator_id,
                type,
                title,
                message,
                priority=NotificationPriority.HIGH,
                metadata=metadata,
                action_url=ADMIN_USERS_URL,
            )
        except Exception:
            db.rollback()
            logger.exception("Failed to notify operator %s about %s", operator_id, type)
            continue
        delivered.append(notification)

    logger.info("Sent %s notification to %d/%d operator(s)", type, len(delivered), len(operator_ids))
    return delivered
