"""Tests for the notification emitter and operator fan-out."""

from unittest.mock import patch

from lifecycle.accounts.models import UserRole
from lifecycle.admin.service import ADMIN_USERS_URL, notify_admins
from lifecycle.notifications.emitter import emit_notification, publish_unread_count
from lifecycle.notifications.metadata import InactivityBatchMetadata
from lifecycle.notifications.models import Notification, NotificationPriority, NotificationType
from lifecycle.notifications.service import create_notification, get_unread_count


class TestEmitter:
    def test_commits_before_push(self, db_session, make_user, publisher):
        user = make_user()

        notification = emit_notification(
            db_session, publisher, user.id, NotificationType.SYSTEM_ANNOUNCEMENT, "Maintenance", "Tonight"
        )
        db_session.rollback()

        assert db_session.query(Notification).filter(Notification.id == notification.id).count() == 1
        assert publisher.for_recipient(user.id, "notification") == [{"id": str(notification.id)}]
        assert publisher.for_recipient(user.id, "unreadCount") == [{"unread_count": 1}]

    def test_push_failure_keeps_notification(self, db_session, make_user, publisher):
        user = make_user()

        with patch.object(publisher, "push_notification", side_effect=RuntimeError("socket gone")):
            emit_notification(db_session, publisher, user.id, NotificationType.SYSTEM_ANNOUNCEMENT, "Hi", "There")

        assert get_unread_count(db_session, user.id) == 1

    def test_publish_unread_count_reads_fresh(self, db_session, make_user, publisher):
        user = make_user()
        create_notification(db_session, user.id, NotificationType.SYSTEM_ANNOUNCEMENT, "a", "b")
        db_session.commit()

        assert publish_unread_count(db_session, publisher, user.id) == 1
        assert publisher.for_recipient(user.id, "unreadCount") == [{"unread_count": 1}]


class TestNotifyAdmins:
    def test_one_notification_per_operator(self, db_session, make_user, publisher):
        ops = [make_user(role=UserRole.OPERATOR) for _ in range(2)]
        regular = make_user()

        created = notify_admins(
            db_session,
            publisher,
            NotificationType.USER_INACTIVE_25_DAYS,
            "25-Day Inactivity Warning",
            "1 user(s)",
            InactivityBatchMetadata(user_count=1, users=["x@example.com"]),
        )

        assert sorted(n.user_id for n in created) == sorted(op.id for op in ops)
        for notification in created:
            assert notification.priority == NotificationPriority.HIGH
            assert notification.action_url == ADMIN_USERS_URL
        assert get_unread_count(db_session, regular.id) == 0
        for op in ops:
            assert publisher.for_recipient(op.id, "unreadCount") == [{"unread_count": 1}]

    def test_no_operators_is_noop(self, db_session, make_user, publisher):
        make_user()

        created = notify_admins(db_session, publisher, NotificationType.SYSTEM_ANNOUNCEMENT, "t", "m")

        assert created == []
        assert db_session.query(Notification).count() == 0
        assert publisher.events == []

    def test_failure_for_one_operator_does_not_affect_others(self, db_session, make_user, publisher):
        broken = make_user(role=UserRole.OPERATOR)
        healthy = make_user(role=UserRole.OPERATOR)
        broken_id = broken.id

        from lifecycle.notifications import emitter

        real_create = emitter.create_notification

        def _create(db, recipient_id, *args, **kwargs):
            if recipient_id == broken_id:
                raise RuntimeError("insert failed")
            return real_create(db, recipient_id, *args, **kwargs)

        with patch("lifecycle.notifications.emitter.create_notification", side_effect=_create):
            created = notify_admins(db_session, publisher, NotificationType.SYSTEM_ANNOUNCEMENT, "t", "m")

        assert [n.user_id for n in created] == [healthy.id]
        assert get_unread_count(db_session, broken_id) == 0
        assert get_unread_count(db_session, healthy.id) == 1
