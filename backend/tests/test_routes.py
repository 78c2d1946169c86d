"""Tests for HTTP and WebSocket routes using FastAPI TestClient."""

import asyncio
import uuid
from contextlib import asynccontextmanager
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import days_ago
from lifecycle.accounts.models import User, UserRole
from lifecycle.accounts.service import create_user
from lifecycle.audit.models import AuditLog
from lifecycle.database.base import get_db
from lifecycle.inactivity.service import CycleReport
from lifecycle.notifications.live import LiveDeltaPublisher
from lifecycle.notifications.models import NotificationType
from lifecycle.notifications.service import create_notification, get_unread_count
from lifecycle.rate_limit import limiter

PASSWORD = "correct-horse"


@pytest.fixture
def inactivity_engine():
    engine = MagicMock()
    engine.run_manual_check.return_value = CycleReport(success=True, message="Inactivity check completed")
    return engine


@pytest.fixture
def app_client(session_factory, inactivity_engine):
    """TestClient with a patched lifespan: no migrations, no scheduler, SQLite store."""
    from lifecycle.main import create_app

    @asynccontextmanager
    async def _test_lifespan(app):
        publisher = LiveDeltaPublisher()
        publisher.bind_loop(asyncio.get_running_loop())
        app.state.publisher = publisher
        app.state.session_factory = session_factory
        app.state.inactivity_engine = inactivity_engine
        yield

    def _test_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    limiter.reset()
    with patch("lifecycle.main.lifespan", _test_lifespan):
        app = create_app()
        app.dependency_overrides[get_db] = _test_db
        with TestClient(app, raise_server_exceptions=False) as client:
            yield client


@pytest.fixture
def account(db_session):
    user = create_user(db_session, "member@example.com", PASSWORD, name="Member")
    db_session.commit()
    return user


@pytest.fixture
def operator_account(db_session):
    user = create_user(db_session, "operator@example.com", PASSWORD, name="Operator")
    user.role = UserRole.OPERATOR
    db_session.commit()
    return user


def _login(client, email, password=PASSWORD):
    return client.post("/api/v1/login", json={"email": email, "password": password})


class TestHealthEndpoint:
    def test_health_returns_ok(self, app_client):
        response = app_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["db"] == "ok"
        assert "uptime_seconds" in data


class TestAuthRoutes:
    def test_login_wrong_credentials(self, app_client, account, db_session):
        response = _login(app_client, account.email, "wrong")
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid credentials"}
        assert db_session.query(AuditLog).filter(AuditLog.action == "login_failed").count() == 1

    def test_login_records_activity(self, app_client, account, db_session):
        response = _login(app_client, account.email)

        assert response.status_code == 200
        assert response.json()["email"] == account.email
        db_session.expire_all()
        assert db_session.get(User, account.id).last_login_at is not None

        me = app_client.get("/api/v1/me")
        assert me.status_code == 200
        assert me.json()["role"] == "user"

    def test_deactivated_account_cannot_log_in(self, app_client, account, db_session):
        account.is_active = False
        account.suspended_at = days_ago(3)
        db_session.commit()

        response = _login(app_client, account.email)

        assert response.status_code == 403
        assert app_client.get("/api/v1/me").status_code == 401

    def test_me_requires_session(self, app_client):
        response = app_client.get("/api/v1/me")
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}

    def test_logout_clears_session(self, app_client, account):
        _login(app_client, account.email)
        assert app_client.post("/api/v1/logout").status_code == 200
        assert app_client.get("/api/v1/me").status_code == 401

    def test_deactivation_ends_existing_session(self, app_client, account, db_session):
        _login(app_client, account.email)
        db_session.query(User).filter(User.id == account.id).update({User.is_active: False})
        db_session.commit()

        assert app_client.get("/api/v1/me").status_code == 401


class TestNotificationRoutes:
    @pytest.fixture
    def notifications(self, db_session, account):
        created = [
            create_notification(db_session, account.id, NotificationType.SYSTEM_ANNOUNCEMENT, f"n{i}", "body")
            for i in range(3)
        ]
        db_session.commit()
        return [n.id for n in created]

    def test_list_and_count(self, app_client, account, notifications):
        _login(app_client, account.email)

        page = app_client.get("/api/v1/notifications", params={"limit": 2}).json()
        assert len(page["data"]) == 2
        assert page["pagination"]["total"] == 3
        assert page["unread_count"] == 3
        assert app_client.get("/api/v1/notifications/unread-count").json() == {"unread_count": 3}

    def test_mark_one_read(self, app_client, account, notifications):
        _login(app_client, account.email)

        response = app_client.patch(f"/api/v1/notifications/{notifications[0]}/read")

        assert response.status_code == 200
        assert response.json()["is_read"] is True
        assert app_client.get("/api/v1/notifications/unread-count").json() == {"unread_count": 2}

    def test_mark_unknown_returns_404(self, app_client, account, notifications):
        _login(app_client, account.email)
        response = app_client.patch(f"/api/v1/notifications/{uuid.uuid4()}/read")
        assert response.status_code == 404
        assert response.json() == {"error": "Notification not found"}

    def test_mark_many_and_all(self, app_client, account, notifications):
        _login(app_client, account.email)

        many = app_client.patch(
            "/api/v1/notifications/mark-read",
            json={"notification_ids": [str(notifications[0]), str(notifications[1])]},
        )
        assert many.json() == {"updated": 2, "unread_count": 1}

        everything = app_client.patch("/api/v1/notifications/mark-all-read")
        assert everything.json() == {"updated": 1, "unread_count": 0}

    def test_mark_many_requires_ids(self, app_client, account):
        _login(app_client, account.email)
        response = app_client.patch("/api/v1/notifications/mark-read", json={"notification_ids": []})
        assert response.status_code == 422

    def test_delete_one_and_all(self, app_client, account, notifications, db_session):
        _login(app_client, account.email)

        assert app_client.delete(f"/api/v1/notifications/{notifications[0]}").json() == {"ok": True, "unread_count": 2}
        assert app_client.delete(f"/api/v1/notifications/{notifications[0]}").status_code == 404
        assert app_client.delete("/api/v1/notifications").json() == {"deleted": 2, "unread_count": 0}
        assert get_unread_count(db_session, account.id) == 0

    def test_other_users_notifications_invisible(self, app_client, operator_account, notifications):
        _login(app_client, operator_account.email)

        assert app_client.get("/api/v1/notifications").json()["pagination"]["total"] == 0
        assert app_client.patch(f"/api/v1/notifications/{notifications[0]}/read").status_code == 404


class TestInactivityAdminRoutes:
    def test_stats_requires_operator(self, app_client, account):
        _login(app_client, account.email)
        response = app_client.get("/api/v1/admin/inactivity/stats")
        assert response.status_code == 403

    def test_stats(self, app_client, operator_account):
        _login(app_client, operator_account.email)

        response = app_client.get("/api/v1/admin/inactivity/stats")

        assert response.status_code == 200
        assert response.json() == {
            "inactive_15_to_24_days": 0,
            "inactive_25_to_29_days": 0,
            "deactivated_due_to_inactivity": 0,
            "pending_deletion": 0,
        }

    def test_run_check(self, app_client, operator_account, inactivity_engine, db_session):
        _login(app_client, operator_account.email)

        response = app_client.post("/api/v1/admin/inactivity/run-check")

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Inactivity check completed", "tiers": {}}
        inactivity_engine.run_manual_check.assert_called_once()
        assert db_session.query(AuditLog).filter(AuditLog.action == "inactivity_check_triggered").count() == 1

    def test_run_check_requires_operator(self, app_client, account, inactivity_engine):
        _login(app_client, account.email)
        assert app_client.post("/api/v1/admin/inactivity/run-check").status_code == 403
        inactivity_engine.run_manual_check.assert_not_called()

    def test_run_check_reports_overlap(self, app_client, operator_account, inactivity_engine):
        inactivity_engine.run_manual_check.return_value = CycleReport(
            success=False, message="Inactivity check already running"
        )
        _login(app_client, operator_account.email)

        response = app_client.post("/api/v1/admin/inactivity/run-check")

        assert response.json()["success"] is False


class TestNotificationSocket:
    def test_rejects_anonymous(self, app_client):
        with pytest.raises(WebSocketDisconnect), app_client.websocket_connect("/ws/notifications") as ws:
            ws.receive_json()

    def test_initial_count_and_mark_as_read(self, app_client, account, db_session):
        notification = create_notification(db_session, account.id, NotificationType.SYSTEM_ANNOUNCEMENT, "hi", "there")
        db_session.commit()
        notification_id = str(notification.id)
        _login(app_client, account.email)

        with app_client.websocket_connect("/ws/notifications") as ws:
            assert ws.receive_json() == {"event": "unreadCount", "data": {"unread_count": 1}}

            ws.send_json({"action": "getUnreadCount"})
            assert ws.receive_json() == {"event": "unreadCount", "data": {"unread_count": 1}}

            ws.send_json({"action": "markAsRead", "notificationId": notification_id})
            assert ws.receive_json() == {"event": "unreadCount", "data": {"unread_count": 0}}

            ws.send_json({"action": "dance"})
            assert ws.receive_json()["event"] == "error"

    def test_malformed_frame_gets_error_and_socket_stays_open(self, app_client, account):
        _login(app_client, account.email)

        with app_client.websocket_connect("/ws/notifications") as ws:
            assert ws.receive_json()["event"] == "unreadCount"

            ws.send_text("not json")
            assert ws.receive_json() == {"event": "error", "data": {"message": "Invalid JSON"}}

            ws.send_json({"action": "getUnreadCount"})
            assert ws.receive_json() == {"event": "unreadCount", "data": {"unread_count": 0}}
