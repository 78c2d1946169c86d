"""Tests for audit service."""

from unittest.mock import MagicMock

from lifecycle.audit.models import AuditLog
from lifecycle.audit.service import audit, record_audit
from lifecycle.rate_limit import client_ip


class TestClientIp:
    def test_extracts_forwarded_ip(self):
        request = MagicMock()
        request.headers = {"X-Forwarded-For": "1.2.3.4, 5.6.7.8"}
        assert client_ip(request) == "1.2.3.4"

    def test_uses_client_host(self):
        request = MagicMock()
        request.headers = {}
        request.client.host = "10.0.0.1"
        assert client_ip(request) == "10.0.0.1"

    def test_unknown_when_no_client(self):
        request = MagicMock()
        request.headers = {}
        request.client = None
        assert client_ip(request) == "unknown"


class TestAudit:
    def test_takes_user_from_session(self, db_session, make_user):
        user = make_user()
        request = MagicMock()
        request.headers = {"X-Forwarded-For": "192.168.1.1"}
        request.session = {"user_id": str(user.id)}

        audit(db_session, request, "inactivity_check_triggered", "some detail")
        db_session.commit()

        logs = db_session.query(AuditLog).all()
        assert len(logs) == 1
        assert logs[0].action == "inactivity_check_triggered"
        assert logs[0].detail == "some detail"
        assert logs[0].ip_address == "192.168.1.1"
        assert logs[0].user_id == user.id

    def test_ignores_malformed_session_user(self, db_session):
        request = MagicMock()
        request.headers = {}
        request.client.host = "127.0.0.1"
        request.session = {"user_id": "not-a-uuid"}

        audit(db_session, request, "login_failed")
        db_session.commit()

        assert db_session.query(AuditLog).one().user_id is None


class TestRecordAudit:
    def test_written_only_with_the_transaction(self, db_session, make_user):
        user = make_user()
        record_audit(db_session, "inactivity_deactivated", "email=x", user_id=user.id)
        db_session.rollback()
        assert db_session.query(AuditLog).count() == 0

        record_audit(db_session, "inactivity_deactivated", "email=x", user_id=user.id)
        db_session.commit()
        log = db_session.query(AuditLog).one()
        assert log.user_id == user.id
        assert log.ip_address == ""
