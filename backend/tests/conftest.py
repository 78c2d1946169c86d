"""Shared test fixtures."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lifecycle.accounts.models import SuspensionReason, User, UserRole
from lifecycle.audit.models import AuditLog
from lifecycle.database.base import Base
from lifecycle.mailer.service import EmailResult
from lifecycle.notifications.models import Notification

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [User, AuditLog, Notification]

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


@pytest.fixture
def session_factory():
    """In-memory SQLite database shared by every session the test opens.

    Note: SQLite doesn't support all PostgreSQL features (JSONB, enums),
    but works for service and engine logic testing.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db_session):
    """Factory for accounts at a given point of their lifecycle."""

    def _make_user(
        email: str | None = None,
        name: str | None = "Test User",
        role: UserRole = UserRole.USER,
        created_days_ago: float = 0,
        last_login_days_ago: float | None = None,
        is_active: bool = True,
        suspended_days_ago: float | None = None,
        suspension_reason: SuspensionReason | None = None,
        **markers,
    ) -> User:
        user = User(
            id=uuid.uuid4(),
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            name=name,
            password_hash="$2b$12$fakehash",
            role=role,
            created_at=days_ago(created_days_ago),
            last_login_at=days_ago(last_login_days_ago) if last_login_days_ago is not None else None,
            is_active=is_active,
            suspended_at=days_ago(suspended_days_ago) if suspended_days_ago is not None else None,
            suspension_reason=suspension_reason,
            **markers,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def operator(make_user):
    return make_user(email="ops@example.com", name="Ops", role=UserRole.OPERATOR, created_days_ago=400)


class FakeEmailSender:
    """Records every send; individual addresses can be set to fail or raise."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []
        self.failing: set[str] = set()
        self.raising: set[str] = set()
        self.on_send = None

    def _record(self, kind: str, email: str, **extra) -> EmailResult:
        if self.on_send is not None:
            self.on_send(kind, email)
        if email in self.raising:
            raise RuntimeError(f"transport exploded for {email}")
        if email in self.failing:
            return EmailResult(success=False, error="mailbox unavailable")
        self.sent.append((kind, email, extra))
        return EmailResult(success=True, message_id=f"<{uuid.uuid4().hex}@test>")

    def send_inactivity_reminder_15_days(self, email, name=None):
        return self._record("reminder_15", email)

    def send_inactivity_reminder_25_days(self, email, name=None):
        return self._record("reminder_25", email)

    def send_inactivity_deactivation_notice(self, email, name=None):
        return self._record("deactivation", email)

    def send_account_deletion_warning(self, email, name=None, days_until_deletion=30):
        return self._record("deletion_warning", email, days_until_deletion=days_until_deletion)

    def kinds_for(self, email: str) -> list[str]:
        return [kind for kind, addr, _ in self.sent if addr == email]


class RecordingPublisher:
    """DeltaPublisher double that keeps every pushed event."""

    def __init__(self):
        self.events: list[tuple[uuid.UUID, str, dict]] = []

    def push(self, recipient_id, event):
        self.events.append((recipient_id, event.event, event.model_dump(mode="json")["data"]))
        return True

    def push_notification(self, notification):
        self.events.append((notification.user_id, "notification", {"id": str(notification.id)}))
        return True

    def push_unread_count(self, recipient_id, unread_count):
        self.events.append((recipient_id, "unreadCount", {"unread_count": unread_count}))
        return True

    def for_recipient(self, recipient_id, event: str | None = None) -> list[dict]:
        return [data for rid, name, data in self.events if rid == recipient_id and (event is None or name == event)]


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def publisher():
    return RecordingPublisher()
