"""Shared FastAPI dependencies."""

from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .accounts.models import User
from .database.base import get_db
from .inactivity.service import InactivityEngine
from .notifications.live import LiveDeltaPublisher


class AuthRequired(Exception):
    """Raised when user is not authenticated. Handled by exception handler in main.py."""

    pass


def get_publisher(request: Request) -> LiveDeltaPublisher:
    return request.app.state.publisher


def get_inactivity_engine(request: Request) -> InactivityEngine:
    return request.app.state.inactivity_engine


def session_user_id(session: dict) -> UUID | None:
    """User id stored in the signed session cookie, or None if absent or malformed."""
    raw = session.get("user_id")
    if not raw:
        return None
    try:
        return UUID(raw)
    except (ValueError, AttributeError, TypeError):
        return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Get the authenticated user from session, or raise AuthRequired."""
    user_id = session_user_id(request.session)
    if user_id is None:
        request.session.clear()
        raise AuthRequired()
    user = db.query(User).filter(User.id == user_id).first()
    # Deactivated accounts lose their session with everything else.
    if not user or not user.is_active:
        request.session.clear()
        raise AuthRequired()
    return user


def get_current_operator(user: User = Depends(get_current_user)) -> User:
    if not user.is_operator:
        raise HTTPException(status_code=403, detail="Operator access required")
    return user
