"""Account service: password hashing, lookups, activity tracking, operator resolution."""

import logging
from uuid import UUID

import bcrypt
from sqlalchemy.orm import Session

from ..config import settings
from ..database.base import utcnow
from .models import User, UserRole

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.lower()).first()


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def determine_role(email: str) -> UserRole:
    """Operators are the accounts whose e-mail is listed in OPERATOR_EMAILS (or ADMIN_EMAIL)."""
    if email.lower() in settings.operator_emails_list:
        return UserRole.OPERATOR
    return UserRole.USER


def create_user(db: Session, email: str, password: str, name: str | None = None) -> User:
    user = User(
        email=email.lower(),
        name=name,
        password_hash=hash_password(password),
        role=determine_role(email),
    )
    db.add(user)
    db.flush()
    return user


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Verify credentials and return user, or None if invalid."""
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def record_activity(db: Session, user: User) -> None:
    """Move the inactivity baseline forward; called on every successful login."""
    now = utcnow()
    user.last_login_at = now
    user.updated_at = now
    db.flush()


def get_operator_ids(db: Session) -> list[UUID]:
    rows = db.query(User.id).filter(User.role == UserRole.OPERATOR).all()
    return [row.id for row in rows]


def ensure_admin_user(db: Session) -> None:
    """Create the operator account from env vars if it doesn't exist yet."""
    if not settings.admin_email or not settings.admin_password:
        return

    existing = get_user_by_email(db, settings.admin_email)
    if existing:
        if existing.role != UserRole.OPERATOR:
            existing.role = UserRole.OPERATOR
            db.flush()
            logger.info("Promoted %s to operator", existing.email)
        return

    create_user(db, settings.admin_email, settings.admin_password, name="Administrator")
    logger.info("Created operator account %s", settings.admin_email)
