"""Named account-store queries for the inactivity engine.

``tier_predicate`` is the SQL twin of ``tiers.qualifies``: the executor reuses
it as the WHERE clause of its compare-and-set writes, so an account that
changed since it was selected (new login, already marked by another run) is
left alone.
"""

from collections.abc import Iterator
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, func
from sqlalchemy.orm import Session

from ..accounts.models import SuspensionReason, User, UserRole
from .tiers import RULES, TIER_RULES, AccountSnapshot, Tier


def activity_baseline() -> ColumnElement:
    return func.coalesce(User.last_login_at, User.created_at)


def tier_predicate(tier: Tier, now: datetime) -> list[ColumnElement[bool]]:
    rule = RULES[tier]
    cutoff = now - timedelta(days=rule.days)
    clauses: list[ColumnElement[bool]] = [User.role != UserRole.OPERATOR]

    if rule.from_activity:
        clauses += [
            User.is_active == True,  # noqa: E712
            activity_baseline() <= cutoff,
        ]
    else:
        clauses += [
            User.is_active == False,  # noqa: E712
            User.suspension_reason == SuspensionReason.INACTIVITY,
            User.suspended_at.isnot(None),
            User.suspended_at <= cutoff,
        ]

    start = TIER_RULES.index(rule)
    for later in TIER_RULES[start:]:
        if later.from_activity == rule.from_activity and later.marker:
            clauses.append(getattr(User, later.marker).is_(None))
    return clauses


def iter_candidate_batches(
    db: Session,
    tier: Tier,
    now: datetime,
    batch_size: int,
) -> Iterator[list[AccountSnapshot]]:
    """Yield snapshots of matching accounts, keyset-paginated on id.

    Rows left unprocessed by a failure keep matching the predicate; paging on
    id rather than offset keeps them from being re-read in the same scan.
    """
    last_id: UUID | None = None
    while True:
        query = db.query(User).filter(*tier_predicate(tier, now))
        if last_id is not None:
            query = query.filter(User.id > last_id)
        users = query.order_by(User.id).limit(batch_size).all()
        if not users:
            return

        batch = [AccountSnapshot.from_user(u) for u in users]
        last_id = batch[-1].id
        # Snapshots are all we need; keep the identity map small on large scans.
        db.expunge_all()
        yield batch

        if len(batch) < batch_size:
            return


def update_if_still_eligible(
    db: Session,
    account_id: UUID,
    tier: Tier,
    now: datetime,
    values: dict[str, Any],
) -> bool:
    """Write lifecycle fields only if the row still matches the tier. Returns True if written."""
    updated = (
        db.query(User)
        .filter(User.id == account_id, *tier_predicate(tier, now))
        .update({getattr(User, k): v for k, v in values.items()}, synchronize_session=False)
    )
    return updated == 1


def delete_if_still_eligible(db: Session, account_id: UUID, tier: Tier, now: datetime) -> bool:
    deleted = (
        db.query(User)
        .filter(User.id == account_id, *tier_predicate(tier, now))
        .delete(synchronize_session=False)
    )
    return deleted == 1


# ── Statistics ────────────────────────────────────────────────────────


def count_active_in_band(db: Session, now: datetime, min_days: int, max_days: int) -> int:
    """Active, non-operator accounts inactive for at least ``min_days`` and less than ``max_days``."""
    baseline = activity_baseline()
    return (
        db.query(func.count(User.id))
        .filter(
            User.role != UserRole.OPERATOR,
            User.is_active == True,  # noqa: E712
            baseline <= now - timedelta(days=min_days),
            baseline > now - timedelta(days=max_days),
        )
        .scalar()
        or 0
    )


def count_deactivated_for_inactivity(db: Session, since_days: int | None = None, now: datetime | None = None) -> int:
    query = db.query(func.count(User.id)).filter(
        User.role != UserRole.OPERATOR,
        User.is_active == False,  # noqa: E712
        User.suspension_reason == SuspensionReason.INACTIVITY,
    )
    if since_days is not None and now is not None:
        query = query.filter(User.suspended_at <= now - timedelta(days=since_days))
    return query.scalar() or 0
