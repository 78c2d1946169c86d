"""Inactivity tiers and the pure classifier.

Reminder and deactivation tiers are measured from the last activity
(last login, else signup). The deletion warning and the deletion itself are
measured from the moment the account was deactivated for inactivity.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from ..accounts.models import SuspensionReason, User, UserRole
from ..notifications.models import NotificationType


class Tier(enum.StrEnum):
    REMINDER_15 = "inactive_15_days"
    REMINDER_25 = "inactive_25_days"
    DEACTIVATE_30 = "deactivated_30_days"
    DELETION_WARNING = "deletion_warning"
    DELETE_365 = "deleted_365_days"


@dataclass(frozen=True)
class TierRule:
    tier: Tier
    days: int
    from_activity: bool
    marker: str | None
    notification_type: NotificationType
    admin_title: str
    admin_summary: str


TIER_RULES: tuple[TierRule, ...] = (
    TierRule(
        Tier.REMINDER_15,
        15,
        True,
        "inactivity_email_15_days_sent_at",
        NotificationType.USER_INACTIVE_15_DAYS,
        "15-Day Inactivity Alert",
        "{count} user(s) have been inactive for 15 days and received reminder emails: {users}",
    ),
    TierRule(
        Tier.REMINDER_25,
        25,
        True,
        "inactivity_email_25_days_sent_at",
        NotificationType.USER_INACTIVE_25_DAYS,
        "25-Day Inactivity Warning",
        "{count} user(s) have been inactive for 25 days and received warning emails: {users}",
    ),
    TierRule(
        Tier.DEACTIVATE_30,
        30,
        True,
        "inactivity_email_30_days_sent_at",
        NotificationType.USER_DEACTIVATED_30_DAYS,
        "Users Deactivated - 30 Days Inactive",
        "{count} user(s) have been automatically deactivated due to 30 days of inactivity: {users}",
    ),
    TierRule(
        Tier.DELETION_WARNING,
        335,
        False,
        "deletion_warning_sent_at",
        NotificationType.USER_DELETION_WARNING,
        "Account Deletion Warnings Sent",
        "{count} deactivated user(s) will be permanently deleted in 30 days and were warned: {users}",
    ),
    TierRule(
        Tier.DELETE_365,
        365,
        False,
        None,
        NotificationType.USER_DELETED_365_DAYS,
        "Users Permanently Deleted - 1 Year Inactive",
        "{count} user(s) have been permanently deleted due to 1 year of inactivity: {users}",
    ),
)

RULES: dict[Tier, TierRule] = {rule.tier: rule for rule in TIER_RULES}

# Fixed per-cycle execution order.
TIER_ORDER: tuple[Tier, ...] = tuple(rule.tier for rule in TIER_RULES)

DELETION_AFTER_DAYS = RULES[Tier.DELETE_365].days


@dataclass(frozen=True)
class AccountSnapshot:
    """Immutable copy of the fields the classifier and executor need."""

    id: UUID
    email: str
    name: str | None
    role: UserRole
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None
    suspended_at: datetime | None
    suspension_reason: SuspensionReason | None
    inactivity_email_15_days_sent_at: datetime | None
    inactivity_email_25_days_sent_at: datetime | None
    inactivity_email_30_days_sent_at: datetime | None
    deletion_warning_sent_at: datetime | None

    @classmethod
    def from_user(cls, user: User) -> "AccountSnapshot":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=UserRole(user.role),
            is_active=bool(user.is_active),
            created_at=user.created_at,
            last_login_at=user.last_login_at,
            suspended_at=user.suspended_at,
            suspension_reason=SuspensionReason(user.suspension_reason) if user.suspension_reason else None,
            inactivity_email_15_days_sent_at=user.inactivity_email_15_days_sent_at,
            inactivity_email_25_days_sent_at=user.inactivity_email_25_days_sent_at,
            inactivity_email_30_days_sent_at=user.inactivity_email_30_days_sent_at,
            deletion_warning_sent_at=user.deletion_warning_sent_at,
        )

    @property
    def activity_baseline(self) -> datetime:
        return self.last_login_at or self.created_at


def _reference_time(account: AccountSnapshot, rule: TierRule) -> datetime | None:
    if rule.from_activity:
        return account.activity_baseline if account.is_active else None
    if account.is_active or account.suspension_reason != SuspensionReason.INACTIVITY:
        return None
    return account.suspended_at


def _later_markers(rule: TierRule) -> list[str]:
    """Markers of this tier and every later tier measured from the same reference."""
    start = TIER_RULES.index(rule)
    return [r.marker for r in TIER_RULES[start:] if r.from_activity == rule.from_activity and r.marker]


def qualifies(account: AccountSnapshot, tier: Tier, now: datetime) -> bool:
    rule = RULES[tier]
    if account.role == UserRole.OPERATOR:
        return False
    reference = _reference_time(account, rule)
    if reference is None or reference > now - timedelta(days=rule.days):
        return False
    # A set marker on this tier or a later one means the account is past this step for good.
    return all(getattr(account, marker) is None for marker in _later_markers(rule))


def classify(account: AccountSnapshot, now: datetime) -> Tier | None:
    """Highest tier the account currently qualifies for, or None."""
    for rule in reversed(TIER_RULES):
        if qualifies(account, rule.tier, now):
            return rule.tier
    return None


def days_until_deletion(account: AccountSnapshot, now: datetime) -> int:
    if account.suspended_at is None:
        return DELETION_AFTER_DAYS
    elapsed = (now - account.suspended_at).days
    return max(DELETION_AFTER_DAYS - elapsed, 1)
