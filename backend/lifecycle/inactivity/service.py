"""User inactivity engine: tier scan, per-account actions, operator summaries.

One cycle walks the tiers in fixed order. Every account is handled in its own
transaction; a failure on one account is logged and the scan moves on. After
each tier, operators get one summary notification listing the accounts that
actually transitioned.
"""

import enum
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from ..accounts.models import SuspensionReason
from ..admin.service import notify_admins
from ..audit.service import record_audit
from ..config import settings
from ..database.base import SessionLocal, session_scope, utcnow
from ..mailer.service import EmailResult, EmailSender
from ..notifications.live import DeltaPublisher
from ..notifications.metadata import InactivityBatchMetadata
from ..notifications.service import delete_all_notifications
from . import queries
from .tiers import RULES, TIER_ORDER, AccountSnapshot, Tier, classify, days_until_deletion

logger = logging.getLogger(__name__)

DEACTIVATION_NOTE = "Auto-deactivated due to 30 days of inactivity"


class ActionOutcome(enum.StrEnum):
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TierOutcome:
    tier: Tier
    candidates: int = 0
    transitioned: list[str] = field(default_factory=list)
    failed: int = 0
    skipped: int = 0


@dataclass
class CycleReport:
    success: bool
    message: str
    started_at: datetime | None = None
    outcomes: dict[Tier, TierOutcome] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "tiers": {tier.value: len(outcome.transitioned) for tier, outcome in self.outcomes.items()},
        }


class InactivityEngine:
    """Runs inactivity cycles; at most one at a time per engine instance.

    The scheduler and the manual admin trigger share one instance, so they
    share the cycle lock.
    """

    def __init__(
        self,
        email_sender: EmailSender,
        publisher: DeltaPublisher,
        session_factory: sessionmaker = SessionLocal,
        batch_size: int | None = None,
    ) -> None:
        self._email = email_sender
        self._publisher = publisher
        self._session_factory = session_factory
        self._batch_size = batch_size or settings.inactivity_batch_size
        self._cycle_lock = threading.Lock()
        self._handlers: dict[Tier, Callable[[Session, AccountSnapshot, datetime], ActionOutcome]] = {
            Tier.REMINDER_15: self._send_reminder,
            Tier.REMINDER_25: self._send_reminder,
            Tier.DEACTIVATE_30: self._deactivate,
            Tier.DELETION_WARNING: self._warn_before_deletion,
            Tier.DELETE_365: self._delete,
        }

    @property
    def is_running(self) -> bool:
        return self._cycle_lock.locked()

    def run_cycle(self, now: datetime | None = None) -> CycleReport:
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Inactivity check already running, skipping")
            return CycleReport(success=False, message="Inactivity check already running")
        try:
            return self._run(now or utcnow())
        finally:
            self._cycle_lock.release()

    def run_manual_check(self) -> CycleReport:
        logger.info("Manual inactivity check triggered")
        return self.run_cycle()

    # ── Cycle ─────────────────────────────────────────────────────────

    def _run(self, now: datetime) -> CycleReport:
        logger.info("Starting user inactivity check at %s", now.isoformat())
        report = CycleReport(success=True, message="Inactivity check completed", started_at=now)
        try:
            with session_scope(self._session_factory) as db:
                for tier in TIER_ORDER:
                    outcome = self._process_tier(db, tier, now)
                    report.outcomes[tier] = outcome
                    if outcome.transitioned:
                        self._notify_operators(db, outcome)
        except Exception:
            # Actions committed so far stand; the next trigger picks up the rest.
            logger.exception("User inactivity check failed")
            report.success = False
            report.message = "Inactivity check failed"
            return report

        logger.info(
            "User inactivity check completed: %s",
            ", ".join(f"{t.value}={len(o.transitioned)}" for t, o in report.outcomes.items()),
        )
        return report

    def _process_tier(self, db: Session, tier: Tier, now: datetime) -> TierOutcome:
        outcome = TierOutcome(tier=tier)
        handler = self._handlers[tier]

        for batch in queries.iter_candidate_batches(db, tier, now, self._batch_size):
            for account in batch:
                # Accounts that also qualify for a later tier are handled by that tier only.
                if classify(account, now) != tier:
                    continue
                outcome.candidates += 1
                try:
                    result = handler(db, account, now)
                except Exception:
                    db.rollback()
                    result = ActionOutcome.FAILED
                    logger.exception("Error processing %s for user %s", tier.value, account.email)

                if result == ActionOutcome.APPLIED:
                    outcome.transitioned.append(account.email)
                elif result == ActionOutcome.FAILED:
                    outcome.failed += 1
                else:
                    outcome.skipped += 1

        logger.info(
            "Tier %s: %d candidate(s), %d transitioned, %d failed, %d skipped",
            tier.value,
            outcome.candidates,
            len(outcome.transitioned),
            outcome.failed,
            outcome.skipped,
        )
        return outcome

    def _notify_operators(self, db: Session, outcome: TierOutcome) -> None:
        rule = RULES[outcome.tier]
        users = outcome.transitioned
        try:
            notify_admins(
                db,
                self._publisher,
                rule.notification_type,
                rule.admin_title,
                rule.admin_summary.format(count=len(users), users=", ".join(users)),
                InactivityBatchMetadata(user_count=len(users), users=users),
            )
        except Exception:
            # Operator notification is downstream of the lifecycle action and never undoes it.
            db.rollback()
            logger.exception("Failed to notify operators about %s", outcome.tier.value)

    # ── Tier actions ──────────────────────────────────────────────────

    def _send_reminder(self, db: Session, account: AccountSnapshot, now: datetime) -> ActionOutcome:
        tier = classify(account, now)
        if tier == Tier.REMINDER_15:
            result = self._email.send_inactivity_reminder_15_days(account.email, account.name)
        else:
            result = self._email.send_inactivity_reminder_25_days(account.email, account.name)

        if not result.success:
            logger.error("Failed to send %s e-mail to %s: %s", tier.value, account.email, result.error)
            return ActionOutcome.FAILED

        return self._write_marker(db, account, tier, now)

    def _warn_before_deletion(self, db: Session, account: AccountSnapshot, now: datetime) -> ActionOutcome:
        days_left = days_until_deletion(account, now)
        result = self._email.send_account_deletion_warning(account.email, account.name, days_left)
        if not result.success:
            logger.error("Failed to send deletion warning to %s: %s", account.email, result.error)
            return ActionOutcome.FAILED

        return self._write_marker(db, account, Tier.DELETION_WARNING, now)

    def _write_marker(self, db: Session, account: AccountSnapshot, tier: Tier, now: datetime) -> ActionOutcome:
        marker = RULES[tier].marker
        written = queries.update_if_still_eligible(db, account.id, tier, now, {marker: now, "updated_at": now})
        db.commit()
        if not written:
            logger.info("User %s changed since selection, %s marker not written", account.email, tier.value)
            return ActionOutcome.SKIPPED
        logger.info("Sent %s e-mail to %s", tier.value, account.email)
        return ActionOutcome.APPLIED

    def _deactivate(self, db: Session, account: AccountSnapshot, now: datetime) -> ActionOutcome:
        written = queries.update_if_still_eligible(
            db,
            account.id,
            Tier.DEACTIVATE_30,
            now,
            {
                "is_active": False,
                "suspended_at": now,
                "suspension_reason": SuspensionReason.INACTIVITY,
                "suspension_note": DEACTIVATION_NOTE,
                RULES[Tier.DEACTIVATE_30].marker: now,
                "updated_at": now,
            },
        )
        if not written:
            db.rollback()
            logger.info("User %s changed since selection, not deactivated", account.email)
            return ActionOutcome.SKIPPED

        # Sent only once the row is deactivated; its outcome never undoes the deactivation.
        try:
            result = self._email.send_inactivity_deactivation_notice(account.email, account.name)
        except Exception as exc:
            logger.exception("Deactivation notice to %s raised", account.email)
            result = EmailResult(success=False, error=str(exc))

        record_audit(
            db,
            "inactivity_deactivated",
            f"email={account.email}, notice_sent={result.success}",
            user_id=account.id,
        )
        db.commit()

        if result.success:
            logger.info("Deactivated user %s due to 30 days inactivity (e-mail sent)", account.email)
        else:
            logger.warning("Deactivated user %s but e-mail failed: %s", account.email, result.error)
        return ActionOutcome.APPLIED

    def _delete(self, db: Session, account: AccountSnapshot, now: datetime) -> ActionOutcome:
        removed_notifications = delete_all_notifications(db, account.id)
        if not queries.delete_if_still_eligible(db, account.id, Tier.DELETE_365, now):
            db.rollback()
            logger.info("User %s changed since selection, not deleted", account.email)
            return ActionOutcome.SKIPPED

        record_audit(
            db,
            "inactivity_deleted",
            f"email={account.email}, suspended_at={account.suspended_at.isoformat()}, "
            f"notifications_removed={removed_notifications}",
        )
        db.commit()
        logger.info("Permanently deleted user %s due to 1 year inactivity", account.email)
        return ActionOutcome.APPLIED


def get_inactivity_stats(db: Session, now: datetime | None = None) -> dict:
    """Counts for the admin dashboard. Read-only."""
    now = now or utcnow()
    return {
        "inactive_15_to_24_days": queries.count_active_in_band(db, now, 15, 25),
        "inactive_25_to_29_days": queries.count_active_in_band(db, now, 25, 30),
        "deactivated_due_to_inactivity": queries.count_deactivated_for_inactivity(db),
        "pending_deletion": queries.count_deactivated_for_inactivity(
            db, since_days=RULES[Tier.DELETION_WARNING].days, now=now
        ),
    }
