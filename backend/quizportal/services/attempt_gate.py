"""
Daily Attempt Gate.

Caps quiz attempts at DAILY_ATTEMPT_LIMIT per user, per category, per
server-local calendar day.

Two entry points:
- authorize(): read-only check. Called when questions are fetched (so the
  client can show remaining attempts) and again before a submission is scored.
- admit(): atomic increment-and-compare on the (user, category, day) counter
  row. Runs inside the same transaction as the attempt insert, so two
  concurrent submissions from the same user cannot both slip under the cap.
"""

import os
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Optional, Tuple, Dict, Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from quizportal.database import insert_ignore
from quizportal.models.models import QuizAttempt, DailyAttemptCounter, QuizCategory
from quizportal.services.exceptions import AttemptLimitExceededError

logger = logging.getLogger(__name__)

DAILY_ATTEMPT_LIMIT = int(os.getenv("DAILY_ATTEMPT_LIMIT", "3"))


def day_window(now: datetime) -> Tuple[datetime, datetime]:
    """Return [midnight today, midnight tomorrow) around `now`."""
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return today_start, today_start + timedelta(days=1)


@dataclass
class GateDecision:
    allowed: bool
    attempts_used: int
    attempts_left: int
    next_reset_time: datetime
    limit: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AttemptGate:
    """Per-category daily attempt limiter."""

    def __init__(self, limit: int = DAILY_ATTEMPT_LIMIT):
        self.limit = limit

    def count_attempts(self, db: Session, user_id: str, category: QuizCategory, now: datetime) -> int:
        """Count stored attempts whose start_time falls on the same day as `now`."""
        today_start, tomorrow_start = day_window(now)
        return db.query(func.count(QuizAttempt.id)).filter(
            QuizAttempt.user_id == user_id,
            QuizAttempt.category == category,
            QuizAttempt.start_time >= today_start,
            QuizAttempt.start_time < tomorrow_start
        ).scalar() or 0

    def _counter_filter(self, user_id: str, category: QuizCategory, now: datetime):
        today_start, _ = day_window(now)
        return (
            DailyAttemptCounter.user_id == user_id,
            DailyAttemptCounter.category == category,
            DailyAttemptCounter.day == today_start.date(),
        )

    def authorize(
        self,
        db: Session,
        user_id: str,
        category: QuizCategory,
        now: Optional[datetime] = None
    ) -> GateDecision:
        now = now or datetime.now()
        used = self.count_attempts(db, user_id, category, now)

        # Admissions are also tracked on the counter row; never report fewer than it holds
        admitted = db.query(DailyAttemptCounter.attempts).filter(
            *self._counter_filter(user_id, category, now)
        ).scalar()
        if admitted is not None:
            used = max(used, admitted)

        _, next_reset_time = day_window(now)
        return GateDecision(
            allowed=used < self.limit,
            attempts_used=used,
            attempts_left=max(0, self.limit - used),
            next_reset_time=next_reset_time,
            limit=self.limit
        )

    def ensure_allowed(
        self,
        db: Session,
        user_id: str,
        category: QuizCategory,
        now: Optional[datetime] = None
    ) -> GateDecision:
        """authorize(), raising AttemptLimitExceededError when the cap is hit."""
        decision = self.authorize(db, user_id, category, now)
        if not decision.allowed:
            logger.info(
                "Attempt limit reached for user=%s category=%s (%d/%d)",
                user_id, category.value, decision.attempts_used, self.limit
            )
            raise AttemptLimitExceededError(decision.next_reset_time, self.limit)
        return decision

    def admit(
        self,
        db: Session,
        user_id: str,
        category: QuizCategory,
        now: Optional[datetime] = None
    ) -> int:
        """
        Claim one attempt slot for today. Does not commit.

        The caller writes the attempt in the same transaction and commits
        both together; a rollback releases the slot.

        Returns:
            The attempt's ordinal for today (1-based).

        Raises:
            AttemptLimitExceededError: If the cap is already reached.
        """
        now = now or datetime.now()
        today_start, next_reset_time = day_window(now)

        # Seed from stored attempts so the counter agrees with history
        insert_ignore(
            db,
            DailyAttemptCounter.__table__,
            user_id=user_id,
            category=category,
            day=today_start.date(),
            attempts=self.count_attempts(db, user_id, category, now),
            updated_at=now
        )

        claimed = db.query(DailyAttemptCounter).filter(
            *self._counter_filter(user_id, category, now),
            DailyAttemptCounter.attempts < self.limit
        ).update(
            {
                DailyAttemptCounter.attempts: DailyAttemptCounter.attempts + 1,
                DailyAttemptCounter.updated_at: now,
            },
            synchronize_session=False
        )

        if not claimed:
            logger.info(
                "Admission refused for user=%s category=%s: daily cap %d reached",
                user_id, category.value, self.limit
            )
            raise AttemptLimitExceededError(next_reset_time, self.limit)

        return db.query(DailyAttemptCounter.attempts).filter(
            *self._counter_filter(user_id, category, now)
        ).scalar()


# Singleton instance
_attempt_gate: Optional[AttemptGate] = None


def get_attempt_gate() -> AttemptGate:
    """Get the singleton AttemptGate instance."""
    global _attempt_gate
    if _attempt_gate is None:
        _attempt_gate = AttemptGate()
    return _attempt_gate
