"""
Attempt Store.

Append-only persistence of scored quiz attempts plus the read paths used by
history, analytics and certificate lookups.
"""

import logging
from datetime import datetime
from typing import List, Optional, Dict, Any

from sqlalchemy.orm import Session

from quizportal.models.models import QuizAttempt, QuizCategory
from quizportal.services.scoring import ScoreResult
from quizportal.services.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class AttemptStore:

    def record(
        self,
        db: Session,
        user_id: str,
        category: QuizCategory,
        scored: ScoreResult,
        time_taken_seconds: int,
        start_time: datetime,
        end_time: datetime,
        session_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> QuizAttempt:
        """
        Add one immutable attempt row and flush it. Does not commit.

        The caller owns the transaction so admission and the insert commit
        together. A reused session_id fails the flush with IntegrityError.
        """
        attempt = QuizAttempt(
            user_id=user_id,
            category=category,
            results=scored.results_as_dicts(),
            correct_answers=scored.total_correct,
            total_questions=scored.total_questions,
            total_score=scored.total_score,
            time_taken_seconds=time_taken_seconds,
            start_time=start_time,
            end_time=end_time,
            session_id=session_id,
            created_at=now or datetime.now()
        )
        db.add(attempt)
        db.flush()

        logger.info(
            "Recorded attempt %s user=%s category=%s score=%.1f (%d/%d)",
            attempt.id, user_id, category.value, scored.total_score,
            scored.total_correct, scored.total_questions
        )
        return attempt

    def get(self, db: Session, attempt_id: str) -> QuizAttempt:
        attempt = db.query(QuizAttempt).filter(QuizAttempt.id == attempt_id).first()
        if not attempt:
            raise NotFoundError(f"Quiz attempt not found: {attempt_id}")
        return attempt

    def session_used(self, db: Session, session_id: str) -> bool:
        return db.query(QuizAttempt.id).filter(QuizAttempt.session_id == session_id).first() is not None

    def list_for_user(self, db: Session, user_id: str) -> List[QuizAttempt]:
        """Full history for a user, newest first."""
        return db.query(QuizAttempt).filter(
            QuizAttempt.user_id == user_id
        ).order_by(
            QuizAttempt.created_at.desc(),
            QuizAttempt.start_time.desc()
        ).all()

    def history(self, db: Session, user_id: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """One page of a user's attempts, newest first."""
        query = db.query(QuizAttempt).filter(QuizAttempt.user_id == user_id)
        total = query.count()

        attempts = query.order_by(
            QuizAttempt.created_at.desc(),
            QuizAttempt.start_time.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            "attempts": attempts,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
            "current_page": page,
        }


# Singleton instance
_attempt_store: Optional[AttemptStore] = None


def get_attempt_store() -> AttemptStore:
    """Get the singleton AttemptStore instance."""
    global _attempt_store
    if _attempt_store is None:
        _attempt_store = AttemptStore()
    return _attempt_store
