"""
Tests for the daily attempt gate.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from quizportal.models.models import User, QuizCategory, DailyAttemptCounter
from quizportal.services.attempt_gate import AttemptGate, day_window
from quizportal.services.exceptions import AttemptLimitExceededError

NOON = datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def gate():
    return AttemptGate(limit=3)


class TestDayWindow:

    @pytest.mark.unit
    def test_window_is_local_calendar_day(self):
        start, end = day_window(datetime(2026, 10, 19, 23, 59, 59))
        assert start == datetime(2026, 10, 19)
        assert end == datetime(2026, 10, 20)


class TestAuthorize:
    """Test the read-only admission check"""

    @pytest.mark.integration
    def test_fresh_user_has_full_allowance(self, db: Session, test_user: User, gate):
        decision = gate.authorize(db, test_user.id, QuizCategory.APTITUDE, NOON)

        assert decision.allowed is True
        assert decision.attempts_used == 0
        assert decision.attempts_left == 3
        assert decision.next_reset_time == datetime(2026, 10, 20)

    @pytest.mark.integration
    def test_three_attempts_today_blocks_fourth(self, db: Session, test_user: User, gate, attempt_factory):
        for hour in (8, 9, 10):
            attempt_factory(test_user, start_time=NOON.replace(hour=hour))

        decision = gate.authorize(db, test_user.id, QuizCategory.APTITUDE, NOON)

        assert decision.allowed is False
        assert decision.attempts_left == 0
        assert NOON < decision.next_reset_time <= NOON + timedelta(hours=24)

    @pytest.mark.integration
    def test_yesterdays_attempts_ignored(self, db: Session, test_user: User, gate, attempt_factory):
        for minute in (0, 10, 20):
            attempt_factory(test_user, start_time=datetime(2026, 10, 18, 23, minute))

        decision = gate.authorize(db, test_user.id, QuizCategory.APTITUDE, NOON)

        assert decision.allowed is True
        assert decision.attempts_left == 3

    @pytest.mark.integration
    def test_categories_counted_separately(self, db: Session, test_user: User, gate, attempt_factory):
        for hour in (8, 9, 10):
            attempt_factory(test_user, category=QuizCategory.APTITUDE, start_time=NOON.replace(hour=hour))

        decision = gate.authorize(db, test_user.id, QuizCategory.TECHNICAL, NOON)
        assert decision.allowed is True
        assert decision.attempts_left == 3

    @pytest.mark.integration
    def test_users_counted_separately(self, db: Session, test_user: User, other_user: User, gate, attempt_factory):
        for hour in (8, 9, 10):
            attempt_factory(other_user, start_time=NOON.replace(hour=hour))

        assert gate.authorize(db, test_user.id, QuizCategory.APTITUDE, NOON).allowed is True

    @pytest.mark.integration
    def test_ensure_allowed_raises_with_reset_time(self, db: Session, test_user: User, gate, attempt_factory):
        for hour in (8, 9, 10):
            attempt_factory(test_user, start_time=NOON.replace(hour=hour))

        with pytest.raises(AttemptLimitExceededError) as exc_info:
            gate.ensure_allowed(db, test_user.id, QuizCategory.APTITUDE, NOON)

        assert exc_info.value.next_reset_time == datetime(2026, 10, 20)
        assert exc_info.value.limit == 3


class TestAdmit:
    """Test the atomic counter claimed on submission"""

    @pytest.mark.integration
    def test_admit_returns_ordinal(self, db: Session, test_user: User, gate):
        ordinals = [gate.admit(db, test_user.id, QuizCategory.APTITUDE, NOON) for _ in range(3)]
        assert ordinals == [1, 2, 3]

    @pytest.mark.integration
    def test_admit_refuses_past_limit(self, db: Session, test_user: User, gate):
        for _ in range(3):
            gate.admit(db, test_user.id, QuizCategory.APTITUDE, NOON)

        with pytest.raises(AttemptLimitExceededError):
            gate.admit(db, test_user.id, QuizCategory.APTITUDE, NOON)

        counter = db.query(DailyAttemptCounter).filter(
            DailyAttemptCounter.user_id == test_user.id
        ).one()
        assert counter.attempts == 3

    @pytest.mark.integration
    def test_counter_seeded_from_stored_attempts(self, db: Session, test_user: User, gate, attempt_factory):
        attempt_factory(test_user, start_time=NOON.replace(hour=8))
        attempt_factory(test_user, start_time=NOON.replace(hour=9))

        assert gate.admit(db, test_user.id, QuizCategory.APTITUDE, NOON) == 3
        with pytest.raises(AttemptLimitExceededError):
            gate.admit(db, test_user.id, QuizCategory.APTITUDE, NOON)

    @pytest.mark.integration
    def test_rollback_releases_slot(self, db: Session, test_user: User, gate):
        gate.admit(db, test_user.id, QuizCategory.APTITUDE, NOON)
        db.rollback()

        decision = gate.authorize(db, test_user.id, QuizCategory.APTITUDE, NOON)
        assert decision.attempts_left == 3

    @pytest.mark.integration
    def test_admitted_count_reflected_in_authorize(self, db: Session, test_user: User, gate):
        """Committed admissions count even before the attempt rows are visible"""
        gate.admit(db, test_user.id, QuizCategory.APTITUDE, NOON)
        gate.admit(db, test_user.id, QuizCategory.APTITUDE, NOON)
        db.commit()

        decision = gate.authorize(db, test_user.id, QuizCategory.APTITUDE, NOON)
        assert decision.attempts_used == 2
        assert decision.attempts_left == 1

    @pytest.mark.integration
    def test_new_day_starts_new_counter(self, db: Session, test_user: User, gate):
        for _ in range(3):
            gate.admit(db, test_user.id, QuizCategory.APTITUDE, NOON)

        tomorrow = NOON + timedelta(days=1)
        assert gate.admit(db, test_user.id, QuizCategory.APTITUDE, tomorrow) == 1
