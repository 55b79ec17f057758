"""
Quiz Analytics Aggregator

Derives dashboard statistics from a user's full attempt history:
- Per-category totals, question-weighted average, best score, recent scores
- Overall totals across all categories
- Improvement trend (last 5 attempts vs the 5 before them)
- Recent activity feed

Read-only. A user with no history gets zeroed stats.
"""

from typing import Dict, List, Any, Sequence

from sqlalchemy.orm import Session

from quizportal.models.models import QuizAttempt, QuizCategory
from quizportal.services.attempt_store import get_attempt_store

RECENT_WINDOW = 5


def attempt_percentage(attempt: QuizAttempt) -> float:
    """Per-attempt (not question-weighted) percentage."""
    if not attempt.total_questions:
        return 0.0
    return 100 * attempt.correct_answers / attempt.total_questions


def _empty_stats() -> Dict[str, Any]:
    return {
        "total_attempts": 0,
        "total_correct": 0,
        "total_questions": 0,
        "average_score": 0.0,
        "best_score": 0.0,
        "recent_scores": [],
    }


def _accumulate(stats: Dict[str, Any], attempt: QuizAttempt) -> None:
    percentage = attempt_percentage(attempt)
    stats["total_attempts"] += 1
    stats["total_correct"] += attempt.correct_answers
    stats["total_questions"] += attempt.total_questions
    stats["best_score"] = max(stats["best_score"], percentage)
    if len(stats["recent_scores"]) < RECENT_WINDOW:
        stats["recent_scores"].append(percentage)


def _finalize(stats: Dict[str, Any]) -> None:
    # Question-weighted: a 20-question quiz counts more than a 5-question one
    if stats["total_questions"] > 0:
        stats["average_score"] = 100 * stats["total_correct"] / stats["total_questions"]


def calculate_improvement(scores_newest_first: Sequence[float]) -> float:
    """
    Mean of the latest RECENT_WINDOW scores minus mean of the RECENT_WINDOW
    before them. 0 with fewer than 2 scores or no older window.
    """
    if len(scores_newest_first) < 2:
        return 0.0

    recent = scores_newest_first[:RECENT_WINDOW]
    older = scores_newest_first[RECENT_WINDOW:RECENT_WINDOW * 2]
    if not older:
        return 0.0

    return sum(recent) / len(recent) - sum(older) / len(older)


def aggregate_attempts(attempts: Sequence[QuizAttempt]) -> Dict[str, Any]:
    """
    Build the analytics summary from attempts ordered newest first.
    """
    category_wise = {category.value: _empty_stats() for category in QuizCategory}
    overall = _empty_stats()

    for attempt in attempts:
        category = QuizCategory(attempt.category).value
        _accumulate(category_wise[category], attempt)
        _accumulate(overall, attempt)

    for stats in category_wise.values():
        _finalize(stats)
    _finalize(overall)

    overall["total_quizzes"] = len(attempts)
    overall["improvement"] = calculate_improvement([a.total_score for a in attempts])

    recent_activity = [
        {
            "attempt_id": attempt.id,
            "category": QuizCategory(attempt.category).value,
            "score": attempt_percentage(attempt),
            "date": attempt.end_time or attempt.created_at,
            "questions_answered": attempt.total_questions,
            "correct_answers": attempt.correct_answers,
        }
        for attempt in attempts[:RECENT_WINDOW]
    ]

    return {
        "overall": overall,
        "category_wise": category_wise,
        "recent_activity": recent_activity,
    }


def summarize(db: Session, user_id: str) -> Dict[str, Any]:
    """
    Analytics summary for a user across their whole history.

    Returns:
        - overall: totals, question-weighted average_score, best_score,
          recent_scores, total_quizzes, improvement
        - category_wise: the same stats keyed by every category
        - recent_activity: the 5 most recent attempts
    """
    attempts = get_attempt_store().list_for_user(db, user_id)
    return aggregate_attempts(attempts)
