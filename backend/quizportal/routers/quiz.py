"""
Quiz Router

API endpoints for the quiz attempt lifecycle: fetching a shuffled question
set, submitting answers, history and analytics.

SECURITY: All endpoints require authentication. User-specific endpoints
are IDOR protected.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quizportal.database import get_db
from quizportal.models.models import User, QuizCategory, Difficulty
from quizportal.dependencies.auth import get_current_user, verify_user_access
from quizportal.schemas.quiz import (
    SubmitQuizRequest,
    SubmitQuizResponse,
    QuizQuestionsResponse,
    QuizHistoryResponse,
    AttemptOut,
    CategoriesResponse,
)
from quizportal.schemas.analytics import AnalyticsResponse
from quizportal.services import analytics
from quizportal.services.attempt_store import get_attempt_store
from quizportal.services.quiz_service import get_quiz_service
from quizportal.services.exceptions import QuizError
from quizportal.utils.http_errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quiz", tags=["quiz"])


@router.get("/categories", response_model=CategoriesResponse)
def get_categories(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List categories that currently have questions."""
    return CategoriesResponse(categories=get_quiz_service().list_categories(db))


@router.post("/submit", response_model=SubmitQuizResponse)
def submit_quiz(
    request: SubmitQuizRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Submit quiz answers for scoring.

    Returns the score and, for scores of 50% or more, the issued certificate.
    Responds 429 with a Retry-After header once today's attempts are used up.
    """
    try:
        result = get_quiz_service().submit(db, current_user.id, request)
    except QuizError as e:
        raise to_http_exception(e)

    return SubmitQuizResponse(**result)


@router.get("/analytics/{user_id}", response_model=AnalyticsResponse)
def get_analytics(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Performance analytics across the user's whole history.

    SECURITY: Users can only read their own analytics.
    """
    verify_user_access(current_user, user_id)
    return analytics.summarize(db, user_id)


@router.get("/history/{user_id}", response_model=QuizHistoryResponse)
def get_quiz_history(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Paginated attempt history, newest first."""
    verify_user_access(current_user, user_id)
    return get_attempt_store().history(db, user_id, page=page, limit=limit)


@router.get("/attempts/{attempt_id}", response_model=AttemptOut)
def get_attempt(
    attempt_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """One attempt with its per-question results."""
    try:
        attempt = get_attempt_store().get(db, attempt_id)
    except QuizError as e:
        raise to_http_exception(e)

    verify_user_access(current_user, attempt.user_id)
    return attempt


@router.get("/{category}", response_model=QuizQuestionsResponse)
def get_questions_by_category(
    category: QuizCategory,
    difficulty: Optional[Difficulty] = None,
    limit: Optional[int] = Query(None, ge=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Fetch a shuffled question set for a new attempt.

    Correct answers are never included. `session_token` must be sent back
    with the submission so display indices can be mapped to canonical ones.
    """
    try:
        return get_quiz_service().fetch_questions(
            db, current_user.id, category, difficulty=difficulty, limit=limit
        )
    except QuizError as e:
        raise to_http_exception(e)
