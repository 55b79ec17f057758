"""
Translate quiz service exceptions into HTTP errors.

Every router goes through here so the same failure always yields the same
status code and body shape.
"""

from datetime import datetime

from fastapi import HTTPException, status

from quizportal.services.exceptions import (
    QuizError,
    AttemptLimitExceededError,
    DuplicateSubmissionError,
    InvalidSubmissionError,
    NotFoundError,
    PersistenceError,
)


def to_http_exception(error: QuizError) -> HTTPException:
    if isinstance(error, AttemptLimitExceededError):
        seconds_until_reset = max(0, int((error.next_reset_time - datetime.now()).total_seconds()))
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "Rate limit exceeded",
                "message": str(error),
                "limit": error.limit,
                "attempts_left": 0,
                "next_attempt_time": error.next_reset_time.isoformat(),
                "retry_after": seconds_until_reset
            },
            headers={
                "Retry-After": str(seconds_until_reset),
                "X-RateLimit-Limit": str(error.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(error.next_reset_time.timestamp()))
            }
        )
    if isinstance(error, DuplicateSubmissionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, InvalidSubmissionError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, PersistenceError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(error),
            headers={"Retry-After": "5"}
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
