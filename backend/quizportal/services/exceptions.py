"""
Quiz service exceptions.

Routers translate these into HTTP responses; services never raise
HTTPException themselves.
"""

from datetime import datetime


class QuizError(Exception):
    """Base class for quiz lifecycle failures."""
    pass


class InvalidSubmissionError(QuizError):
    """Malformed submission, out-of-range answer index or unknown question id."""
    pass


class DuplicateSubmissionError(InvalidSubmissionError):
    """The same presented session was already submitted."""
    pass


class AttemptLimitExceededError(QuizError):
    """Daily attempt cap reached for a (user, category) pair."""

    def __init__(self, next_reset_time: datetime, limit: int = 3):
        self.next_reset_time = next_reset_time
        self.limit = limit
        super().__init__(
            f"You have reached the maximum limit of {limit} attempts for today. "
            f"Please try again after {next_reset_time.strftime('%Y-%m-%d %H:%M')}."
        )


class NotFoundError(QuizError):
    pass


class PersistenceError(QuizError):
    """The store could not be written. Safe to retry the whole submission."""
    pass


class CertificateIssuanceError(QuizError):
    """Issuance failed. Never propagated as a submission failure."""
    pass
