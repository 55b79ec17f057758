"""
Quiz Portal Schemas Package

Pydantic models for request/response validation.
"""

from quizportal.schemas.quiz import (
    AnswerIn,
    SubmitQuizRequest,
    DisplayQuestion,
    QuizQuestionsResponse,
    QuestionResultOut,
    CertificateSummary,
    SubmitQuizResponse,
    AttemptOut,
    QuizHistoryResponse,
    CategoriesResponse,
)
from quizportal.schemas.analytics import (
    CategoryStats,
    OverallStats,
    RecentActivity,
    AnalyticsResponse,
)
from quizportal.schemas.certificate import CertificateOut

__all__ = [
    "AnswerIn",
    "SubmitQuizRequest",
    "DisplayQuestion",
    "QuizQuestionsResponse",
    "QuestionResultOut",
    "CertificateSummary",
    "SubmitQuizResponse",
    "AttemptOut",
    "QuizHistoryResponse",
    "CategoriesResponse",
    "CategoryStats",
    "OverallStats",
    "RecentActivity",
    "AnalyticsResponse",
    "CertificateOut",
]
