"""
Analytics response schemas.
"""

from datetime import datetime
from typing import List, Dict

from pydantic import BaseModel

from quizportal.models.models import QuizCategory


class CategoryStats(BaseModel):
    total_attempts: int
    total_correct: int
    total_questions: int
    average_score: float  # Question-weighted percentage
    best_score: float
    recent_scores: List[float]  # Newest first, at most 5


class OverallStats(CategoryStats):
    total_quizzes: int
    improvement: float


class RecentActivity(BaseModel):
    attempt_id: str
    category: QuizCategory
    score: float
    date: datetime
    questions_answered: int
    correct_answers: int


class AnalyticsResponse(BaseModel):
    overall: OverallStats
    category_wise: Dict[str, CategoryStats]
    recent_activity: List[RecentActivity]
