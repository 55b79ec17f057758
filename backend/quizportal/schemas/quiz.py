"""
Quiz request/response schemas.
"""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field, StrictInt, field_validator, model_validator

from quizportal.models.models import QuizCategory, Difficulty


class AnswerIn(BaseModel):
    question_id: str = Field(..., min_length=1)
    selected_answer: StrictInt = Field(..., ge=-1)  # -1 = unanswered


class SubmitQuizRequest(BaseModel):
    category: QuizCategory
    answers: List[AnswerIn] = Field(..., min_length=1)
    time_taken_seconds: StrictInt = Field(..., ge=0)
    start_time: datetime
    end_time: datetime
    # Signed shuffle mapping from the fetch response. When present, answers
    # are display indices; when absent they must already be canonical.
    session_token: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def to_server_local(cls, value: datetime) -> datetime:
        """Store naive server-local times; day boundaries are server-local."""
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value

    @model_validator(mode="after")
    def check_time_order(self):
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class DisplayQuestion(BaseModel):
    id: str
    question_text: str
    options: List[str]
    category: QuizCategory
    difficulty: Optional[Difficulty] = None


class QuizQuestionsResponse(BaseModel):
    category: QuizCategory
    questions: List[DisplayQuestion]
    attempts_left: int
    next_attempt_time: Optional[datetime] = None
    session_token: str


class QuestionResultOut(BaseModel):
    question_id: str
    selected_answer: int
    is_correct: bool


class CertificateSummary(BaseModel):
    id: str
    certificate_number: str

    class Config:
        from_attributes = True


class SubmitQuizResponse(BaseModel):
    attempt_id: str
    category: QuizCategory
    total_questions: int
    correct_answers: int
    score: float
    time_taken_seconds: int
    results: List[QuestionResultOut]
    certificate: Optional[CertificateSummary] = None


class AttemptOut(BaseModel):
    id: str
    category: QuizCategory
    total_questions: int
    correct_answers: int
    total_score: float
    time_taken_seconds: int
    start_time: datetime
    end_time: datetime
    created_at: datetime
    results: List[QuestionResultOut]

    class Config:
        from_attributes = True


class QuizHistoryResponse(BaseModel):
    attempts: List[AttemptOut]
    total: int
    total_pages: int
    current_page: int


class CategoriesResponse(BaseModel):
    categories: List[QuizCategory]
