"""
Certificate response schemas.
"""

from datetime import datetime

from pydantic import BaseModel

from quizportal.models.models import QuizCategory


class CertificateOut(BaseModel):
    id: str
    user_id: str
    attempt_id: str
    category: QuizCategory
    score: float
    certificate_number: str
    issue_date: datetime

    class Config:
        from_attributes = True
