from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Date, DateTime, JSON, ForeignKey, Text,
    Enum, Index, UniqueConstraint, event
)
from sqlalchemy.orm import relationship, object_session
from datetime import datetime
import enum
import uuid
from quizportal.database import Base


def generate_uuid():
    return str(uuid.uuid4())


class QuizCategory(str, enum.Enum):
    """Closed set of quiz subjects shared by questions, attempts and certificates."""
    APTITUDE = "Aptitude"
    LOGICAL_REASONING = "Logical Reasoning"
    TECHNICAL = "Technical"
    GENERAL_KNOWLEDGE = "General Knowledge"


class Difficulty(str, enum.Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


CategoryColumn = Enum(
    QuizCategory, name="quiz_category", values_callable=_enum_values, validate_strings=True
)
DifficultyColumn = Enum(
    Difficulty, name="quiz_difficulty", values_callable=_enum_values, validate_strings=True
)


class User(Base):
    """Local record of an externally issued identity."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_uuid)
    username = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    is_admin = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)

    # Relationships
    attempts = relationship("QuizAttempt", back_populates="user")
    certificates = relationship("Certificate", back_populates="user")


class Question(Base):
    __tablename__ = "questions"

    id = Column(String, primary_key=True, default=generate_uuid)
    question_text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # Ordered list of option strings (>= 2)
    correct_answer = Column(Integer, nullable=False)  # 0-based index into options
    category = Column(CategoryColumn, nullable=False, index=True)
    difficulty = Column(DifficultyColumn, nullable=False, default=Difficulty.MEDIUM, index=True)
    explanation = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class QuizAttempt(Base):
    """
    One scored submission. Append-only: rows are never updated once written.

    `results` holds the ordered per-question outcomes as
    [{"question_id", "selected_answer", "is_correct"}, ...] with
    selected_answer == -1 meaning unanswered.
    """
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        Index("ix_quiz_attempts_user_category_start", "user_id", "category", "start_time"),
    )

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    category = Column(CategoryColumn, nullable=False)
    results = Column(JSON, nullable=False)
    correct_answers = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    total_score = Column(Float, nullable=False)  # Percentage 0-100
    time_taken_seconds = Column(Integer, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    session_id = Column(String, unique=True, nullable=True)  # Presentation token id, when one was used
    created_at = Column(DateTime, default=datetime.now, index=True)

    # Relationships
    user = relationship("User", back_populates="attempts")
    certificate = relationship("Certificate", back_populates="attempt", uselist=False)


@event.listens_for(QuizAttempt, "before_update")
def _reject_attempt_update(mapper, connection, target):
    # Relationship bookkeeping can mark a row dirty without touching its columns
    session = object_session(target)
    if session is not None and session.is_modified(target, include_collections=False):
        raise ValueError(f"Quiz attempt {target.id} is immutable")


class DailyAttemptCounter(Base):
    """Admission counter per (user, category, calendar day), bumped atomically on submit."""
    __tablename__ = "daily_attempt_counters"
    __table_args__ = (
        UniqueConstraint("user_id", "category", "day", name="uq_daily_attempt_counter"),
    )

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    category = Column(CategoryColumn, nullable=False)
    day = Column(Date, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    attempt_id = Column(String, ForeignKey("quiz_attempts.id"), unique=True, nullable=False)
    category = Column(CategoryColumn, nullable=False)
    score = Column(Float, nullable=False)  # Copied from the attempt at issue time
    sequence = Column(Integer, unique=True, nullable=False)
    certificate_number = Column(String, unique=True, nullable=False)  # CERT-YYYYMM-NNNN
    issue_date = Column(DateTime, default=datetime.now, nullable=False)
    created_at = Column(DateTime, default=datetime.now, index=True)

    # Relationships
    user = relationship("User", back_populates="certificates")
    attempt = relationship("QuizAttempt", back_populates="certificate")


class CertificateSequence(Base):
    """Single-row counter backing certificate numbers."""
    __tablename__ = "certificate_sequences"

    name = Column(String, primary_key=True)
    value = Column(Integer, nullable=False, default=0)
