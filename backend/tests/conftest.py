"""
Pytest configuration and fixtures for the Quiz Portal backend tests.

Provides:
- In-memory test database, rebuilt for every test
- FastAPI test client
- User, question and attempt fixtures
- Bearer token helper
"""

import pytest
import os
from typing import Generator, Dict, List, Optional
from datetime import datetime, timedelta
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-not-real-0123456789abcdef"

from quizportal.main import app
from quizportal.database import Base, get_db
from quizportal.models.models import (
    User, Question, QuizAttempt, QuizCategory, Difficulty
)


# Test database setup
TEST_DATABASE_URL = "sqlite://"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Provide a database session on a fresh schema for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Provide FastAPI test client with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =========================================================================
# Auth Helpers
# =========================================================================

def make_token(user_id: str, expires_in: timedelta = timedelta(hours=1), **extra_claims) -> str:
    """Sign an access token the way the identity provider does"""
    claims = {
        "sub": user_id,
        "exp": int((datetime.now() + expires_in).timestamp()),
        **extra_claims
    }
    return jwt.encode(claims, os.environ["JWT_SECRET_KEY"], algorithm="HS256")


def auth_headers_for(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user.id)}"}


# =========================================================================
# User Fixtures
# =========================================================================

@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user"""
    user = User(
        id="test-user-123",
        username="testuser",
        email="test@quizportal.dev"
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db: Session) -> User:
    """A second, unrelated user"""
    user = User(
        id="other-user-456",
        username="otheruser",
        email="other@quizportal.dev"
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user: User) -> Dict[str, str]:
    return auth_headers_for(test_user)


# =========================================================================
# Question Fixtures
# =========================================================================

@pytest.fixture
def aptitude_question(db: Session) -> Question:
    """Single Aptitude question; the correct option is index 1"""
    question = Question(
        id="aptitude-speed",
        question_text="If a train travels 360 kilometers in 4 hours, what is its speed?",
        options=["80", "90", "85", "95"],
        correct_answer=1,
        category=QuizCategory.APTITUDE,
        difficulty=Difficulty.EASY,
        explanation="Speed = Distance/Time = 360/4 = 90"
    )
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


@pytest.fixture
def test_questions_batch(db: Session) -> List[Question]:
    """Three questions per category with varying option counts"""
    questions = []
    for category in QuizCategory:
        for i in range(3):
            options = [f"{category.value} option {j}" for j in range(4 + i % 2)]
            q = Question(
                id=f"{category.name.lower()}-{i}",
                question_text=f"{category.value} question {i}?",
                options=options,
                correct_answer=i % len(options),
                category=category,
                difficulty=[Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD][i],
                explanation=f"Explanation {i}"
            )
            questions.append(q)
            db.add(q)

    db.commit()
    for q in questions:
        db.refresh(q)
    return questions


# =========================================================================
# Attempt Helpers
# =========================================================================

def create_attempt(
    db: Session,
    user: User,
    category: QuizCategory = QuizCategory.APTITUDE,
    correct: int = 1,
    total: int = 1,
    start_time: Optional[datetime] = None,
    created_at: Optional[datetime] = None,
    total_score: Optional[float] = None
) -> QuizAttempt:
    """Insert a stored attempt directly, bypassing the submission flow"""
    start_time = start_time or datetime.now()
    attempt = QuizAttempt(
        user_id=user.id,
        category=category,
        results=[
            {"question_id": f"q-{i}", "selected_answer": 0, "is_correct": i < correct}
            for i in range(total)
        ],
        correct_answers=correct,
        total_questions=total,
        total_score=100 * correct / total if total_score is None else total_score,
        time_taken_seconds=60,
        start_time=start_time,
        end_time=start_time + timedelta(minutes=1),
        created_at=created_at or start_time
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


@pytest.fixture
def attempt_factory(db: Session):
    """create_attempt bound to the test session"""
    def _factory(user: User, **kwargs) -> QuizAttempt:
        return create_attempt(db, user, **kwargs)
    return _factory


@pytest.fixture
def headers_for():
    return auth_headers_for
