"""
Quiz Attempt Lifecycle.

Fetch:  gate.authorize -> select questions -> shuffle -> sign session token
Submit: gate re-check -> unshuffle -> score -> gate.admit + store.record
        (one transaction) -> best-effort certificate issuance

No server-side session state bridges fetch and submit. The shuffle mapping
rides in the signed token, and admission is re-validated at submit time.
"""

import os
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from quizportal.models.models import Question, QuizCategory, Difficulty
from quizportal.schemas.quiz import SubmitQuizRequest
from quizportal.services.attempt_gate import AttemptGate, get_attempt_gate
from quizportal.services.attempt_store import AttemptStore, get_attempt_store
from quizportal.services.certificate_issuer import CertificateIssuer, get_certificate_issuer
from quizportal.services.shuffle_codec import ShuffleCodec, get_shuffle_codec
from quizportal.services.scoring import Answer, score
from quizportal.services.exceptions import (
    AttemptLimitExceededError,
    CertificateIssuanceError,
    DuplicateSubmissionError,
    InvalidSubmissionError,
    NotFoundError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

DEFAULT_QUESTION_LIMIT = int(os.getenv("DEFAULT_QUESTION_LIMIT", "10"))
MAX_QUESTION_LIMIT = int(os.getenv("MAX_QUESTION_LIMIT", "50"))


class QuizService:

    def __init__(
        self,
        gate: Optional[AttemptGate] = None,
        codec: Optional[ShuffleCodec] = None,
        store: Optional[AttemptStore] = None,
        issuer: Optional[CertificateIssuer] = None
    ):
        self.gate = gate or get_attempt_gate()
        self.codec = codec or get_shuffle_codec()
        self.store = store or get_attempt_store()
        self.issuer = issuer or get_certificate_issuer()

    def list_categories(self, db: Session) -> List[QuizCategory]:
        """Categories that currently have at least one question, in enum order."""
        present = {
            QuizCategory(row[0])
            for row in db.query(Question.category).distinct().all()
        }
        return [category for category in QuizCategory if category in present]

    def fetch_questions(
        self,
        db: Session,
        user_id: str,
        category: QuizCategory,
        difficulty: Optional[Difficulty] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Select and shuffle a bounded question set for one attempt.

        Raises:
            AttemptLimitExceededError: If today's cap for the category is used up.
            NotFoundError: If no question matches the category/difficulty.
        """
        now = now or datetime.now()
        decision = self.gate.ensure_allowed(db, user_id, category, now)

        limit = min(max(1, limit or DEFAULT_QUESTION_LIMIT), MAX_QUESTION_LIMIT)
        query = db.query(Question).filter(Question.category == category)
        if difficulty:
            query = query.filter(Question.difficulty == difficulty)
        questions = query.order_by(func.random()).limit(limit).all()

        if not questions:
            raise NotFoundError(f"No questions found for category {category.value}")

        presentation = self.codec.present(questions)
        session_token = self.codec.encode_token(presentation, user_id, category, now)

        logger.info(
            "Served %d %s questions to user=%s (%d attempts left)",
            len(questions), category.value, user_id, decision.attempts_left
        )
        return {
            "category": category,
            "questions": presentation.display_questions,
            "attempts_left": decision.attempts_left,
            "next_attempt_time": None,
            "session_token": session_token,
        }

    def _load_questions(self, db: Session, category: QuizCategory, answers: List[Answer]) -> List[Question]:
        question_ids = list({answer.question_id for answer in answers})
        questions = db.query(Question).filter(Question.id.in_(question_ids)).all()

        if len(questions) != len(question_ids):
            found = {question.id for question in questions}
            missing = [qid for qid in question_ids if qid not in found]
            raise InvalidSubmissionError(f"Question not found: {', '.join(sorted(missing))}")

        for question in questions:
            if question.category != category:
                raise InvalidSubmissionError(
                    f"Question {question.id} does not belong to category {category.value}"
                )
        return questions

    def submit(
        self,
        db: Session,
        user_id: str,
        submission: SubmitQuizRequest,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Score and record one quiz submission.

        Certificate issuance is best effort: a failure is logged and the
        scored attempt is still returned.

        Raises:
            AttemptLimitExceededError: Cap reached (checked again atomically on write).
            InvalidSubmissionError: Bad answers, unknown questions or a bad token.
            DuplicateSubmissionError: The session token was already used.
            PersistenceError: The attempt could not be stored.
        """
        now = now or datetime.now()
        category = submission.category

        self.gate.ensure_allowed(db, user_id, category, now)

        answers = [Answer(a.question_id, a.selected_answer) for a in submission.answers]
        session_id = None
        if submission.session_token:
            mapping = self.codec.decode_token(submission.session_token, user_id, category)
            self.codec.ensure_complete(answers, mapping.reverse_map)
            answers = self.codec.to_canonical(answers, mapping.reverse_map)
            session_id = mapping.session_id
            if self.store.session_used(db, session_id):
                raise DuplicateSubmissionError("This quiz session has already been submitted")

        questions = self._load_questions(db, category, answers)
        scored = score(questions, answers)

        try:
            self.gate.admit(db, user_id, category, now)
            attempt = self.store.record(
                db,
                user_id=user_id,
                category=category,
                scored=scored,
                time_taken_seconds=submission.time_taken_seconds,
                start_time=submission.start_time,
                end_time=submission.end_time,
                session_id=session_id,
                now=now
            )
            db.commit()
        except AttemptLimitExceededError:
            db.rollback()
            raise
        except IntegrityError as e:
            db.rollback()
            if session_id is not None:
                logger.warning("Duplicate submission of session %s by user=%s", session_id, user_id)
                raise DuplicateSubmissionError("This quiz session has already been submitted") from e
            raise PersistenceError("Failed to save quiz attempt") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to save quiz attempt for user=%s: %s", user_id, e)
            raise PersistenceError("Failed to save quiz attempt") from e

        db.refresh(attempt)
        response = {
            "attempt_id": attempt.id,
            "category": category,
            "total_questions": scored.total_questions,
            "correct_answers": scored.total_correct,
            "score": scored.total_score,
            "time_taken_seconds": attempt.time_taken_seconds,
            "results": scored.results_as_dicts(),
            "certificate": None,
        }

        # The attempt is committed; certificate problems must not fail the submission
        try:
            certificate = self.issuer.issue_if_eligible(db, attempt, now)
            if certificate:
                response["certificate"] = {
                    "id": certificate.id,
                    "certificate_number": certificate.certificate_number,
                }
        except CertificateIssuanceError:
            logger.exception("Certificate issuance failed for attempt %s", response["attempt_id"])

        return response


# Singleton instance
_quiz_service: Optional[QuizService] = None


def get_quiz_service() -> QuizService:
    """Get the singleton QuizService instance."""
    global _quiz_service
    if _quiz_service is None:
        _quiz_service = QuizService()
    return _quiz_service
