"""
Shuffle Codec.

Randomizes question order and per-question option order for presentation,
and maps the user's display-index selections back to canonical indices.

The reverse map is generated fresh for every presentation and handed to the
client as a signed token, so a cached shuffle can never be replayed and a
tampered mapping is rejected. Grading itself always runs on canonical
Question data.
"""

import os
import random
import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Dict, Any, Optional, Sequence

from jose import jwt, JWTError

from quizportal.models.models import Question, QuizCategory, Difficulty
from quizportal.services.exceptions import InvalidSubmissionError
from quizportal.services.scoring import Answer, UNANSWERED

logger = logging.getLogger(__name__)

JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
SHUFFLE_TOKEN_TTL_MINUTES = int(os.getenv("SHUFFLE_TOKEN_TTL_MINUTES", "180"))
TOKEN_TYPE = "quiz_session"


@dataclass
class Presentation:
    """
    A shuffled quiz ready to send to the client.

    reverse_map[question_id][display_index] is the canonical option index.
    display_questions never carry the correct answer.
    """
    display_questions: List[Dict[str, Any]]
    reverse_map: Dict[str, List[int]]
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class SessionMapping:
    session_id: str
    reverse_map: Dict[str, List[int]]


class ShuffleCodec:

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: str = JWT_ALGORITHM,
        ttl_minutes: int = SHUFFLE_TOKEN_TTL_MINUTES
    ):
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = timedelta(minutes=ttl_minutes)

    @property
    def secret(self) -> str:
        if self._secret is None:
            self._secret = os.getenv("JWT_SECRET_KEY", "").strip()
        if not self._secret:
            raise RuntimeError("JWT_SECRET_KEY must be set to sign quiz session tokens")
        return self._secret

    def present(self, questions: Sequence[Question], rng: Optional[random.Random] = None) -> Presentation:
        """
        Shuffle questions and each question's options.

        random.shuffle is a Fisher-Yates shuffle; the default generator is
        SystemRandom so presentations are not reproducible from process state.
        """
        rng = rng or random.SystemRandom()

        ordered = list(questions)
        rng.shuffle(ordered)

        display_questions = []
        reverse_map: Dict[str, List[int]] = {}
        for question in ordered:
            permutation = list(range(len(question.options)))
            rng.shuffle(permutation)

            reverse_map[question.id] = permutation
            display_questions.append({
                "id": question.id,
                "question_text": question.question_text,
                "options": [question.options[i] for i in permutation],
                "category": QuizCategory(question.category).value,
                "difficulty": Difficulty(question.difficulty).value if question.difficulty else None,
            })

        return Presentation(display_questions=display_questions, reverse_map=reverse_map)

    def ensure_complete(self, display_answers: Sequence[Answer], reverse_map: Dict[str, List[int]]) -> None:
        """
        Require one answer per presented question, no more and no fewer.

        Questions left blank must still be sent, as -1.
        """
        answered = {answer.question_id for answer in display_answers}

        unexpected = answered - reverse_map.keys()
        if unexpected:
            raise InvalidSubmissionError(
                f"Question {sorted(unexpected)[0]} was not part of this quiz session"
            )

        missing = reverse_map.keys() - answered
        if missing:
            raise InvalidSubmissionError(
                f"Submission is missing {len(missing)} of {len(reverse_map)} presented questions"
            )

    def to_canonical(self, display_answers: Sequence[Answer], reverse_map: Dict[str, List[int]]) -> List[Answer]:
        """
        Map display-index answers back to canonical option indices.

        Unanswered (-1) passes through without a lookup.
        """
        canonical = []
        for answer in display_answers:
            mapping = reverse_map.get(answer.question_id)
            if mapping is None:
                raise InvalidSubmissionError(
                    f"Question {answer.question_id} was not part of this quiz session"
                )

            selected = answer.selected_answer
            if selected == UNANSWERED:
                canonical.append(answer)
                continue

            if isinstance(selected, bool) or not isinstance(selected, int) or not 0 <= selected < len(mapping):
                raise InvalidSubmissionError(
                    f"Invalid answer value for question {answer.question_id}"
                )
            canonical.append(Answer(answer.question_id, mapping[selected]))

        return canonical

    # =========================================================================
    # Session tokens
    # =========================================================================

    def encode_token(
        self,
        presentation: Presentation,
        user_id: str,
        category: QuizCategory,
        now: Optional[datetime] = None
    ) -> str:
        now = now or datetime.now()
        claims = {
            "typ": TOKEN_TYPE,
            "sub": user_id,
            "cat": category.value,
            "sid": presentation.session_id,
            "map": presentation.reverse_map,
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def decode_token(self, token: str, user_id: str, category: QuizCategory) -> SessionMapping:
        """
        Verify a session token and return its mapping.

        Raises:
            InvalidSubmissionError: If the token is expired, tampered with, or
                was issued for another user or category.
        """
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning("Rejected quiz session token: %s", e)
            raise InvalidSubmissionError("Invalid or expired quiz session token") from e

        if claims.get("typ") != TOKEN_TYPE or claims.get("sub") != user_id:
            raise InvalidSubmissionError("Quiz session token does not belong to this user")
        if claims.get("cat") != category.value:
            raise InvalidSubmissionError("Quiz session token was issued for another category")

        reverse_map = claims.get("map")
        if not isinstance(reverse_map, dict) or not claims.get("sid"):
            raise InvalidSubmissionError("Malformed quiz session token")

        return SessionMapping(session_id=claims["sid"], reverse_map=reverse_map)


# Singleton instance
_shuffle_codec: Optional[ShuffleCodec] = None


def get_shuffle_codec() -> ShuffleCodec:
    """Get the singleton ShuffleCodec instance."""
    global _shuffle_codec
    if _shuffle_codec is None:
        _shuffle_codec = ShuffleCodec()
    return _shuffle_codec
