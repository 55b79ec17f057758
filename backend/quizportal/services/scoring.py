"""
Scoring Engine.

Pure computation: validates canonical answers against the fetched questions
and produces per-question correctness plus an aggregate percentage. Nothing
is persisted here.
"""

from dataclasses import dataclass, asdict
from typing import List, Dict, Any, NamedTuple, Sequence, Mapping

from quizportal.models.models import Question
from quizportal.services.exceptions import InvalidSubmissionError

UNANSWERED = -1


class Answer(NamedTuple):
    question_id: str
    selected_answer: int


@dataclass
class QuestionResult:
    question_id: str
    selected_answer: int
    is_correct: bool


@dataclass
class ScoreResult:
    results: List[QuestionResult]
    total_correct: int
    total_questions: int
    total_score: float  # Percentage 0-100

    def results_as_dicts(self) -> List[Dict[str, Any]]:
        return [asdict(result) for result in self.results]


def validate_answers(questions_by_id: Mapping[str, Question], answers: Sequence[Answer]) -> None:
    """
    Check every answer resolves to a fetched question with an in-range index.

    Raises:
        InvalidSubmissionError: On the first violation found.
    """
    if not answers:
        raise InvalidSubmissionError("Submission contains no answers")

    seen = set()
    for answer in answers:
        question = questions_by_id.get(answer.question_id)
        if question is None:
            raise InvalidSubmissionError(f"Question not found: {answer.question_id}")

        if answer.question_id in seen:
            raise InvalidSubmissionError(f"Question {answer.question_id} answered more than once")
        seen.add(answer.question_id)

        selected = answer.selected_answer
        # bool is an int subclass; True must not mean option 1
        if isinstance(selected, bool) or not isinstance(selected, int):
            raise InvalidSubmissionError(f"Invalid answer value for question {answer.question_id}")
        if selected < UNANSWERED or selected >= len(question.options):
            raise InvalidSubmissionError(f"Invalid answer value for question {answer.question_id}")


def score(questions: Sequence[Question], answers: Sequence[Answer]) -> ScoreResult:
    """
    Score canonical answers.

    is_correct is true iff the question was answered and the selected index
    equals the stored correct index. total_score = 100 * correct / len(answers).
    Results keep the order of `answers`.
    """
    questions_by_id = {question.id: question for question in questions}
    validate_answers(questions_by_id, answers)

    results = []
    total_correct = 0
    for answer in answers:
        question = questions_by_id[answer.question_id]
        is_correct = (
            answer.selected_answer != UNANSWERED
            and answer.selected_answer == question.correct_answer
        )
        if is_correct:
            total_correct += 1
        results.append(QuestionResult(
            question_id=answer.question_id,
            selected_answer=answer.selected_answer,
            is_correct=is_correct
        ))

    total_questions = len(answers)
    return ScoreResult(
        results=results,
        total_correct=total_correct,
        total_questions=total_questions,
        total_score=100 * total_correct / total_questions
    )
