"""
Load the question bank from JSON into the database.

Usage:
    python load_questions.py                       # data/sample_questions.json
    python load_questions.py path/to/bank.json --replace
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Tuple

# Add backend directory to path
sys.path.insert(0, str(Path(__file__).parent))

from sqlalchemy.orm import Session

from quizportal.database import SessionLocal, engine, Base
from quizportal.models.models import Question, QuizCategory, Difficulty

logger = logging.getLogger(__name__)

DEFAULT_JSON_PATH = Path(__file__).parent / "data" / "sample_questions.json"


def parse_question(q_data: Dict[str, Any]) -> Question:
    """
    Build a Question from one JSON record.

    Raises:
        ValueError: If the record is not a usable multiple-choice question.
    """
    text = str(q_data.get("question_text", "")).strip()
    if not text:
        raise ValueError("missing question_text")

    options = q_data.get("options")
    if not isinstance(options, list) or len(options) < 2:
        raise ValueError("options must be a list of at least 2 entries")
    options = [str(option).strip() for option in options]

    correct_answer = q_data.get("correct_answer")
    if isinstance(correct_answer, bool) or not isinstance(correct_answer, int):
        raise ValueError("correct_answer must be an integer index")
    if not 0 <= correct_answer < len(options):
        raise ValueError(f"correct_answer {correct_answer} out of range for {len(options)} options")

    # Enum lookups raise ValueError for unknown names
    category = QuizCategory(q_data.get("category"))
    difficulty = Difficulty(q_data.get("difficulty") or Difficulty.MEDIUM.value)

    return Question(
        question_text=text,
        options=options,
        correct_answer=correct_answer,
        category=category,
        difficulty=difficulty,
        explanation=q_data.get("explanation")
    )


def load_questions_from_json(db: Session, json_path: Path, replace: bool = False) -> Tuple[int, int]:
    """
    Load questions from a JSON file shaped like {"questions": [...]} or [...].

    Returns:
        (loaded, skipped)
    """
    with open(json_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict) and "questions" in data:
        questions_data = data["questions"]
    else:
        questions_data = data

    logger.info("Found %d questions in %s", len(questions_data), json_path)

    try:
        if replace:
            deleted = db.query(Question).delete()
            logger.info("Cleared %d existing questions", deleted)

        loaded = 0
        skipped = 0
        for index, q_data in enumerate(questions_data):
            try:
                db.add(parse_question(q_data))
                loaded += 1
            except ValueError as e:
                logger.warning("Skipping question #%d: %s", index, e)
                skipped += 1

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Loaded %d questions (%d skipped)", loaded, skipped)
    return loaded, skipped


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Load quiz questions from JSON")
    parser.add_argument("json_path", nargs="?", type=Path, default=DEFAULT_JSON_PATH)
    parser.add_argument("--replace", action="store_true", help="Delete existing questions first")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not args.json_path.exists():
        logger.error("%s not found", args.json_path)
        return 1

    # Create tables if they don't exist
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        loaded, skipped = load_questions_from_json(db, args.json_path, replace=args.replace)
        total = db.query(Question).count()
        logger.info("Verified: %d questions in database", total)
    finally:
        db.close()

    return 0 if loaded else 1


if __name__ == "__main__":
    sys.exit(main())
