"""
Scoring engine: classify answers, apply negative marking, derive pass status.

Pure functions over an attempt snapshot. Correct answers are worth 1 mark,
wrong answers cost test.negative_marks_value when negative marking is on,
skipped questions are worth nothing. The score is floored at zero.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from mocktest.models import AnswerEntry, Question, Test

logger = logging.getLogger(__name__)

SCORE_CORRECT = Decimal("1")
ZERO = Decimal("0")

STATUS_CORRECT = "correct"
STATUS_WRONG = "wrong"
STATUS_SKIPPED = "skipped"


@dataclass(frozen=True)
class ScoreResult:
    correct_count: int
    wrong_count: int
    skipped_count: int
    score: float
    max_score: float
    percentage: float
    is_passed: bool
    time_taken_seconds: int

    @property
    def total_questions(self) -> int:
        return self.correct_count + self.wrong_count + self.skipped_count

    def to_row(self) -> Dict:
        """Column values written to test_attempts when the attempt completes."""
        return {
            "correct_answers": self.correct_count,
            "wrong_answers": self.wrong_count,
            "skipped_answers": self.skipped_count,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "is_passed": self.is_passed,
            "time_taken_seconds": self.time_taken_seconds,
        }


@dataclass(frozen=True)
class QuestionReview:
    """One row of the post-test review list."""
    question: Question
    status: str
    selected: str
    marked: bool

    @property
    def correct_option(self) -> str:
        return self.question.correct_option

    @property
    def explanation(self) -> Optional[str]:
        return self.question.explanation


def classify(question: Question, entry: Optional[AnswerEntry]) -> str:
    if entry is None or not entry.selected:
        return STATUS_SKIPPED
    if entry.selected == question.correct_option:
        return STATUS_CORRECT
    return STATUS_WRONG


def score_attempt(
    test: Test,
    questions: Sequence[Question],
    answers: Mapping[str, AnswerEntry],
    remaining_seconds: int = 0,
) -> ScoreResult:
    """
    Compute the terminal result of an attempt.

    Args:
        test: Test being attempted (negative marking policy, pass mark, duration)
        questions: The attempt's fixed question list
        answers: Answer map keyed by question id
        remaining_seconds: Countdown value at submission time

    Raises:
        ValueError: questions is empty (percentage would divide by zero)
    """
    if not questions:
        raise ValueError("Cannot score an attempt with zero questions")

    counts = {STATUS_CORRECT: 0, STATUS_WRONG: 0, STATUS_SKIPPED: 0}
    for question in questions:
        counts[classify(question, answers.get(question.id))] += 1

    correct = counts[STATUS_CORRECT]
    wrong = counts[STATUS_WRONG]

    score = correct * SCORE_CORRECT
    if test.negative_marking:
        score -= wrong * Decimal(str(test.negative_marks_value))
    score = max(ZERO, score)

    max_score = Decimal(len(questions))
    percentage = score / max_score * 100
    is_passed = percentage >= Decimal(str(test.passing_percentage))

    duration = test.duration_seconds
    time_taken = min(duration, max(0, duration - int(remaining_seconds)))

    result = ScoreResult(
        correct_count=correct,
        wrong_count=wrong,
        skipped_count=counts[STATUS_SKIPPED],
        score=float(score),
        max_score=float(max_score),
        percentage=float(percentage),
        is_passed=is_passed,
        time_taken_seconds=time_taken,
    )
    logger.debug(
        "Scored test %s: %d correct, %d wrong, %d skipped -> %.2f/%.0f",
        test.id, result.correct_count, result.wrong_count, result.skipped_count,
        result.score, result.max_score,
    )
    return result


def review_attempt(questions: Sequence[Question], answers: Mapping[str, AnswerEntry]) -> List[QuestionReview]:
    """Per-question outcome in attempt order, for the result page."""
    reviews = []
    for question in questions:
        entry = answers.get(question.id) or AnswerEntry()
        reviews.append(QuestionReview(
            question=question,
            status=classify(question, entry),
            selected=entry.selected,
            marked=entry.marked,
        ))
    return reviews


def format_clock(seconds: int) -> str:
    """Countdown display, MM:SS."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


def format_duration(seconds: int) -> str:
    """Time taken display, e.g. '12m 5s'."""
    minutes, secs = divmod(max(0, int(seconds or 0)), 60)
    return f"{minutes}m {secs}s"
