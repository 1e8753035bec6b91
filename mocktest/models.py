"""
Typed views over the rows stored in the remote tables.
Rows arrive as plain dicts from Supabase; each model has a from_row() parser.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from mocktest.config import OPTION_LETTERS


def parse_timestamp(value) -> Optional[datetime]:
    """Parse a Postgres timestamptz string (or pass a datetime through)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Test:
    id: str
    title: str
    duration_minutes: int
    total_questions: int
    negative_marking: bool = False
    negative_marks_value: float = 0.0
    passing_percentage: float = 0.0

    @property
    def duration_seconds(self) -> int:
        return int(self.duration_minutes) * 60

    @classmethod
    def from_row(cls, row: Dict) -> "Test":
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            duration_minutes=int(row.get("duration_minutes") or 0),
            total_questions=int(row.get("total_questions") or 0),
            negative_marking=bool(row.get("negative_marking")),
            negative_marks_value=float(row.get("negative_marks_value") or 0),
            passing_percentage=float(row.get("passing_percentage") or 0),
        )


@dataclass(frozen=True)
class Question:
    id: str
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    correct_option: str
    explanation: Optional[str] = None
    difficulty: str = "medium"

    @property
    def options(self) -> Dict[str, str]:
        """Option texts keyed by letter, in display order."""
        texts = (self.option_a, self.option_b, self.option_c, self.option_d)
        return dict(zip(OPTION_LETTERS, texts))

    @classmethod
    def from_row(cls, row: Dict) -> "Question":
        return cls(
            id=str(row["id"]),
            question_text=row.get("question_text") or "",
            option_a=row.get("option_a") or "",
            option_b=row.get("option_b") or "",
            option_c=row.get("option_c") or "",
            option_d=row.get("option_d") or "",
            correct_option=(row.get("correct_option") or "").strip().upper(),
            explanation=row.get("explanation"),
            difficulty=row.get("difficulty") or "medium",
        )


@dataclass(frozen=True)
class AnswerEntry:
    """One answer-map value: selected letter ("" when unanswered) and review flag."""
    selected: str = ""
    marked: bool = False

    @property
    def answered(self) -> bool:
        return bool(self.selected)

    def to_dict(self) -> Dict:
        return {"selected": self.selected, "marked": self.marked}

    @classmethod
    def from_dict(cls, raw) -> "AnswerEntry":
        if not isinstance(raw, dict):
            return cls()
        selected = raw.get("selected") or ""
        if selected not in OPTION_LETTERS:
            selected = ""
        return cls(selected=selected, marked=bool(raw.get("marked")))


def answers_from_json(raw, question_ids: Optional[List[str]] = None) -> Dict[str, AnswerEntry]:
    """
    Parse the persisted answers column.
    Anything that is not an object becomes an empty map; keys outside
    question_ids (when given) are dropped.
    """
    if not isinstance(raw, dict):
        return {}
    allowed = set(question_ids) if question_ids is not None else None
    answers = {}
    for question_id, value in raw.items():
        if allowed is not None and question_id not in allowed:
            continue
        answers[str(question_id)] = AnswerEntry.from_dict(value)
    return answers


def answers_to_json(answers: Dict[str, AnswerEntry]) -> Dict[str, Dict]:
    return {question_id: entry.to_dict() for question_id, entry in answers.items()}


@dataclass
class Attempt:
    id: str
    user_id: str
    test_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    question_ids: List[str] = field(default_factory=list)
    answers: Dict[str, AnswerEntry] = field(default_factory=dict)
    total_questions: int = 0
    max_score: float = 0.0
    correct_answers: int = 0
    wrong_answers: int = 0
    skipped_answers: int = 0
    score: float = 0.0
    percentage: float = 0.0
    is_passed: Optional[bool] = None
    time_taken_seconds: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.completed_at is None

    @classmethod
    def from_row(cls, row: Dict) -> "Attempt":
        question_ids = row.get("question_ids")
        if not isinstance(question_ids, list):
            question_ids = []
        question_ids = [str(q) for q in question_ids]
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id") or ""),
            test_id=str(row.get("test_id") or ""),
            started_at=parse_timestamp(row.get("started_at")) or datetime.now(timezone.utc),
            completed_at=parse_timestamp(row.get("completed_at")),
            question_ids=question_ids,
            answers=answers_from_json(row.get("answers"), question_ids or None),
            total_questions=int(row.get("total_questions") or 0),
            max_score=float(row.get("max_score") or 0),
            correct_answers=int(row.get("correct_answers") or 0),
            wrong_answers=int(row.get("wrong_answers") or 0),
            skipped_answers=int(row.get("skipped_answers") or 0),
            score=float(row.get("score") or 0),
            percentage=float(row.get("percentage") or 0),
            is_passed=row.get("is_passed"),
            time_taken_seconds=row.get("time_taken_seconds"),
        )
