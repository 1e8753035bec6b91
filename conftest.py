"""Shared fakes: an in-memory attempt store and a minimal Supabase query builder."""
import copy
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from mocktest import ManualScheduler, StoreError
from mocktest.models import Attempt, Question, Test

NOW = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def make_test(**overrides) -> Test:
    values = {
        "id": "test-1",
        "title": "Physics Full Length",
        "duration_minutes": 5,
        "total_questions": 10,
        "negative_marking": True,
        "negative_marks_value": 0.25,
        "passing_percentage": 50,
    }
    values.update(overrides)
    return Test(**values)


def make_questions(n: int = 10, correct: str = "A"):
    return [
        Question(
            id=f"q{i}",
            question_text=f"Question {i}?",
            option_a="alpha",
            option_b="beta",
            option_c="gamma",
            option_d="delta",
            correct_option=correct,
            explanation=f"Because {i}",
            difficulty="easy" if i % 2 else "hard",
        )
        for i in range(1, n + 1)
    ]


class InMemoryStore:
    """AttemptStore over dicts, with failure injection and a write log."""

    def __init__(self, test: Test, questions, clock=lambda: NOW):
        self.tests = {test.id: test}
        self.questions = {test.id: list(questions)}
        self.attempts = {}
        self.clock = clock
        self.answer_writes = []
        self.complete_calls = []
        self.fail_updates = 0
        self.fail_completes = 0
        self.on_complete = None

    def get_test(self, test_id):
        return self.tests.get(test_id)

    def get_questions_for_test(self, test_id):
        return list(self.questions.get(test_id, []))

    def get_open_attempt(self, user_id, test_id):
        for attempt in self.attempts.values():
            if attempt.user_id == user_id and attempt.test_id == test_id and attempt.is_open:
                return copy.deepcopy(attempt)
        return None

    def create_attempt(self, user_id, test_id, total_questions, question_ids):
        for attempt in self.attempts.values():
            if attempt.user_id == user_id and attempt.test_id == test_id and attempt.is_open:
                raise StoreError("duplicate key value violates unique constraint", code="23505")
        attempt = Attempt(
            id=str(uuid4()),
            user_id=user_id,
            test_id=test_id,
            started_at=self.clock(),
            question_ids=list(question_ids),
            total_questions=total_questions,
            max_score=total_questions,
        )
        self.attempts[attempt.id] = attempt
        return copy.deepcopy(attempt)

    def add_attempt(self, attempt: Attempt):
        self.attempts[attempt.id] = attempt
        return attempt

    def get_attempt(self, attempt_id):
        attempt = self.attempts.get(attempt_id)
        return copy.deepcopy(attempt) if attempt else None

    def update_attempt_answers(self, attempt_id, answers):
        if self.fail_updates:
            self.fail_updates -= 1
            raise StoreError("network down")
        self.answer_writes.append((attempt_id, copy.deepcopy(answers)))
        attempt = self.attempts[attempt_id]
        if attempt.is_open:
            attempt.answers = Attempt.from_row({"id": attempt_id, "answers": answers}).answers

    def complete_attempt(self, attempt_id, fields):
        self.complete_calls.append((attempt_id, copy.deepcopy(fields)))
        if self.on_complete is not None:
            self.on_complete()
        if self.fail_completes:
            self.fail_completes -= 1
            raise StoreError("timeout")
        attempt = self.attempts[attempt_id]
        if not attempt.is_open:
            raise StoreError(f"Attempt {attempt_id} is missing or already completed")
        row = {"id": attempt_id, "user_id": attempt.user_id, "test_id": attempt.test_id,
               "started_at": attempt.started_at, "question_ids": attempt.question_ids, **fields}
        self.attempts[attempt_id] = Attempt.from_row(row)


class FakeResponse:
    def __init__(self, data):
        self.data = data
        self.count = len(data)


class FakeAPIError(Exception):
    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class FakeQuery:
    """Just enough of the postgrest builder: select/insert/update, eq, is_, order, limit."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.row_limit = None

    def select(self, columns="*", *rest, **kwargs):
        self.op, self.columns = "select", columns
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, fields):
        self.op, self.payload = "update", fields
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        return self

    def is_(self, column, value):
        self.filters.append(("is", column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def _matches(self, row):
        for kind, column, value in self.filters:
            if kind == "eq" and row.get(column) != value:
                return False
            if kind == "is" and value == "null" and row.get(column) is not None:
                return False
        return True

    def execute(self):
        self.db.calls.append((self.table, self.op, list(self.filters), copy.deepcopy(self.payload)))
        if self.db.fail is not None:
            raise self.db.fail
        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "insert":
            row = {"id": str(uuid4()), "started_at": NOW.isoformat(), "completed_at": None}
            row.update(copy.deepcopy(self.payload))
            rows.append(row)
            return FakeResponse([copy.deepcopy(row)])
        matched = [r for r in rows if self._matches(r)]
        if self.op == "update":
            for r in matched:
                r.update(copy.deepcopy(self.payload))
            return FakeResponse([copy.deepcopy(r) for r in matched])
        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        if self.row_limit is not None:
            matched = matched[: self.row_limit]
        result = [copy.deepcopy(r) for r in matched]
        if "questions(" in self.columns:
            bank = {q["id"]: q for q in self.db.tables.get("questions", [])}
            for r in result:
                r["questions"] = copy.deepcopy(bank.get(r["question_id"]))
        return FakeResponse(result)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.fail = None

    def table(self, name):
        return FakeQuery(self, name)


def seed_supabase(fake: FakeSupabase, test: Test, questions, order=None):
    """Load a test and its questions as rows. order: question ids by question_order."""
    fake.tables["tests"] = [{
        "id": test.id, "title": test.title, "duration_minutes": test.duration_minutes,
        "total_questions": test.total_questions, "negative_marking": test.negative_marking,
        "negative_marks_value": test.negative_marks_value,
        "passing_percentage": test.passing_percentage, "is_active": True,
    }]
    fake.tables["questions"] = [{
        "id": q.id, "question_text": q.question_text, "option_a": q.option_a, "option_b": q.option_b,
        "option_c": q.option_c, "option_d": q.option_d, "correct_option": q.correct_option,
        "explanation": q.explanation, "difficulty": q.difficulty,
    } for q in questions]
    ids = order or [q.id for q in questions]
    fake.tables["test_questions"] = [
        {"id": f"tq{i}", "test_id": test.id, "question_id": qid, "question_order": i}
        for i, qid in enumerate(ids)
    ]
    # Stored out of order on purpose: reads must sort by question_order
    fake.tables["test_questions"].reverse()


@pytest.fixture
def test_def():
    return make_test()


@pytest.fixture
def questions():
    return make_questions()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def store(test_def, questions):
    return InMemoryStore(test_def, questions)


@pytest.fixture
def fake_supabase(test_def, questions):
    fake = FakeSupabase()
    seed_supabase(fake, test_def, questions)
    return fake

