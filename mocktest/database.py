"""
Database operations for mock test attempts.
Wraps a Supabase client with the reads/writes the attempt engine needs.
"""
import logging
from typing import Dict, List, Optional, Protocol

from supabase import Client

from mocktest.errors import StoreError
from mocktest.models import Attempt, Question, Test

logger = logging.getLogger(__name__)


class AttemptStore(Protocol):
    """Data-access interface consumed by the session. DatabaseClient implements it."""

    def get_test(self, test_id: str) -> Optional[Test]: ...

    def get_questions_for_test(self, test_id: str) -> List[Question]: ...

    def get_open_attempt(self, user_id: str, test_id: str) -> Optional[Attempt]: ...

    def create_attempt(self, user_id: str, test_id: str, total_questions: int, question_ids: List[str]) -> Attempt: ...

    def get_attempt(self, attempt_id: str) -> Optional[Attempt]: ...

    def update_attempt_answers(self, attempt_id: str, answers: Dict) -> None: ...

    def complete_attempt(self, attempt_id: str, fields: Dict) -> None: ...


def _store_error(action: str, e: Exception) -> StoreError:
    logger.error(f"Error {action}: {e}")
    return StoreError(f"Error {action}: {e}", code=getattr(e, "code", None))


class DatabaseClient:
    """Supabase-backed AttemptStore over tests, questions, test_questions and test_attempts."""

    def __init__(self, client: Client):
        self.client = client

    # ============= Tests & questions =============

    def list_tests(self) -> List[Test]:
        """Active tests, by title."""
        try:
            response = (
                self.client.table("tests")
                .select("*")
                .eq("is_active", True)
                .order("title")
                .execute()
            )
        except Exception as e:
            raise _store_error("listing tests", e) from e
        return [Test.from_row(row) for row in response.data or []]

    def get_test(self, test_id: str) -> Optional[Test]:
        try:
            response = self.client.table("tests").select("*").eq("id", str(test_id)).limit(1).execute()
        except Exception as e:
            raise _store_error(f"fetching test {test_id}", e) from e
        rows = response.data or []
        return Test.from_row(rows[0]) if rows else None

    def get_questions_for_test(self, test_id: str) -> List[Question]:
        """Questions linked to a test through test_questions, in question_order."""
        try:
            response = (
                self.client.table("test_questions")
                .select("question_id, question_order, questions(*)")
                .eq("test_id", str(test_id))
                .order("question_order")
                .execute()
            )
        except Exception as e:
            raise _store_error(f"fetching questions for test {test_id}", e) from e
        return [Question.from_row(row["questions"]) for row in response.data or [] if row.get("questions")]

    # ============= Attempts =============

    def get_open_attempt(self, user_id: str, test_id: str) -> Optional[Attempt]:
        try:
            response = (
                self.client.table("test_attempts")
                .select("*")
                .eq("user_id", str(user_id))
                .eq("test_id", str(test_id))
                .is_("completed_at", "null")
                .order("started_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise _store_error(f"looking up open attempt for test {test_id}", e) from e
        rows = response.data or []
        return Attempt.from_row(rows[0]) if rows else None

    def create_attempt(self, user_id: str, test_id: str, total_questions: int, question_ids: List[str]) -> Attempt:
        """Insert a new open attempt. The question order is fixed here."""
        row = {
            "user_id": str(user_id),
            "test_id": str(test_id),
            "total_questions": total_questions,
            "max_score": total_questions,
            "question_ids": [str(q) for q in question_ids],
            "answers": {},
        }
        try:
            response = self.client.table("test_attempts").insert(row).execute()
        except Exception as e:
            raise _store_error(f"creating attempt for test {test_id}", e) from e
        if not response.data:
            raise StoreError(f"Attempt insert for test {test_id} returned no row")
        return Attempt.from_row(response.data[0])

    def get_attempt(self, attempt_id: str) -> Optional[Attempt]:
        try:
            response = self.client.table("test_attempts").select("*").eq("id", str(attempt_id)).limit(1).execute()
        except Exception as e:
            raise _store_error(f"fetching attempt {attempt_id}", e) from e
        rows = response.data or []
        return Attempt.from_row(rows[0]) if rows else None

    def list_attempts(self, user_id: str, limit: int = 20) -> List[Attempt]:
        """A user's attempts across all tests, most recently started first. Open ones included."""
        try:
            response = (
                self.client.table("test_attempts")
                .select("*")
                .eq("user_id", str(user_id))
                .order("started_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            raise _store_error(f"listing attempts for user {user_id}", e) from e
        return [Attempt.from_row(row) for row in response.data or []]

    def update_attempt_answers(self, attempt_id: str, answers: Dict) -> None:
        """Overwrite the answer map of an open attempt. Completed attempts are left alone."""
        try:
            (
                self.client.table("test_attempts")
                .update({"answers": answers})
                .eq("id", str(attempt_id))
                .is_("completed_at", "null")
                .execute()
            )
        except Exception as e:
            raise _store_error(f"saving answers for attempt {attempt_id}", e) from e

    def complete_attempt(self, attempt_id: str, fields: Dict) -> None:
        """Write the terminal record. Fails if the attempt is missing or already completed."""
        try:
            response = (
                self.client.table("test_attempts")
                .update(fields)
                .eq("id", str(attempt_id))
                .is_("completed_at", "null")
                .execute()
            )
        except Exception as e:
            raise _store_error(f"completing attempt {attempt_id}", e) from e
        if not response.data:
            raise StoreError(f"Attempt {attempt_id} is missing or already completed")
