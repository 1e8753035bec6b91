"""
Attempt session: the live state of one timed mock test attempt.

The session validates and applies user actions locally (answer selection,
review marks, navigation), runs the countdown, and hands persistence to the
autosave bridge and the final submit write. States:

    NOT_STARTED -> IN_PROGRESS -> SUBMITTING -> COMPLETED

A failed final write puts the session back to IN_PROGRESS with its answers
untouched so the user can retry.
"""
import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from mocktest.autosave import AutosaveBridge
from mocktest.config import AUTOSAVE_DELAY_SECONDS, OPTION_LETTERS, TICK_SECONDS, TIME_CRITICAL_SECONDS, TIME_WARNING_SECONDS
from mocktest.errors import PreconditionError, StoreError, SubmissionError
from mocktest.models import AnswerEntry, Attempt, Question, Test, answers_to_json
from mocktest.scoring import ScoreResult, score_attempt

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"


class AttemptSession:
    """Manages a single in-progress attempt: answers, marks, pointer, countdown."""

    def __init__(
        self,
        store,
        test: Test,
        questions: Sequence[Question],
        attempt: Attempt,
        scheduler,
        remaining_seconds: int,
        clock: Callable[[], datetime] = _utcnow,
        autosave_delay: float = AUTOSAVE_DELAY_SECONDS,
    ):
        self.store = store
        self.test = test
        self.questions: Tuple[Question, ...] = tuple(questions)
        self.attempt = attempt
        self.scheduler = scheduler
        self.clock = clock

        self._question_ids = {q.id for q in self.questions}
        self.answers: Dict[str, AnswerEntry] = {
            qid: entry for qid, entry in attempt.answers.items() if qid in self._question_ids
        }
        self.current_index = 0
        self.remaining_seconds = max(0, int(remaining_seconds))
        self.state = SessionState.NOT_STARTED
        self.result: Optional[ScoreResult] = None
        self.last_error: Optional[Exception] = None

        self._lock = threading.RLock()
        self._tick_handle = None
        self._deadline_fired = False
        self.autosave = AutosaveBridge(store, attempt.id, scheduler, self.answers_payload, delay=autosave_delay)

    # ============= Read-only views =============

    @property
    def attempt_id(self) -> str:
        return self.attempt.id

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    def answer_for(self, question_id: str) -> AnswerEntry:
        return self.answers.get(question_id) or AnswerEntry()

    def answers_payload(self) -> Dict[str, Dict]:
        """Answer map in its persisted JSON form."""
        with self._lock:
            return answers_to_json(self.answers)

    def question_status(self, question_id: str) -> str:
        """Palette state: answered_marked, answered, marked or unanswered."""
        entry = self.answer_for(question_id)
        if entry.answered and entry.marked:
            return "answered_marked"
        if entry.answered:
            return "answered"
        if entry.marked:
            return "marked"
        return "unanswered"

    def progress(self) -> Dict:
        """Real-time summary for display during the attempt."""
        with self._lock:
            answered = sum(1 for e in self.answers.values() if e.answered)
            marked = sum(1 for e in self.answers.values() if e.marked)
            if self.remaining_seconds < TIME_CRITICAL_SECONDS:
                time_level = "critical"
            elif self.remaining_seconds < TIME_WARNING_SECONDS:
                time_level = "warning"
            else:
                time_level = "normal"
            return {
                "attempt_id": self.attempt.id,
                "state": self.state.value,
                "current_question": self.current_index + 1,
                "total_questions": self.question_count,
                "answered": answered,
                "marked": marked,
                "unanswered": self.question_count - answered,
                "remaining_seconds": self.remaining_seconds,
                "time_level": time_level,
            }

    # ============= User actions =============

    def _accepting_input(self) -> bool:
        # Answers are frozen once the deadline has fired, even if the auto-submit failed
        return self.state is SessionState.IN_PROGRESS and not self._deadline_fired

    def select_answer(self, question_id: str, option: str) -> bool:
        """
        Set the selected option, keeping the review mark.
        Ignored unless in progress and before the deadline, or when the
        question/option is unknown.

        Returns:
            True if the answer map changed
        """
        with self._lock:
            if not self._accepting_input():
                return False
            if question_id not in self._question_ids or not option or option not in OPTION_LETTERS:
                return False
            entry = self.answer_for(question_id)
            if entry.selected == option:
                return False
            self.answers[question_id] = AnswerEntry(selected=option, marked=entry.marked)
            self.autosave.notify()
            return True

    def toggle_mark(self, question_id: str) -> bool:
        """Flip the marked-for-review flag, keeping any selection."""
        with self._lock:
            if not self._accepting_input() or question_id not in self._question_ids:
                return False
            entry = self.answer_for(question_id)
            self.answers[question_id] = AnswerEntry(selected=entry.selected, marked=not entry.marked)
            self.autosave.notify()
            return True

    def navigate_to(self, index: int) -> bool:
        with self._lock:
            if not 0 <= index < self.question_count:
                return False
            self.current_index = index
            return True

    def next(self) -> bool:
        return self.navigate_to(self.current_index + 1)

    def previous(self) -> bool:
        return self.navigate_to(self.current_index - 1)

    # ============= Countdown =============

    def begin(self):
        """Enter IN_PROGRESS and start the countdown."""
        with self._lock:
            if self.state is not SessionState.NOT_STARTED:
                return
            self.state = SessionState.IN_PROGRESS
            self._schedule_tick()

    def _schedule_tick(self):
        self._tick_handle = self.scheduler.call_later(TICK_SECONDS, self._on_tick)

    def _on_tick(self):
        with self._lock:
            self._tick_handle = None
            self.tick()
            if self.state is SessionState.IN_PROGRESS and self.remaining_seconds > 0:
                self._schedule_tick()

    def tick(self):
        """Count one second down; the first time zero is reached, submit."""
        with self._lock:
            if self.state is not SessionState.IN_PROGRESS:
                return
            if self.remaining_seconds > 0:
                self.remaining_seconds -= 1
            if self.remaining_seconds > 0 or self._deadline_fired:
                return
            self._deadline_fired = True
            logger.info(f"Time is up for attempt {self.attempt.id}, auto-submitting")
            try:
                self.submit()
            except SubmissionError as e:
                # Already logged; the user retries with submit()
                self.last_error = e

    def _cancel_tick(self):
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    # ============= Submission =============

    def submit(self) -> Optional[ScoreResult]:
        """
        Score the attempt and write its terminal record.

        Returns:
            The score result (the stored one if already completed),
            or None while another submit is in flight.

        Raises:
            PreconditionError: session was never started
            SubmissionError: the write failed; session is back IN_PROGRESS
        """
        with self._lock:
            if self.state is SessionState.COMPLETED:
                return self.result
            if self.state is SessionState.SUBMITTING:
                return None
            if self.state is SessionState.NOT_STARTED:
                raise PreconditionError(f"Attempt {self.attempt.id} has not started")

            self.state = SessionState.SUBMITTING
            # A late autosave must not follow the terminal write
            self.autosave.cancel()

            result = score_attempt(self.test, self.questions, self.answers, self.remaining_seconds)
            completed_at = self.clock()
            fields = result.to_row()
            fields["answers"] = answers_to_json(self.answers)
            fields["completed_at"] = completed_at.isoformat()

            try:
                self.store.complete_attempt(self.attempt.id, fields)
            except StoreError as e:
                self.state = SessionState.IN_PROGRESS
                self.last_error = e
                logger.error(f"Error submitting attempt {self.attempt.id}: {e}")
                # The pending save was cancelled above; re-arm it so the answers still reach the store
                self.autosave.notify()
                raise SubmissionError("Error submitting test. Please try again.") from e

            self.state = SessionState.COMPLETED
            self.result = result
            self.last_error = None
            self._cancel_tick()
            self.autosave.close()
            self.attempt.completed_at = completed_at
            self.attempt.answers = dict(self.answers)
            logger.info(
                f"Attempt {self.attempt.id} completed: Score={result.score}/{result.max_score}, "
                f"Pass={result.is_passed}"
            )
            return result

    def dispose(self, flush: bool = False):
        """
        Tear down timers when the session is discarded.

        Args:
            flush: Write a pending autosave now instead of dropping it
        """
        with self._lock:
            self._cancel_tick()
            if flush and self.state is SessionState.IN_PROGRESS:
                self.autosave.flush_pending()
            self.autosave.close()


def order_questions(questions: Sequence[Question], question_ids: Sequence[str]) -> List[Question]:
    """Arrange questions in the order persisted with the attempt."""
    if not question_ids:
        return list(questions)
    by_id = {q.id: q for q in questions}
    ordered = [by_id[qid] for qid in question_ids if qid in by_id]
    if len(ordered) < len(question_ids):
        logger.warning(f"{len(question_ids) - len(ordered)} attempt questions no longer exist")
    return ordered


def start_attempt(
    store,
    user_id: str,
    test_id: str,
    scheduler,
    clock: Callable[[], datetime] = _utcnow,
    autosave_delay: float = AUTOSAVE_DELAY_SECONDS,
) -> AttemptSession:
    """
    Resume the user's open attempt on a test, or create one, and start it.

    Args:
        store: Data-access object (see mocktest.database.AttemptStore)
        user_id: Owner of the attempt
        test_id: Test to attempt
        scheduler: Timer source for the countdown and autosave
        clock: Current UTC time (injectable for tests)

    Raises:
        PreconditionError: test missing or without questions
        StoreError: a read or the create failed
    """
    test = store.get_test(test_id)
    if test is None:
        raise PreconditionError(f"Test {test_id} not found")
    questions = store.get_questions_for_test(test_id)
    if not questions:
        raise PreconditionError(f"Test {test_id} has no questions")

    attempt = store.get_open_attempt(user_id, test_id)
    if attempt is not None:
        logger.info(f"Resuming attempt {attempt.id} for test {test_id}")
    else:
        try:
            attempt = store.create_attempt(user_id, test_id, test.total_questions, [q.id for q in questions])
            logger.info(f"Created attempt {attempt.id} for test {test_id}")
        except StoreError as e:
            if not e.is_unique_violation:
                raise
            # Another start for the same user/test won the insert
            logger.warning(f"Open attempt already exists for test {test_id}, resuming it")
            attempt = store.get_open_attempt(user_id, test_id)
            if attempt is None:
                raise PreconditionError(f"Open attempt for test {test_id} vanished") from e

    questions = order_questions(questions, attempt.question_ids)
    if not questions:
        raise PreconditionError(f"Attempt {attempt.id} has no questions")

    elapsed = int((clock() - attempt.started_at).total_seconds())
    remaining = max(0, test.duration_seconds - max(0, elapsed))

    session = AttemptSession(
        store, test, questions, attempt, scheduler, remaining,
        clock=clock, autosave_delay=autosave_delay,
    )
    session.begin()
    return session


def load_attempt_result(store, attempt_id: str) -> Tuple[Attempt, Test, List[Question]]:
    """Fetch a completed attempt with its test and questions, for the result page."""
    attempt = store.get_attempt(attempt_id)
    if attempt is None:
        raise PreconditionError(f"Attempt {attempt_id} not found")
    if attempt.is_open:
        raise PreconditionError(f"Attempt {attempt_id} is still in progress")
    test = store.get_test(attempt.test_id)
    if test is None:
        raise PreconditionError(f"Test {attempt.test_id} not found")
    questions = order_questions(store.get_questions_for_test(test.id), attempt.question_ids)
    return attempt, test, questions
