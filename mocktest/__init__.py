"""Mock test attempt engine: session state, debounced autosave, scoring."""
from mocktest.errors import MockTestError, PreconditionError, StoreError, SubmissionError
from mocktest.models import AnswerEntry, Attempt, Question, Test
from mocktest.scheduler import ManualScheduler, ThreadingScheduler
from mocktest.scoring import ScoreResult, review_attempt, score_attempt
from mocktest.session import AttemptSession, SessionState, start_attempt

__all__ = [
    "AnswerEntry",
    "Attempt",
    "AttemptSession",
    "ManualScheduler",
    "MockTestError",
    "PreconditionError",
    "Question",
    "ScoreResult",
    "SessionState",
    "StoreError",
    "SubmissionError",
    "Test",
    "ThreadingScheduler",
    "review_attempt",
    "score_attempt",
    "start_attempt",
]
