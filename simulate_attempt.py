"""
Simulate a mock test attempt against the live database: answer some right,
some wrong, skip the rest, submit, and check the stored score against the formula.

Run: python simulate_attempt.py --user <uuid> --test <uuid> [--correct-ratio 0.5 --wrong-ratio 0.3]
"""
import argparse
import logging
import random
import sys

from db import get_database_uncached
from mocktest import ManualScheduler, MockTestError, start_attempt
from mocktest.config import OPTION_LETTERS
from mocktest.session import load_attempt_result

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Simulate a mock test attempt to verify storage and scoring.")
    parser.add_argument("--user", required=True, help="User id owning the attempt")
    parser.add_argument("--test", required=True, help="Test id to attempt")
    parser.add_argument("--correct-ratio", type=float, default=0.5, help="Fraction to answer correctly (default 0.5)")
    parser.add_argument("--wrong-ratio", type=float, default=0.3, help="Fraction to answer wrongly (default 0.3)")
    # skip = 1 - correct - wrong
    args = parser.parse_args()

    correct_ratio = max(0, min(1, args.correct_ratio))
    wrong_ratio = max(0, min(1 - correct_ratio, args.wrong_ratio))

    db = get_database_uncached()
    scheduler = ManualScheduler()
    try:
        session = start_attempt(db, args.user, args.test, scheduler)
    except MockTestError as e:
        logger.error(f"Could not start attempt: {e}")
        sys.exit(1)

    outcomes = {"correct": 0, "wrong": 0, "skip": 0}
    for question in session.questions:
        r = random.random()
        if r < correct_ratio:
            session.select_answer(question.id, question.correct_option)
            outcomes["correct"] += 1
        elif r < correct_ratio + wrong_ratio:
            wrong = random.choice([o for o in OPTION_LETTERS if o != question.correct_option])
            session.select_answer(question.id, wrong)
            outcomes["wrong"] += 1
        else:
            outcomes["skip"] += 1
        # One simulated second per question; autosave fires during the run
        scheduler.advance(1)

    try:
        result = session.submit()
    except MockTestError as e:
        logger.error(f"Submit failed: {e}")
        sys.exit(1)

    attempt, test, _ = load_attempt_result(db, session.attempt_id)
    penalty = test.negative_marks_value if test.negative_marking else 0.0
    expected = max(0.0, outcomes["correct"] - outcomes["wrong"] * penalty)

    print()
    print("=" * 60)
    print("MOCK TEST SIMULATION (verify stored attempt + scoring)")
    print("=" * 60)
    print(f"  Attempt: {attempt.id}")
    print(f"  Questions: {len(session.questions)}  Autosaves: {session.autosave.flush_count}")
    print(f"  Correct: {outcomes['correct']}  Wrong: {outcomes['wrong']} (each -{penalty:g})  Skipped: {outcomes['skip']}")
    print(f"  Computed: {result.score:.2f}/{result.max_score:g} ({result.percentage:.1f}%)  Pass={result.is_passed}")
    print(f"  Stored:   {attempt.score:.2f}/{attempt.max_score:g} ({attempt.percentage:.1f}%)  Pass={attempt.is_passed}")
    print()
    if abs(expected - attempt.score) < 0.01 and attempt.correct_answers == outcomes["correct"]:
        print("Stored score matches formula.")
    else:
        print("WARNING: Score mismatch. Check scoring logic.")
        sys.exit(1)


if __name__ == "__main__":
    main()
