"""Mock tests: pick a test, attempt it against the clock, review the result."""
import logging
import sys
import time
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_database
from mocktest import ManualScheduler, MockTestError, SessionState, SubmissionError, start_attempt
from mocktest.config import OPTION_LETTERS
from mocktest.scoring import STATUS_CORRECT, STATUS_SKIPPED, format_clock, format_duration, review_attempt
from mocktest.session import load_attempt_result

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

PAGES = ["Tests", "Mock Test", "Result"]

st.set_page_config(page_title="Mock Tests", layout="wide")
st.sidebar.title("Mock Tests")
# Allow URL to open a specific page (e.g. after "Start")
default_page = st.query_params.get("page", "Tests")
if default_page not in PAGES:
    default_page = "Tests"
page = st.sidebar.radio("Navigate", PAGES, index=PAGES.index(default_page), label_visibility="collapsed")
user_id = st.sidebar.text_input("User ID", key="user_id")


def _go(target: str):
    st.query_params["page"] = target
    st.rerun()


def _sync_clock():
    """Advance the session's virtual clock by the whole seconds elapsed since the last run."""
    elapsed = int(time.monotonic() - st.session_state["clock_synced_at"])
    if elapsed > 0:
        st.session_state["scheduler"].advance(elapsed)
        st.session_state["clock_synced_at"] += elapsed


def _drop_session():
    session = st.session_state.pop("attempt_session", None)
    if session is not None:
        # Write answers still waiting for their quiet period before the timers go
        session.dispose(flush=True)


def _begin_attempt(test_id: str):
    _drop_session()
    scheduler = ManualScheduler()
    try:
        session = start_attempt(get_database(), user_id, test_id, scheduler)
    except MockTestError as e:
        st.error(f"Could not start test: {e}")
        st.stop()
    st.session_state["attempt_session"] = session
    st.session_state["scheduler"] = scheduler
    st.session_state["clock_synced_at"] = time.monotonic()
    _go("Mock Test")


def _show_result(attempt_id: str):
    st.session_state["result_attempt_id"] = attempt_id
    st.query_params["attempt"] = attempt_id
    _go("Result")


@st.fragment(run_every=1)
def _live_timer(session):
    """Reruns every second on its own, so autosaves and the deadline fire without user input."""
    _sync_clock()
    if session.state is SessionState.COMPLETED:
        # Auto-submitted: rerun the whole page to move on to the result
        st.rerun()
    progress = session.progress()
    timer = format_clock(progress["remaining_seconds"])
    if progress["time_level"] == "critical":
        st.error(f"Time left {timer}")
    elif progress["time_level"] == "warning":
        st.warning(f"Time left {timer}")
    else:
        st.metric("Time left", timer)
    if session.last_error is not None:
        st.error("Error submitting test. Please try again.")


# ----- Tests -----
if page == "Tests":
    st.header("Tests")
    try:
        tests = get_database().list_tests()
    except (MockTestError, ValueError) as e:
        st.error(f"Could not load tests. Check DB and .env (SUPABASE_URL, SUPABASE_KEY). {e}")
        st.stop()

    if not tests:
        st.info("No active tests.")
    for test in tests:
        with st.container(border=True):
            col1, col2 = st.columns([3, 1])
            with col1:
                st.subheader(test.title)
                marking = f"-{test.negative_marks_value:g} per wrong answer" if test.negative_marking else "No negative marking"
                st.caption(
                    f"{test.total_questions} questions · {test.duration_minutes} min · "
                    f"{marking} · Pass {test.passing_percentage:g}%"
                )
            with col2:
                if st.button("Start", key=f"start_{test.id}", type="primary", disabled=not user_id):
                    _begin_attempt(test.id)
    if not user_id:
        st.caption("Enter a user ID in the sidebar to start a test.")
        st.stop()

    st.header("My Attempts")
    try:
        attempts = get_database().list_attempts(user_id)
    except MockTestError as e:
        st.error(f"Could not load your attempts. {e}")
        st.stop()
    if not attempts:
        st.info("No attempts yet.")
    titles = {test.id: test.title for test in tests}
    for attempt in attempts:
        with st.container(border=True):
            col1, col2 = st.columns([3, 1])
            with col1:
                st.write(f"**{titles.get(attempt.test_id, 'Archived test')}**")
                started = f"{attempt.started_at:%Y-%m-%d %H:%M}"
                if attempt.is_open:
                    st.caption(f"In progress · started {started}")
                else:
                    verdict = "Passed" if attempt.is_passed else "Failed"
                    st.caption(
                        f"{verdict} · {attempt.percentage:.1f}% · {attempt.correct_answers} correct, "
                        f"{attempt.wrong_answers} wrong · {started}"
                    )
            with col2:
                if attempt.is_open:
                    if st.button("Resume", key=f"resume_{attempt.id}"):
                        _begin_attempt(attempt.test_id)
                elif st.button("View result", key=f"view_{attempt.id}"):
                    _show_result(attempt.id)

# ----- Mock Test -----
elif page == "Mock Test":
    session = st.session_state.get("attempt_session")
    if session is None:
        st.info("No test in progress. Start one from the Tests page.")
        st.stop()

    _sync_clock()
    if session.state is SessionState.COMPLETED:
        _drop_session()
        _show_result(session.attempt_id)

    progress = session.progress()
    question = session.current_question
    entry = session.answer_for(question.id)

    st.header(session.test.title)
    st.caption(f"Question {progress['current_question']} of {progress['total_questions']}")

    with st.sidebar:
        _live_timer(session)

    st.progress(progress["answered"] / progress["total_questions"])
    st.caption(f"{progress['answered']} answered, {progress['marked']} marked for review")

    col_q, col_palette = st.columns([3, 1])
    with col_q:
        st.caption(question.difficulty)
        st.subheader(question.question_text)
        options = question.options
        selected = entry.selected or None
        choice = st.radio(
            "Choose one:",
            list(OPTION_LETTERS),
            index=OPTION_LETTERS.index(selected) if selected else None,
            format_func=lambda letter: f"{letter}. {options[letter]}",
            key=f"q_{question.id}",
        )
        if choice and session.select_answer(question.id, choice):
            st.rerun()

        mark_label = "Marked" if entry.marked else "Mark for review"
        if st.button(mark_label, key=f"mark_{question.id}"):
            session.toggle_mark(question.id)
            st.rerun()

        col1, col2 = st.columns(2)
        with col1:
            if st.button("Previous", disabled=session.current_index == 0):
                session.previous()
                st.rerun()
        with col2:
            if st.button("Next", disabled=session.current_index == session.question_count - 1):
                session.next()
                st.rerun()

    with col_palette:
        st.subheader("Question Palette")
        badges = {"answered_marked": "🟧", "answered": "🟩", "marked": "🟨", "unanswered": "⬜"}
        grid = st.columns(5)
        for index, q in enumerate(session.questions):
            label = f"{badges[session.question_status(q.id)]} {index + 1}"
            if grid[index % 5].button(label, key=f"nav_{index}"):
                session.navigate_to(index)
                st.rerun()

    st.divider()
    if progress["unanswered"]:
        st.warning(f"You have {progress['unanswered']} unanswered questions.")
    confirm = st.checkbox("I want to submit this test. This action cannot be undone.")
    if st.button("Submit Test", type="primary", disabled=not confirm):
        try:
            session.submit()
        except SubmissionError as e:
            st.error(str(e))
            st.stop()
        _drop_session()
        _show_result(session.attempt_id)

# ----- Result -----
elif page == "Result":
    # Session state first; the attempt query param survives a browser refresh
    attempt_id = st.session_state.get("result_attempt_id") or st.query_params.get("attempt")
    if not attempt_id:
        st.info("No result to show yet.")
        st.stop()
    try:
        attempt, test, questions = load_attempt_result(get_database(), attempt_id)
    except MockTestError as e:
        st.error(f"Result not found. {e}")
        st.stop()

    st.header(test.title)
    if attempt.is_passed:
        st.success("Congratulations! You passed the test.")
    else:
        st.error(f"You need {test.passing_percentage:g}% to pass. Try again!")

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Score", f"{attempt.score:g} / {attempt.max_score:g}")
    col2.metric("Percentage", f"{attempt.percentage:.1f}%")
    col3.metric("Correct / Wrong / Skipped", f"{attempt.correct_answers} / {attempt.wrong_answers} / {attempt.skipped_answers}")
    col4.metric("Time taken", format_duration(attempt.time_taken_seconds))
    if test.negative_marking:
        st.caption(f"Negative marking: -{test.negative_marks_value:g} per wrong answer")

    st.subheader("Review your answers")
    for index, review in enumerate(review_attempt(questions, attempt.answers), start=1):
        icon = "✓" if review.status == STATUS_CORRECT else ("–" if review.status == STATUS_SKIPPED else "✗")
        with st.expander(f"{icon} Q{index}. {review.question.question_text}"):
            for letter, text in review.question.options.items():
                if letter == review.correct_option:
                    st.success(f"{letter}. {text} (Correct Answer)")
                elif letter == review.selected:
                    st.error(f"{letter}. {text} (Your Answer)")
                else:
                    st.write(f"{letter}. {text}")
            if review.explanation:
                st.info(review.explanation)

    if st.button("Back to Tests"):
        st.query_params.pop("attempt", None)
        _go("Tests")
