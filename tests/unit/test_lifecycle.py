"""
Unit tests for quiz lifecycle and result visibility.

Run: pytest tests/unit/test_lifecycle.py -v
"""

from datetime import datetime, timedelta

import pytest

from quizdesk.lifecycle import (
    QuizState,
    attempt_deadline,
    attempts_remaining,
    can_see_results,
    close,
    is_accepting_attempts,
    quiz_state,
    reopen,
    results_notifiable,
    time_remaining,
)
from quizdesk.models import Attempt, AttemptStatus, ShowResultsPolicy


class TestQuizState:

    def test_no_end_is_open(self, sample_quiz, now):
        assert quiz_state(sample_quiz, now) is QuizState.OPEN

    def test_future_end_is_open(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"end_at": now + timedelta(hours=1)})

        assert quiz_state(quiz, now) is QuizState.OPEN

    def test_end_at_now_is_closed(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"end_at": now})

        assert quiz_state(quiz, now) is QuizState.CLOSED

    def test_naive_end_treated_as_utc(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"end_at": datetime(2024, 5, 1, 11, 0)})

        assert quiz_state(quiz, now) is QuizState.CLOSED


class TestCloseReopen:

    def test_close_sets_end_at(self, sample_quiz, now):
        closed = close(sample_quiz, now)

        assert closed.end_at == now
        assert quiz_state(closed, now) is QuizState.CLOSED
        assert sample_quiz.end_at is None

    def test_close_is_idempotent(self, sample_quiz, now):
        once = close(sample_quiz, now)
        twice = close(once, now + timedelta(hours=2))

        assert twice.end_at == now

    def test_close_already_past_keeps_end(self, sample_quiz, now):
        earlier = now - timedelta(days=1)
        quiz = sample_quiz.model_copy(update={"end_at": earlier})

        assert close(quiz, now).end_at == earlier

    def test_close_future_end_moves_it_to_now(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"end_at": now + timedelta(days=1)})

        assert close(quiz, now).end_at == now

    def test_reopen_clears_end(self, sample_quiz, now):
        reopened = reopen(close(sample_quiz, now))

        assert reopened.end_at is None
        assert quiz_state(reopened, now) is QuizState.OPEN

    def test_reopen_open_quiz_is_noop(self, sample_quiz):
        assert reopen(sample_quiz) is sample_quiz


class TestAttemptWindow:

    def test_inside_window(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={
            "start_at": now - timedelta(hours=1),
            "end_at": now + timedelta(hours=1),
        })

        assert is_accepting_attempts(quiz, now) is True

    def test_before_start(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"start_at": now + timedelta(minutes=1)})

        assert is_accepting_attempts(quiz, now) is False

    def test_after_end(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"end_at": now - timedelta(minutes=1)})

        assert is_accepting_attempts(quiz, now) is False

    def test_attempts_remaining(self, sample_quiz):
        attempts = [Attempt(id="a-1", quiz_id="quiz-1", student_id="s-1")]

        assert attempts_remaining(sample_quiz, attempts) == 1
        assert attempts_remaining(sample_quiz, attempts * 3) == 0


class TestCanSeeResults:

    @pytest.mark.parametrize("state", list(QuizState))
    @pytest.mark.parametrize("status", list(AttemptStatus))
    def test_never_hides_everything(self, state, status):
        assert can_see_results(ShowResultsPolicy.NEVER, state, status, fully_auto_graded=True) is False

    @pytest.mark.parametrize("state,status,expected", [
        (QuizState.OPEN, AttemptStatus.GRADED, False),
        (QuizState.OPEN, AttemptStatus.SUBMITTED, False),
        (QuizState.CLOSED, AttemptStatus.GRADED, True),
        (QuizState.CLOSED, AttemptStatus.SUBMITTED, False),
        (QuizState.CLOSED, AttemptStatus.IN_PROGRESS, False),
    ])
    def test_after_close(self, state, status, expected):
        assert can_see_results(ShowResultsPolicy.AFTER_CLOSE, state, status) is expected

    @pytest.mark.parametrize("state", list(QuizState))
    def test_immediate_graded(self, state):
        assert can_see_results(ShowResultsPolicy.IMMEDIATE, state, AttemptStatus.GRADED) is True

    def test_immediate_submitted_needs_full_auto_grading(self):
        assert can_see_results("immediate", "open", "submitted") is False
        assert can_see_results("immediate", "open", "submitted", fully_auto_graded=True) is True

    def test_immediate_in_progress(self):
        assert can_see_results("immediate", "open", "in_progress", fully_auto_graded=True) is False


class TestResultsNotifiable:

    def test_after_close_waits_for_close(self, sample_quiz, now):
        assert results_notifiable(sample_quiz, now) is False
        assert results_notifiable(close(sample_quiz, now), now) is True

    def test_immediate_is_never_announced(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"show_results_policy": ShowResultsPolicy.IMMEDIATE})

        assert results_notifiable(quiz, now) is False
        assert results_notifiable(close(quiz, now), now) is False

    def test_never(self, sample_quiz, now):
        quiz = close(
            sample_quiz.model_copy(update={"show_results_policy": ShowResultsPolicy.NEVER}),
            now,
        )

        assert results_notifiable(quiz, now) is False


class TestAttemptDeadline:

    def _attempt(self, started_at):
        return Attempt(id="a-1", quiz_id="quiz-1", student_id="s-1", started_at=started_at)

    def test_time_limit_counts_from_start(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"time_limit_minutes": 30})

        assert attempt_deadline(quiz, self._attempt(now)) == now + timedelta(minutes=30)

    def test_end_at_caps_time_limit(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={
            "time_limit_minutes": 30,
            "end_at": now + timedelta(minutes=10),
        })

        assert attempt_deadline(quiz, self._attempt(now)) == now + timedelta(minutes=10)

    def test_end_at_alone_is_the_deadline(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"end_at": now + timedelta(hours=1)})

        assert attempt_deadline(quiz, self._attempt(now)) == now + timedelta(hours=1)

    def test_no_limit_no_deadline(self, sample_quiz, now):
        assert attempt_deadline(sample_quiz, self._attempt(now)) is None
        assert time_remaining(sample_quiz, self._attempt(now), now) is None

    def test_naive_start_treated_as_utc(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"time_limit_minutes": 5})
        naive = now.replace(tzinfo=None)

        assert attempt_deadline(quiz, self._attempt(naive)) == now + timedelta(minutes=5)

    def test_time_remaining(self, sample_quiz, now):
        quiz = sample_quiz.model_copy(update={"time_limit_minutes": 20})
        attempt = self._attempt(now)

        assert time_remaining(quiz, attempt, now + timedelta(minutes=5)) == timedelta(minutes=15)
        assert time_remaining(quiz, attempt, now + timedelta(hours=2)) == timedelta(0)
