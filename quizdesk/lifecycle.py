"""
Quiz lifecycle and result visibility.

States:
- OPEN: no end_at, or end_at in the future
- CLOSED: end_at at or before now

Attempt deadlines combine the time limit with end_at.

close() and reopen() are idempotent and return a new Quiz; persisting the
change is the caller's job. can_see_results() is pure so that rendering code
outside the engine can call it freely.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from enum import Enum

from .models import Attempt, AttemptStatus, Quiz, ShowResultsPolicy


class QuizState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so stored and generated times compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def quiz_state(quiz: Quiz, now: datetime | None = None) -> QuizState:
    """Derive OPEN/CLOSED from end_at."""
    now = as_utc(now or utcnow())
    if quiz.end_at is not None and as_utc(quiz.end_at) <= now:
        return QuizState.CLOSED
    return QuizState.OPEN


def close(quiz: Quiz, now: datetime | None = None) -> Quiz:
    """
    Close a quiz by setting end_at to now.

    A quiz that is already closed keeps its original end_at.
    """
    now = as_utc(now or utcnow())
    if quiz_state(quiz, now) is QuizState.CLOSED:
        return quiz
    return quiz.model_copy(update={"end_at": now})


def reopen(quiz: Quiz) -> Quiz:
    """Reopen a quiz by clearing end_at. No-op when end_at is already unset."""
    if quiz.end_at is None:
        return quiz
    return quiz.model_copy(update={"end_at": None})


def is_accepting_attempts(quiz: Quiz, now: datetime | None = None) -> bool:
    """True inside the start_at/end_at window (either end may be open)."""
    now = as_utc(now or utcnow())
    starts_ok = quiz.start_at is None or as_utc(quiz.start_at) <= now
    ends_ok = quiz.end_at is None or as_utc(quiz.end_at) >= now
    return starts_ok and ends_ok


def attempts_remaining(quiz: Quiz, attempts: Sequence[Attempt]) -> int:
    """
    Attempts the learner may still start.

    Enforcing this limit is the caller's precondition before starting an
    attempt; grading never re-checks it.
    """
    return max(quiz.attempts_allowed - len(attempts), 0)


def can_see_results(
    policy: ShowResultsPolicy | str,
    state: QuizState | str,
    attempt_status: AttemptStatus | str,
    *,
    fully_auto_graded: bool = False,
) -> bool:
    """
    Decide whether a learner may see the score of an attempt.

    Args:
        policy: The quiz's show_results_policy
        state: Current quiz state
        attempt_status: Status of the learner's attempt
        fully_auto_graded: True when every question of the attempt was
            machine-graded, so a submitted attempt already has its final score

    Returns:
        True if results may be shown
    """
    policy = ShowResultsPolicy(policy)
    state = QuizState(state)
    attempt_status = AttemptStatus(attempt_status)

    if policy is ShowResultsPolicy.NEVER:
        return False
    if policy is ShowResultsPolicy.IMMEDIATE:
        if attempt_status is AttemptStatus.GRADED:
            return True
        return attempt_status is AttemptStatus.SUBMITTED and fully_auto_graded
    return state is QuizState.CLOSED and attempt_status is AttemptStatus.GRADED


def results_notifiable(quiz: Quiz, now: datetime | None = None) -> bool:
    """
    Whether a 'results available' notice may go out for this quiz now.

    Only after_close quizzes that have closed qualify. Immediate results are
    visible per attempt as soon as it is graded, so there is no single moment
    to announce them.
    """
    return (
        quiz.show_results_policy is ShowResultsPolicy.AFTER_CLOSE
        and quiz_state(quiz, now) is QuizState.CLOSED
    )


def attempt_deadline(quiz: Quiz, attempt: Attempt) -> datetime | None:
    """
    When an attempt runs out of time.

    The time limit counts from started_at and never extends past the quiz's
    end_at. None when the attempt has no deadline at all.
    """
    deadline = None
    if quiz.time_limit_minutes and attempt.started_at is not None:
        deadline = as_utc(attempt.started_at) + timedelta(minutes=quiz.time_limit_minutes)
    if quiz.end_at is not None:
        end_at = as_utc(quiz.end_at)
        deadline = end_at if deadline is None else min(deadline, end_at)
    return deadline


def time_remaining(quiz: Quiz, attempt: Attempt, now: datetime | None = None) -> timedelta | None:
    """Time left before attempt_deadline(), floored at zero."""
    deadline = attempt_deadline(quiz, attempt)
    if deadline is None:
        return None
    return max(deadline - as_utc(now or utcnow()), timedelta(0))
