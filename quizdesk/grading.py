"""
Grading engine.

Turns a learner's raw answers into per-question results and an attempt
score. Per-type correctness lives in the question handlers; this module
dispatches, applies manual scores and aggregates.

Whether the learner still has attempts left is checked by the caller before
grading is invoked.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from loguru import logger

from .models import Attempt, AttemptStatus, Question, QuestionType, Quiz
from .questions import get_handler
from .questions.base import GradeResult
from .questions.choice import option_key


@dataclass
class AttemptGrade:
    """Aggregate result of grading one attempt."""

    score: float
    max_score: float
    needs_manual_review: bool
    results: dict[str, GradeResult] = field(default_factory=dict)

    @property
    def fully_auto_graded(self) -> bool:
        return not self.needs_manual_review

    @property
    def percentage(self) -> float:
        return (self.score / self.max_score * 100) if self.max_score else 0.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "score": self.score,
            "max_score": self.max_score,
            "needs_manual_review": self.needs_manual_review,
            "results": {key: result.to_dict() for key, result in self.results.items()},
        }


def grade(question: Question, answer: Any) -> GradeResult:
    """Grade one answer against one question."""
    return get_handler(question.type).grade(question, answer)


def _apply_manual_score(question: Question, auto: GradeResult, manual: float) -> GradeResult:
    points = min(max(float(manual), 0.0), float(question.points))
    return GradeResult(
        correct=points >= question.points,
        points_awarded=points,
        needs_manual_review=False,
        feedback=auto.feedback if question.type != QuestionType.SHORT_TEXT else "Graded by instructor.",
        expected=auto.expected,
        actual=auto.actual,
        details={**auto.details, "manual_score": points},
    )


def grade_attempt(
    quiz: Quiz,
    questions: Sequence[Question],
    answers: Mapping[str, Any],
    manual_scores: Mapping[str, float] | None = None,
) -> AttemptGrade:
    """
    Grade every question of an attempt.

    Args:
        quiz: The quiz being taken
        questions: All questions of the quiz
        answers: Raw learner answers keyed by question key (the question id)
        manual_scores: Staff-assigned points keyed by question key. A manual
            score overrides the automatic result and is clamped to [0, points].

    Returns:
        AttemptGrade with score, max_score and needs_manual_review
    """
    manual_scores = manual_scores or {}
    results: dict[str, GradeResult] = {}
    score = 0.0
    max_score = 0.0
    needs_review = False

    for question in questions:
        key = question.key
        result = grade(question, answers.get(key))
        if key in manual_scores:
            result = _apply_manual_score(question, result, manual_scores[key])
        if result.needs_manual_review:
            needs_review = True

        results[key] = result
        score += result.points_awarded
        max_score += question.points

    logger.debug(
        "Graded quiz {}: {}/{} (manual review pending: {})",
        quiz.id,
        score,
        max_score,
        needs_review,
    )
    return AttemptGrade(
        score=score,
        max_score=max_score,
        needs_manual_review=needs_review,
        results=results,
    )


def status_after_grading(result: AttemptGrade) -> AttemptStatus:
    """Attempt status once grading ran: graded unless a manual review is pending."""
    return AttemptStatus.SUBMITTED if result.needs_manual_review else AttemptStatus.GRADED


def finalize(result: AttemptGrade) -> AttemptGrade:
    """
    Close out grading of an attempt.

    Every answer still waiting for a manual score is awarded 0 points, so
    the returned grade has no pending review and status_after_grading()
    reports GRADED for it.
    """
    results = {}
    for key, item in result.results.items():
        if item.needs_manual_review:
            item = replace(
                item,
                points_awarded=0.0,
                needs_manual_review=False,
                details={**item.details, "manual_score": 0.0},
            )
        results[key] = item

    return AttemptGrade(
        score=sum(item.points_awarded for item in results.values()),
        max_score=result.max_score,
        needs_manual_review=False,
        results=results,
    )


@dataclass
class AttemptStats:
    """Score summary over the finished attempts of a quiz."""

    total: int
    completed: int
    average: float
    median: float
    variance: float

    @property
    def stddev(self) -> float:
        return math.sqrt(self.variance)

    @property
    def completion(self) -> int:
        """Share of attempts finished, as a whole percentage."""
        return math.floor(self.completed * 100 / self.total + 0.5) if self.total else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "completion": self.completion,
            "average": self.average,
            "median": self.median,
            "stddev": self.stddev,
        }


def attempt_stats(attempts: Sequence[Attempt]) -> AttemptStats:
    """
    Summarize scores of submitted and graded attempts.

    In-progress attempts count toward the total only. A finished attempt
    without a score counts as 0. Variance is the population variance.
    """
    scores = [
        a.score or 0.0
        for a in attempts
        if a.status in (AttemptStatus.SUBMITTED, AttemptStatus.GRADED)
    ]
    if not scores:
        return AttemptStats(total=len(attempts), completed=0, average=0.0, median=0.0, variance=0.0)

    return AttemptStats(
        total=len(attempts),
        completed=len(scores),
        average=statistics.fmean(scores),
        median=float(statistics.median(scores)),
        variance=statistics.pvariance(scores),
    )


def answer_from_payload(question: Question, payload: Mapping[str, Any] | None) -> Any:
    """
    Convert a stored answer payload into the raw answer the handlers grade.

    Payload shapes:
        {"selected_option_ids": [...]}  choice questions
        {"bool": true}                  true/false
        {"number": 4.2}                 numeric
        {"text": "..."}                 short text
    """
    if payload is None:
        return None

    kind = QuestionType(question.type)
    if kind is QuestionType.MCQ_SINGLE:
        selected = payload.get("selected_option_ids") or []
        return selected[0] if len(selected) == 1 else None
    if kind is QuestionType.MCQ_MULTI:
        return list(payload.get("selected_option_ids") or [])
    if kind is QuestionType.TRUE_FALSE:
        if "bool" in payload:
            return payload["bool"]
        # Older rows store the chosen option instead of the boolean
        selected = payload.get("selected_option_ids") or []
        for option in getattr(question, "options", []):
            if selected and option_key(option) == selected[0]:
                return option.order_index == 0
        return None
    if kind is QuestionType.NUMERIC:
        return payload.get("number")
    return payload.get("text")
