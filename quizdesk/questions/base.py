"""
Base protocol and result types for question handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from ..models import Option, Question, QuestionType


@dataclass(frozen=True)
class Violation:
    """A single failed validation rule."""

    code: str
    message: str
    question_index: int | None = None


@dataclass
class GradeResult:
    """Result of grading one answer."""

    correct: bool
    points_awarded: float
    needs_manual_review: bool = False
    feedback: str = ""
    expected: Any = None
    actual: Any = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "correct": self.correct,
            "points_awarded": self.points_awarded,
            "needs_manual_review": self.needs_manual_review,
            "feedback": self.feedback,
            "expected": self.expected,
            "actual": self.actual,
            "details": self.details,
        }


def incorrect(feedback: str, actual: Any = None) -> GradeResult:
    """Zero-point result for a missing or malformed answer."""
    return GradeResult(correct=False, points_awarded=0.0, feedback=feedback, actual=actual)


def has_text(value: str | None) -> bool:
    return bool(value and value.strip())


class QuestionHandler(Protocol):
    """Protocol for question type handlers."""

    question_type: QuestionType

    def validate(self, question: Question, index: int) -> list[Violation]:
        """Check the type-specific completeness rules of a draft question."""
        ...

    def stored_options(self, question: Question, labels: tuple[str, str]) -> list[Option]:
        """Option rows to persist for this question (empty for non-choice types)."""
        ...

    def stored_fields(self, question: Question) -> dict[str, Any]:
        """Type-specific question columns to persist."""
        ...

    def load(self, row: Mapping[str, Any], options: list[Option]) -> Question:
        """Rebuild the question variant from a stored row and its option rows."""
        ...

    def grade(self, question: Question, answer: Any) -> GradeResult:
        """Grade a learner answer."""
        ...
