"""
Pre-save validation of quiz drafts.

All rules are evaluated and every violation is reported, so the author can
fix the whole draft in one pass. A quiz with no questions is valid; questions
may be added later.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger

from .exceptions import ValidationError
from .lifecycle import as_utc
from .models import Question, Quiz
from .questions import get_handler
from .questions.base import Violation, has_text

__all__ = ["ValidationResult", "Violation", "validate_draft", "validate_question"]


@dataclass
class ValidationResult:
    """Outcome of validating a quiz draft."""

    violations: list[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    @property
    def codes(self) -> list[str]:
        return [v.code for v in self.violations]

    def for_question(self, index: int) -> list[Violation]:
        return [v for v in self.violations if v.question_index == index]

    def raise_for_violations(self) -> None:
        """Raise ValidationError if any rule failed."""
        if self.violations:
            raise ValidationError(self.violations)


def _validate_quiz(quiz: Quiz) -> list[Violation]:
    violations = []
    if not has_text(quiz.title):
        violations.append(Violation("title_required", "Enter a quiz title"))
    if not (quiz.subject_id or quiz.lesson_id):
        violations.append(Violation("link_required", "Choose a subject or a lesson"))
    if quiz.start_at and quiz.end_at and as_utc(quiz.start_at) > as_utc(quiz.end_at):
        violations.append(Violation("window_inverted", "The quiz cannot close before it opens"))
    return violations


def _validate_question(question: Question, index: int) -> list[Violation]:
    violations = []
    if not has_text(question.text):
        violations.append(Violation(
            "question_text_required",
            f"Question {index + 1}: enter the question text",
            index,
        ))
    violations.extend(get_handler(question.type).validate(question, index))
    return violations


def validate_question(question: Question, index: int = 0) -> ValidationResult:
    """Validate one question on its own, as when an existing question is edited."""
    violations = _validate_question(question, index)
    violations.extend(_validate_positions([question]))
    return ValidationResult(violations=violations)


def _validate_positions(questions: Sequence[Question]) -> list[Violation]:
    """Question order indices are unique within a quiz, option indices within a question."""
    violations = []
    seen: set[int] = set()
    for index, question in enumerate(questions):
        if question.order_index in seen:
            violations.append(Violation(
                "duplicate_order_index",
                f"Question {index + 1}: another question already has position {question.order_index}",
                index,
            ))
        seen.add(question.order_index)

        positions = [o.order_index for o in getattr(question, "options", [])]
        if len(positions) != len(set(positions)):
            violations.append(Violation(
                "duplicate_option_order",
                f"Question {index + 1}: two options share the same position",
                index,
            ))
    return violations


def validate_draft(quiz: Quiz, questions: Sequence[Question]) -> ValidationResult:
    """
    Validate a quiz and its questions before anything is persisted.

    Args:
        quiz: Quiz settings as authored
        questions: Questions in authoring order

    Returns:
        ValidationResult listing every violated rule
    """
    violations = _validate_quiz(quiz)

    for index, question in enumerate(questions):
        violations.extend(_validate_question(question, index))
    violations.extend(_validate_positions(questions))

    if violations:
        logger.debug("Draft '{}' failed validation: {}", quiz.title, [v.code for v in violations])
    return ValidationResult(violations=violations)
