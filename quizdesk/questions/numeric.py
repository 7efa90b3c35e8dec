"""
Numeric question handler.

Correct iff abs(answer - target) <= tolerance. Tolerance defaults to 0,
meaning exact match. The boundary is compared with math.isclose so binary
float representation never flips an answer that sits exactly on it.
"""

from __future__ import annotations

import math
from typing import Any, Mapping

from ..models import NumericQuestion, Option, QuestionType
from . import register
from .base import GradeResult, Violation, incorrect


def within_tolerance(actual: float, expected: float, tolerance: float) -> bool:
    """Tolerance check with float-safe boundary handling."""
    error = abs(actual - expected)
    return error <= tolerance or math.isclose(error, tolerance, rel_tol=1e-9, abs_tol=1e-12)


def parse_number(value: Any) -> float | None:
    """Coerce a learner answer to a finite float. Booleans are not numbers here."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@register(QuestionType.NUMERIC)
class NumericHandler:
    """Handler for numeric questions."""

    def validate(self, question: NumericQuestion, index: int) -> list[Violation]:
        violations = []
        if question.correct_value is None:
            violations.append(Violation(
                "numeric_value_required",
                f"Question {index + 1}: enter the correct number",
                index,
            ))
        if question.tolerance is not None and question.tolerance < 0:
            violations.append(Violation(
                "numeric_tolerance_negative",
                f"Question {index + 1}: tolerance cannot be negative",
                index,
            ))
        return violations

    def stored_options(self, question: NumericQuestion, labels: tuple[str, str]) -> list[Option]:
        return []

    def stored_fields(self, question: NumericQuestion) -> dict[str, Any]:
        return {
            "correct_value": question.correct_value,
            "tolerance": question.tolerance or 0.0,
        }

    def load(self, row: Mapping[str, Any], options: list[Option]) -> NumericQuestion:
        correct_value = row.get("correct_value")
        tolerance = row.get("tolerance")
        return NumericQuestion(
            id=row.get("id"),
            quiz_id=row.get("quiz_id"),
            text=row.get("text") or "",
            points=row.get("points") or 1,
            order_index=row.get("order_index") or 0,
            correct_value=float(correct_value) if correct_value is not None else None,
            tolerance=float(tolerance) if tolerance is not None else None,
        )

    def grade(self, question: NumericQuestion, answer: Any) -> GradeResult:
        """Answer is a number (numeric strings are accepted)."""
        actual = parse_number(answer)
        if actual is None:
            return incorrect("Please enter a valid number.", actual=answer)
        if question.correct_value is None:
            return incorrect("Question has no stored answer.", actual=actual)

        expected = question.correct_value
        tolerance = max(question.tolerance or 0.0, 0.0)
        correct = within_tolerance(actual, expected, tolerance)

        if correct:
            feedback = "Correct!"
        else:
            feedback = f"Incorrect. The correct answer is: {expected:g}"
            if tolerance > 0:
                feedback += f" (tolerance: ±{tolerance:g})"

        return GradeResult(
            correct=correct,
            points_awarded=float(question.points) if correct else 0.0,
            feedback=feedback,
            expected=expected,
            actual=actual,
            details={"error": abs(actual - expected), "tolerance": tolerance},
        )
