"""
Short text question handler.

No machine-checkable answer: every response is routed to manual review
and earns nothing until a staff member records a score.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..models import Option, QuestionType, ShortTextQuestion
from . import register
from .base import GradeResult, Violation


@register(QuestionType.SHORT_TEXT)
class ShortTextHandler:
    """Handler for short text questions."""

    def validate(self, question: ShortTextQuestion, index: int) -> list[Violation]:
        return []

    def stored_options(self, question: ShortTextQuestion, labels: tuple[str, str]) -> list[Option]:
        return []

    def stored_fields(self, question: ShortTextQuestion) -> dict[str, Any]:
        return {}

    def load(self, row: Mapping[str, Any], options: list[Option]) -> ShortTextQuestion:
        return ShortTextQuestion(
            id=row.get("id"),
            quiz_id=row.get("quiz_id"),
            text=row.get("text") or "",
            points=row.get("points") or 1,
            order_index=row.get("order_index") or 0,
        )

    def grade(self, question: ShortTextQuestion, answer: Any) -> GradeResult:
        return GradeResult(
            correct=False,
            points_awarded=0.0,
            needs_manual_review=True,
            feedback="Submitted for instructor review.",
            actual=str(answer)[:500] if answer is not None else None,
            details={"status": "pending_human_review"},
        )
