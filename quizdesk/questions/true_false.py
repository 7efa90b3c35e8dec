"""
True/False question handler.

The authored boolean is materialized at save time into two options,
True at order 0 and False at order 1, with is_correct set accordingly.
Grading maps the learner's boolean onto those options and reuses the
choice selection path.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..models import Option, QuestionType, TrueFalseQuestion
from . import register
from .base import GradeResult, Violation, incorrect
from .choice import grade_selection, option_key

TRUE_INDEX = 0
FALSE_INDEX = 1


def synthesize_options(correct_answer: bool, labels: tuple[str, str]) -> list[Option]:
    """Build the True/False option pair for a boolean answer."""
    true_label, false_label = labels
    return [
        Option(text=true_label, is_correct=correct_answer is True, order_index=TRUE_INDEX),
        Option(text=false_label, is_correct=correct_answer is False, order_index=FALSE_INDEX),
    ]


def options_for(question: TrueFalseQuestion) -> list[Option]:
    """Materialized options, synthesized from the authored boolean for unsaved drafts."""
    if question.options:
        return sorted(question.options, key=lambda o: o.order_index)
    if question.correct_answer is None:
        return []
    return synthesize_options(question.correct_answer, ("True", "False"))


@register(QuestionType.TRUE_FALSE)
class TrueFalseHandler:
    """Handler for true/false questions."""

    def validate(self, question: TrueFalseQuestion, index: int) -> list[Violation]:
        if question.correct_answer is None and not any(o.is_correct for o in question.options):
            return [Violation(
                "true_false_answer_required",
                f"Question {index + 1}: choose whether the statement is true or false",
                index,
            )]
        return []

    def stored_options(self, question: TrueFalseQuestion, labels: tuple[str, str]) -> list[Option]:
        answer = question.correct_answer
        if answer is None:
            correct = next((o for o in question.options if o.is_correct), None)
            if correct is None:
                return []
            answer = correct.order_index == TRUE_INDEX
        return synthesize_options(answer, labels)

    def stored_fields(self, question: TrueFalseQuestion) -> dict[str, Any]:
        return {}

    def load(self, row: Mapping[str, Any], options: list[Option]) -> TrueFalseQuestion:
        ordered = sorted(options, key=lambda o: o.order_index)
        correct = next((o for o in ordered if o.is_correct), None)
        return TrueFalseQuestion(
            id=row.get("id"),
            quiz_id=row.get("quiz_id"),
            text=row.get("text") or "",
            points=row.get("points") or 1,
            order_index=row.get("order_index") or 0,
            # Order index, not label text, carries the meaning
            correct_answer=None if correct is None else correct.order_index == TRUE_INDEX,
            options=ordered,
        )

    def grade(self, question: TrueFalseQuestion, answer: Any) -> GradeResult:
        """Answer is a boolean."""
        if not isinstance(answer, bool):
            return incorrect("Answer true or false.", actual=answer)

        options = options_for(question)
        wanted = TRUE_INDEX if answer else FALSE_INDEX
        chosen = next((o for o in options if o.order_index == wanted), None)
        if chosen is None:
            return incorrect("Question has no stored answer.", actual=answer)

        result = grade_selection(question, options, {option_key(chosen)})
        result.actual = answer
        result.expected = next((o.order_index == TRUE_INDEX for o in options if o.is_correct), None)
        return result
