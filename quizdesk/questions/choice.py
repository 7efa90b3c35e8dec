"""
Multiple choice question handlers.

- mcq_single: learner picks one option; exactly one option is correct.
- mcq_multi: learner picks a set of options; graded all-or-nothing by set equality.

The selection grading here is the one code path shared by every choice-style
question, true/false included.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Mapping

from ..models import (
    ChoiceQuestion,
    McqMultiQuestion,
    McqSingleQuestion,
    Option,
    QuestionType,
)
from . import register
from .base import GradeResult, Violation, has_text, incorrect


def option_key(option: Option) -> str:
    """Identity of an option: its stored id, or its order index before save."""
    return option.id if option.id is not None else f"#{option.order_index}"


def usable_options(options: Iterable[Option]) -> list[Option]:
    """Options with non-empty text, re-indexed 0..n-1 in their current order."""
    kept = [o for o in sorted(options, key=lambda o: o.order_index) if has_text(o.text)]
    return [o.model_copy(update={"order_index": i}) for i, o in enumerate(kept)]


def mark_correct(question: ChoiceQuestion, option_index: int) -> ChoiceQuestion:
    """
    Apply an author's click on the correct-answer checkbox of option N.

    Single-answer questions keep only the last-checked option correct.
    Multi-answer questions toggle the clicked option.
    """
    if not 0 <= option_index < len(question.options):
        raise IndexError(f"Option index {option_index} out of range")

    if isinstance(question, McqMultiQuestion):
        options = [
            o.model_copy(update={"is_correct": not o.is_correct}) if i == option_index else o
            for i, o in enumerate(question.options)
        ]
    else:
        options = [
            o.model_copy(update={"is_correct": i == option_index})
            for i, o in enumerate(question.options)
        ]
    return question.model_copy(update={"options": options})


def grade_selection(
    question: ChoiceQuestion,
    options: list[Option],
    selected: set[str],
) -> GradeResult:
    """Correct iff the selected option keys equal the correct option keys as sets."""
    expected = {option_key(o) for o in options if o.is_correct}
    correct = bool(expected) and selected == expected
    return GradeResult(
        correct=correct,
        points_awarded=float(question.points) if correct else 0.0,
        feedback="Correct!" if correct else "Incorrect.",
        expected=sorted(expected),
        actual=sorted(selected),
        details={
            "missed": sorted(expected - selected),
            "incorrect_selected": sorted(selected - expected),
        },
    )


def _load_options(question_cls, row: Mapping[str, Any], options: list[Option]):
    return question_cls(
        id=row.get("id"),
        quiz_id=row.get("quiz_id"),
        text=row.get("text") or "",
        points=row.get("points") or 1,
        order_index=row.get("order_index") or 0,
        options=sorted(options, key=lambda o: o.order_index),
    )


def _validate_options(question: ChoiceQuestion, index: int) -> list[Violation]:
    filled = [o for o in question.options if has_text(o.text)]
    violations = []
    if len(filled) < 2:
        violations.append(Violation(
            "options_min_two",
            f"Question {index + 1}: add at least two options with text",
            index,
        ))
    if not any(o.is_correct for o in filled):
        violations.append(Violation(
            "correct_option_required",
            f"Question {index + 1}: mark at least one option as correct",
            index,
        ))
    return violations


@register(QuestionType.MCQ_SINGLE)
class McqSingleHandler:
    """Handler for single-answer multiple choice."""

    def validate(self, question: McqSingleQuestion, index: int) -> list[Violation]:
        violations = _validate_options(question, index)
        correct = [o for o in question.options if o.is_correct and has_text(o.text)]
        if len(correct) > 1:
            violations.append(Violation(
                "single_correct_only",
                f"Question {index + 1}: only one option can be correct",
                index,
            ))
        return violations

    def stored_options(self, question: McqSingleQuestion, labels: tuple[str, str]) -> list[Option]:
        return usable_options(question.options)

    def stored_fields(self, question: McqSingleQuestion) -> dict[str, Any]:
        return {}

    def load(self, row: Mapping[str, Any], options: list[Option]) -> McqSingleQuestion:
        return _load_options(McqSingleQuestion, row, options)

    def grade(self, question: McqSingleQuestion, answer: Any) -> GradeResult:
        """Answer is one option id (a one-element list is accepted)."""
        if isinstance(answer, (list, tuple, set, frozenset)):
            if len(answer) != 1:
                return incorrect("Select exactly one option.", actual=answer)
            answer = next(iter(answer))
        if not isinstance(answer, str) or not answer:
            return incorrect("No option selected.", actual=answer)
        return grade_selection(question, question.options, {answer})


@register(QuestionType.MCQ_MULTI)
class McqMultiHandler:
    """Handler for multiple-answer multiple choice."""

    def validate(self, question: McqMultiQuestion, index: int) -> list[Violation]:
        return _validate_options(question, index)

    def stored_options(self, question: McqMultiQuestion, labels: tuple[str, str]) -> list[Option]:
        return usable_options(question.options)

    def stored_fields(self, question: McqMultiQuestion) -> dict[str, Any]:
        return {}

    def load(self, row: Mapping[str, Any], options: list[Option]) -> McqMultiQuestion:
        return _load_options(McqMultiQuestion, row, options)

    def grade(self, question: McqMultiQuestion, answer: Any) -> GradeResult:
        """Answer is a collection of option ids; duplicates collapse, order is ignored."""
        if answer is None or isinstance(answer, (str, bytes, Mapping)):
            return incorrect("Select one or more options.", actual=answer)
        try:
            selected = {str(a) for a in answer}
        except TypeError:
            return incorrect("Select one or more options.", actual=answer)
        return grade_selection(question, question.options, selected)
