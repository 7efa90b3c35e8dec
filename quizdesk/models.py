"""
Quiz domain models.

Question is a closed tagged union over the five question kinds. Each variant
carries only the fields meaningful to it and rejects fields of the others.

Question Types:
- mcq_single: one correct option among several
- mcq_multi: one or more correct options, graded all-or-nothing
- true_false: a single boolean, stored as two options (True, False)
- numeric: target value with optional absolute tolerance
- short_text: free text, always graded manually
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QuestionType(str, Enum):
    """Supported question kinds."""

    MCQ_SINGLE = "mcq_single"
    MCQ_MULTI = "mcq_multi"
    TRUE_FALSE = "true_false"
    SHORT_TEXT = "short_text"
    NUMERIC = "numeric"


class ShowResultsPolicy(str, Enum):
    """When a learner may see their computed score."""

    IMMEDIATE = "immediate"
    AFTER_CLOSE = "after_close"
    NEVER = "never"


class AttemptStatus(str, Enum):
    """Attempt lifecycle as recorded by the surrounding system."""

    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"


# =============================================================================
# Quiz
# =============================================================================


class Quiz(BaseModel):
    """Quiz configuration. Linked to a subject or a lesson."""

    id: str | None = None
    subject_id: str | None = None
    lesson_id: str | None = None
    title: str = ""
    description: str | None = None
    time_limit_minutes: int | None = Field(default=None, ge=1)
    start_at: datetime | None = None
    end_at: datetime | None = None
    attempts_allowed: int = Field(default=1, ge=1)
    shuffle_questions: bool = True
    shuffle_options: bool = True
    show_results_policy: ShowResultsPolicy = ShowResultsPolicy.AFTER_CLOSE

    def link_fields(self) -> dict[str, str | None]:
        """Resolve the link target. A lesson link takes precedence over a subject link."""
        if self.lesson_id:
            return {"subject_id": None, "lesson_id": self.lesson_id}
        return {"subject_id": self.subject_id or None, "lesson_id": None}


# =============================================================================
# Questions
# =============================================================================


class Option(BaseModel):
    """An answer option of a choice-style question."""

    id: str | None = None
    text: str = ""
    is_correct: bool = False
    order_index: int = Field(default=0, ge=0)


class _QuestionBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    quiz_id: str | None = None
    text: str = ""
    points: int = Field(default=1, ge=1)
    order_index: int = Field(default=0, ge=0)

    @property
    def key(self) -> str:
        """Stable key for answers and results: the stored id, or the order index for drafts."""
        return self.id if self.id is not None else f"#{self.order_index}"


class McqSingleQuestion(_QuestionBase):
    type: Literal["mcq_single"] = "mcq_single"
    options: list[Option] = Field(default_factory=list)


class McqMultiQuestion(_QuestionBase):
    type: Literal["mcq_multi"] = "mcq_multi"
    options: list[Option] = Field(default_factory=list)


class TrueFalseQuestion(_QuestionBase):
    """True/false question.

    ``correct_answer`` is the authoring value. ``options`` holds the two
    materialized rows once the question has been saved or loaded.
    """

    type: Literal["true_false"] = "true_false"
    correct_answer: bool | None = None
    options: list[Option] = Field(default_factory=list)


class NumericQuestion(_QuestionBase):
    type: Literal["numeric"] = "numeric"
    correct_value: float | None = None
    tolerance: float | None = None


class ShortTextQuestion(_QuestionBase):
    type: Literal["short_text"] = "short_text"


Question = Annotated[
    Union[
        McqSingleQuestion,
        McqMultiQuestion,
        TrueFalseQuestion,
        NumericQuestion,
        ShortTextQuestion,
    ],
    Field(discriminator="type"),
]

ChoiceQuestion = Union[McqSingleQuestion, McqMultiQuestion, TrueFalseQuestion]


class QuizDraft(BaseModel):
    """A quiz with its questions, as authored or read from a JSON file.

    List position is the authoring order: questions, and the options of
    multiple choice questions, are re-indexed 0..n-1 from where they appear.
    Draft files may leave order_index out entirely.
    """

    quiz: Quiz
    questions: list[Question] = Field(default_factory=list)

    @model_validator(mode="after")
    def _index_by_position(self) -> QuizDraft:
        self.questions = [_positioned(question, i) for i, question in enumerate(self.questions)]
        return self


def _positioned(question: Question, index: int) -> Question:
    update: dict = {"order_index": index}
    # true/false options encode the boolean in their order_index
    if isinstance(question, (McqSingleQuestion, McqMultiQuestion)):
        update["options"] = [
            option.model_copy(update={"order_index": i}) for i, option in enumerate(question.options)
        ]
    return question.model_copy(update=update)


# =============================================================================
# External records
# =============================================================================


class Attempt(BaseModel):
    """One learner's attempt at a quiz. Owned by the surrounding system."""

    id: str
    quiz_id: str
    student_id: str
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    started_at: datetime | None = None
    submitted_at: datetime | None = None
    score: float | None = None


class LearnerRef(BaseModel):
    """A learner enrolled in a subject."""

    id: str


class Profile(BaseModel):
    """Display details of a learner, used for exports."""

    id: str
    full_name: str | None = None
    email: str | None = None
