"""
Question type handlers.

Each question type has its own module with:
- validate(): draft completeness rules
- stored_options() / stored_fields(): what gets persisted at save time
- load(): rebuild the variant from stored rows
- grade(): check a learner answer
"""

from typing import TYPE_CHECKING

from ..models import QuestionType

if TYPE_CHECKING:
    from .base import QuestionHandler


# Handler registry - populated by @register decorator
HANDLERS: dict[QuestionType, "QuestionHandler"] = {}


def register(question_type: QuestionType):
    """Decorator to register a question handler."""
    def decorator(cls):
        instance = cls()
        instance.question_type = question_type
        HANDLERS[question_type] = instance
        return cls
    return decorator


def get_handler(question_type: str | QuestionType) -> "QuestionHandler":
    """Get the handler for a question type. Raises KeyError for unknown types."""
    if isinstance(question_type, str) and not isinstance(question_type, QuestionType):
        try:
            question_type = QuestionType(question_type.lower())
        except ValueError:
            raise KeyError(f"Unknown question type: {question_type}") from None
    return HANDLERS[question_type]


# Import handlers to trigger registration
from . import choice
from . import true_false
from . import numeric
from . import short_text

__all__ = [
    "HANDLERS",
    "get_handler",
    "register",
]
