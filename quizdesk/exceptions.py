"""Error taxonomy for the quiz engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import Violation


class QuizdeskError(Exception):
    """Base class for all engine errors."""


class ValidationError(QuizdeskError):
    """Raised when a quiz draft fails validation. Nothing has been persisted."""

    def __init__(self, violations: list[Violation]):
        self.violations = list(violations)
        summary = "; ".join(v.message for v in self.violations) or "invalid draft"
        super().__init__(f"Quiz draft is invalid: {summary}")


class PersistenceError(QuizdeskError):
    """A create/update/delete call against the store failed for one record."""

    def __init__(self, operation: str, message: str, record_id: str | None = None):
        self.operation = operation
        self.record_id = record_id
        target = f" ({record_id})" if record_id else ""
        super().__init__(f"{operation}{target} failed: {message}")


class DeliveryError(QuizdeskError):
    """A single notification could not be delivered to one recipient."""

    def __init__(self, recipient_id: str, message: str):
        self.recipient_id = recipient_id
        super().__init__(f"Delivery to {recipient_id} failed: {message}")


class RecipientLookupError(QuizdeskError):
    """The recipient list for a fan-out could not be enumerated."""


class ResultsNotAvailableError(QuizdeskError):
    """Results were requested to be announced while the visibility policy withholds them."""
