"""Notification payloads sent to learners."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from ..models import LearnerRef, Quiz


@dataclass
class Notification:
    """A single-recipient notice."""

    recipient_id: str
    title: str
    body: str
    link_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to API payload format."""
        return {
            "recipient_id": self.recipient_id,
            "title": self.title,
            "body": self.body,
            "link_url": self.link_url,
        }


MessageBuilder = Callable[[LearnerRef], Notification]


def quiz_published_message(quiz: Quiz) -> MessageBuilder:
    """Builder for the 'new quiz available' notice."""
    def build(learner: LearnerRef) -> Notification:
        return Notification(
            recipient_id=learner.id,
            title=f"New quiz: {quiz.title}",
            body="A new quiz is available.",
            link_url=f"/dashboard/quizzes/{quiz.id}/take",
        )
    return build


def results_available_message(quiz: Quiz) -> MessageBuilder:
    """Builder for the 'results available' notice."""
    def build(learner: LearnerRef) -> Notification:
        return Notification(
            recipient_id=learner.id,
            title=f"Results available: {quiz.title}",
            body="Results are now available.",
            link_url=f"/dashboard/quizzes/{quiz.id}/result",
        )
    return build
