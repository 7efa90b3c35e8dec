"""
Authoring and staff operations.

QuizService wires the pure engine (validation, lifecycle, grading, export)
to a store and a notification transport. Saving is best-effort: the quiz,
each question and each option set are written one after another and a
failure is reported per item without undoing what was already stored.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from config import Settings, get_settings

from .exceptions import PersistenceError, RecipientLookupError, ResultsNotAvailableError
from .export import to_delimited
from .grading import (
    AttemptGrade,
    AttemptStats,
    attempt_stats,
    finalize,
    grade_attempt,
    status_after_grading,
)
from .lifecycle import close, reopen, results_notifiable
from .models import AttemptStatus, Question, Quiz
from .notifications import (
    NotificationTransport,
    NotifyResult,
    notify,
    quiz_published_message,
    results_available_message,
)
from .questions import get_handler
from .validation import validate_draft, validate_question

if TYPE_CHECKING:
    from .db.quiz_store import StaffStore


@dataclass
class SaveItem:
    """Outcome of writing one question (and its options)."""

    kind: str
    index: int
    ok: bool
    record_id: str | None = None
    error: str | None = None


@dataclass
class SaveReport:
    """Outcome of a best-effort draft save."""

    quiz: Quiz
    items: list[SaveItem] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(item.ok for item in self.items)

    @property
    def failed(self) -> list[SaveItem]:
        return [item for item in self.items if not item.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "quiz_id": self.quiz.id,
            "ok": self.ok,
            "items": [item.__dict__ for item in self.items],
        }


@dataclass
class GradedSubmission:
    grade: AttemptGrade
    status: AttemptStatus


class QuizService:
    """Staff-facing quiz operations over a store and a notification transport."""

    def __init__(
        self,
        store: StaffStore,
        transport: NotificationTransport | None = None,
        settings: Settings | None = None,
    ):
        """
        Args:
            store: Quiz store that also answers roster lookups
            transport: Notification transport used by publish/notify_results
            settings: Defaults to get_settings()
        """
        self.store = store
        self.transport = transport
        self.settings = settings or get_settings()

    # ========================================
    # Authoring
    # ========================================

    async def save_draft(
        self,
        quiz: Quiz,
        questions: Sequence[Question],
        labels: tuple[str, str] | None = None,
    ) -> SaveReport:
        """
        Validate and persist a quiz with its questions.

        Raises:
            ValidationError: Draft is invalid; nothing was written
            PersistenceError: The quiz row itself could not be created
        """
        validate_draft(quiz, questions).raise_for_violations()
        labels = labels or self.settings.get_option_labels()

        fields = quiz.model_dump(exclude={"id"}, mode="json")
        fields.update(quiz.link_fields())
        fields["start_at"] = quiz.start_at
        fields["end_at"] = quiz.end_at
        saved = await self.store.create_quiz(fields)
        report = SaveReport(quiz=saved)

        for index, question in enumerate(questions):
            report.items.append(await self._save_question(saved.id, index, question, labels))

        if report.failed:
            logger.warning(
                "Quiz {} saved with {} failed question(s)", saved.id, len(report.failed)
            )
        else:
            logger.info("Quiz {} saved with {} question(s)", saved.id, len(report.items))
        return report

    async def _save_question(
        self, quiz_id: str, index: int, question: Question, labels: tuple[str, str]
    ) -> SaveItem:
        handler = get_handler(question.type)
        fields = {
            "quiz_id": quiz_id,
            "type": question.type,
            "text": question.text,
            "points": question.points,
            "order_index": index,
            "correct_value": None,
            "tolerance": None,
        }
        fields.update(handler.stored_fields(question))

        try:
            question_id = await self.store.add_question(fields)
        except PersistenceError as e:
            logger.error("Question {} of quiz {} not saved: {}", index + 1, quiz_id, e)
            return SaveItem(kind="question", index=index, ok=False, error=str(e))

        options = handler.stored_options(question, labels)
        if options:
            try:
                await self.store.add_options(question_id, options)
            except PersistenceError as e:
                logger.error("Options of question {} not saved: {}", question_id, e)
                return SaveItem(kind="options", index=index, ok=False, record_id=question_id, error=str(e))

        return SaveItem(kind="question", index=index, ok=True, record_id=question_id)

    async def edit_question(self, question: Question, labels: tuple[str, str] | None = None) -> list[str]:
        """
        Write an edited question back over its stored row.

        Text, points, position and the type-specific answer columns are
        updated; choice options are replaced as a whole.

        Returns:
            Ids of the newly stored options (empty for option-less types)

        Raises:
            ValueError: The question has never been saved
            ValidationError: The edited question is invalid; nothing was written
        """
        if question.id is None:
            raise ValueError("Only saved questions can be edited")
        validate_question(question).raise_for_violations()

        handler = get_handler(question.type)
        patch = {"text": question.text, "points": question.points, "order_index": question.order_index}
        patch.update(handler.stored_fields(question))
        await self.store.update_question(question.id, patch)

        options = handler.stored_options(question, labels or self.settings.get_option_labels())
        if not options:
            return []
        option_ids = await self.store.replace_options(question.id, options)
        logger.info("Question {} updated with {} option(s)", question.id, len(option_ids))
        return option_ids

    async def move_question(self, questions: Sequence[Question], index: int, step: int) -> list[Question]:
        """
        Swap the question at index with its neighbour step places away.

        Both swapped questions get their new position persisted. Moving past
        either end of the list changes nothing.
        """
        target = index + step
        ordered = sorted(questions, key=lambda q: q.order_index)
        if not (0 <= index < len(ordered) and 0 <= target < len(ordered)):
            return ordered

        ordered[index], ordered[target] = ordered[target], ordered[index]
        for position in (index, target):
            ordered[position] = ordered[position].model_copy(update={"order_index": position})
            await self.store.update_question(ordered[position].id, {"order_index": position})
        return ordered

    async def reorder_questions(self, quiz_id: str, ordered_ids: Sequence[str]) -> None:
        """Persist a complete new question order."""
        if len(set(ordered_ids)) != len(ordered_ids):
            raise ValueError("Each question may appear only once in the new order")
        await self.store.reorder_questions(quiz_id, ordered_ids)

    # ========================================
    # Lifecycle
    # ========================================

    async def close_quiz(self, quiz: Quiz, now: datetime | None = None) -> Quiz:
        closed = close(quiz, now)
        if closed is not quiz:
            await self.store.update_quiz(quiz.id, {"end_at": closed.end_at})
        return closed

    async def reopen_quiz(self, quiz: Quiz) -> Quiz:
        reopened = reopen(quiz)
        if reopened is not quiz:
            await self.store.update_quiz(quiz.id, {"end_at": None})
        return reopened

    async def delete_quiz(self, quiz_id: str) -> None:
        await self.store.delete_quiz(quiz_id)

    # ========================================
    # Notifications
    # ========================================

    async def _roster(self, quiz: Quiz) -> list:
        if not quiz.subject_id:
            return []
        try:
            return await self.store.enrolled_learners_for_subject(quiz.subject_id)
        except PersistenceError as e:
            raise RecipientLookupError(
                f"Could not list learners of subject {quiz.subject_id}: {e}"
            ) from e

    async def publish(self, quiz: Quiz) -> NotifyResult:
        """Tell every learner enrolled in the quiz's subject that it is available."""
        learners = await self._roster(quiz)
        if not learners:
            logger.info("Quiz {} has no learners to notify", quiz.id)
            return NotifyResult()
        return await notify(
            learners,
            quiz_published_message(quiz),
            self._require_transport(),
            self.settings.notification_batch_size,
        )

    async def notify_results(self, quiz: Quiz, now: datetime | None = None) -> NotifyResult:
        """
        Announce that results are available.

        Raises:
            ResultsNotAvailableError: The visibility policy still withholds results
        """
        if not results_notifiable(quiz, now):
            raise ResultsNotAvailableError(
                f"Results of quiz {quiz.id} are not available under policy "
                f"'{quiz.show_results_policy.value}'"
            )
        learners = await self._roster(quiz)
        if not learners:
            return NotifyResult()
        return await notify(
            learners,
            results_available_message(quiz),
            self._require_transport(),
            self.settings.notification_batch_size,
        )

    def _require_transport(self) -> NotificationTransport:
        if self.transport is None:
            raise RuntimeError("No notification transport configured")
        return self.transport

    # ========================================
    # Results
    # ========================================

    async def export_attempts(self, quiz_id: str) -> str:
        attempts = await self.store.list_attempts_for_quiz(quiz_id)
        profiles = await self.store.profiles_by_id(a.student_id for a in attempts)
        logger.info("Exporting {} attempt(s) of quiz {}", len(attempts), quiz_id)
        return to_delimited(attempts, profiles, self.settings.export_delimiter)

    def grade_submission(
        self,
        quiz: Quiz,
        questions: Sequence[Question],
        answers: Mapping[str, Any],
        manual_scores: Mapping[str, float] | None = None,
    ) -> GradedSubmission:
        result = grade_attempt(quiz, questions, answers, manual_scores)
        return GradedSubmission(grade=result, status=status_after_grading(result))

    def finalize_submission(self, submission: GradedSubmission) -> GradedSubmission:
        """Award 0 to every answer still awaiting review and mark the attempt graded."""
        result = finalize(submission.grade)
        return GradedSubmission(grade=result, status=status_after_grading(result))

    async def attempt_stats(self, quiz_id: str) -> AttemptStats:
        return attempt_stats(await self.store.list_attempts_for_quiz(quiz_id))
