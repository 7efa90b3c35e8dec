"""SQL-backed store for quizzes, rosters and notifications."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import PersistenceError
from ..models import Attempt, LearnerRef, Option, Profile, Question, Quiz
from ..notifications.messages import Notification
from ..questions import get_handler

QUIZ_COLUMNS = (
    "subject_id",
    "lesson_id",
    "title",
    "description",
    "time_limit_minutes",
    "start_at",
    "end_at",
    "attempts_allowed",
    "shuffle_questions",
    "shuffle_options",
    "show_results_policy",
)

QUESTION_COLUMNS = (
    "quiz_id",
    "type",
    "text",
    "points",
    "order_index",
    "correct_value",
    "tolerance",
)

# Columns an edit may change after the question was created
QUESTION_PATCH_COLUMNS = ("text", "points", "order_index", "correct_value", "tolerance")


class QuizStore(Protocol):
    """Persistence operations the engine relies on."""

    async def create_quiz(self, fields: Mapping[str, Any]) -> Quiz: ...

    async def add_question(self, fields: Mapping[str, Any]) -> str: ...

    async def add_options(self, question_id: str, options: Sequence[Option]) -> list[str]: ...

    async def update_quiz(self, quiz_id: str, patch: Mapping[str, Any]) -> None: ...

    async def update_question(self, question_id: str, patch: Mapping[str, Any]) -> None: ...

    async def replace_options(self, question_id: str, options: Sequence[Option]) -> list[str]: ...

    async def reorder_questions(self, quiz_id: str, ordered_ids: Sequence[str]) -> None: ...

    async def delete_quiz(self, quiz_id: str) -> None: ...

    async def list_attempts_for_quiz(self, quiz_id: str) -> list[Attempt]: ...

    async def fetch_quiz(self, quiz_id: str) -> Quiz | None: ...

    async def fetch_questions(self, quiz_id: str) -> list[Question]: ...

    async def profiles_by_id(self, ids: Iterable[str]) -> dict[str, Profile]: ...


class RosterLookup(Protocol):
    """Enrollment lookup owned by the roster system."""

    async def enrolled_learners_for_subject(self, subject_id: str) -> list[LearnerRef]: ...


class StaffStore(QuizStore, RosterLookup, Protocol):
    """A quiz store that also answers roster lookups."""


def _mapping(row: Any) -> Mapping[str, Any]:
    return row._mapping if hasattr(row, "_mapping") else row


def _row_to_quiz(row: Any) -> Quiz:
    mapping = _mapping(row)
    data = {key: mapping.get(key) for key in QUIZ_COLUMNS if mapping.get(key) is not None}
    for key in ("subject_id", "lesson_id"):
        if key in data:
            data[key] = str(data[key])
    return Quiz(id=str(mapping["id"]), **data)


class SqlQuizStore:
    """
    Async store over the quiz tables.

    Every write commits on its own, so a multi-step save keeps whatever
    succeeded before a failing step.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _execute(self, operation: str, query: Any, params: Mapping[str, Any], record_id: str | None = None):
        try:
            return await self.session.execute(query, dict(params))
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("{} failed for {}: {}", operation, record_id or "new record", e)
            raise PersistenceError(operation, str(e), record_id) from e

    async def _commit(self, operation: str, record_id: str | None = None) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError(operation, str(e), record_id) from e

    # ========================================
    # Writes
    # ========================================

    async def create_quiz(self, fields: Mapping[str, Any]) -> Quiz:
        """Insert a quiz row and return it with its id."""
        values = {key: fields.get(key) for key in QUIZ_COLUMNS if key in fields}
        columns = ", ".join(values)
        placeholders = ", ".join(f":{key}" for key in values)
        query = text(
            f"INSERT INTO quizzes ({columns}) VALUES ({placeholders}) RETURNING *"
        )
        result = await self._execute("create_quiz", query, values)
        quiz = _row_to_quiz(result.first())
        await self._commit("create_quiz", quiz.id)
        logger.info("Created quiz {} ({})", quiz.id, quiz.title)
        return quiz

    async def add_question(self, fields: Mapping[str, Any]) -> str:
        """Insert a question row and return its id."""
        values = {key: fields.get(key) for key in QUESTION_COLUMNS}
        query = text(
            """
            INSERT INTO quiz_questions (
                quiz_id, type, text, points, order_index, correct_value, tolerance
            ) VALUES (
                :quiz_id, :type, :text, :points, :order_index, :correct_value, :tolerance
            )
            RETURNING id
            """
        )
        result = await self._execute("add_question", query, values)
        question_id = str(result.scalar_one())
        await self._commit("add_question", question_id)
        return question_id

    async def add_options(self, question_id: str, options: Sequence[Option]) -> list[str]:
        """Insert the option rows of one question."""
        query = text(
            """
            INSERT INTO quiz_options (question_id, text, is_correct, order_index)
            VALUES (:question_id, :text, :is_correct, :order_index)
            RETURNING id
            """
        )
        ids = []
        for option in options:
            result = await self._execute(
                "add_options",
                query,
                {
                    "question_id": question_id,
                    "text": option.text,
                    "is_correct": option.is_correct,
                    "order_index": option.order_index,
                },
                question_id,
            )
            ids.append(str(result.scalar_one()))
        await self._commit("add_options", question_id)
        return ids

    async def update_quiz(self, quiz_id: str, patch: Mapping[str, Any]) -> None:
        """Update quiz columns. Unknown columns are rejected."""
        unknown = set(patch) - set(QUIZ_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update quiz columns: {sorted(unknown)}")
        if not patch:
            return

        assignments = ", ".join(f"{key} = :{key}" for key in patch)
        query = text(f"UPDATE quizzes SET {assignments} WHERE id = :quiz_id")
        result = await self._execute("update_quiz", query, {**patch, "quiz_id": quiz_id}, quiz_id)
        if result.rowcount == 0:
            await self.session.rollback()
            raise PersistenceError("update_quiz", "quiz not found", quiz_id)
        await self._commit("update_quiz", quiz_id)
        logger.info("Updated quiz {}: {}", quiz_id, sorted(patch))

    async def delete_quiz(self, quiz_id: str) -> None:
        """Delete a quiz; questions, options and attempts cascade."""
        query = text("DELETE FROM quizzes WHERE id = :quiz_id")
        result = await self._execute("delete_quiz", query, {"quiz_id": quiz_id}, quiz_id)
        if result.rowcount == 0:
            await self.session.rollback()
            raise PersistenceError("delete_quiz", "quiz not found", quiz_id)
        await self._commit("delete_quiz", quiz_id)
        logger.info("Deleted quiz {}", quiz_id)

    async def update_question(self, question_id: str, patch: Mapping[str, Any]) -> None:
        """Update question columns. Type and quiz cannot change."""
        unknown = set(patch) - set(QUESTION_PATCH_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update question columns: {sorted(unknown)}")
        if not patch:
            return

        assignments = ", ".join(f"{key} = :{key}" for key in patch)
        query = text(f"UPDATE quiz_questions SET {assignments} WHERE id = :question_id")
        result = await self._execute(
            "update_question", query, {**patch, "question_id": question_id}, question_id
        )
        if result.rowcount == 0:
            await self.session.rollback()
            raise PersistenceError("update_question", "question not found", question_id)
        await self._commit("update_question", question_id)

    async def replace_options(self, question_id: str, options: Sequence[Option]) -> list[str]:
        """
        Delete the option rows of a question and insert the given ones instead.

        The delete and the inserts commit together; a failed insert rolls the
        delete back.
        """
        await self._execute(
            "replace_options",
            text("DELETE FROM quiz_options WHERE question_id = :question_id"),
            {"question_id": question_id},
            question_id,
        )
        if not options:
            await self._commit("replace_options", question_id)
            return []
        return await self.add_options(question_id, options)

    async def reorder_questions(self, quiz_id: str, ordered_ids: Sequence[str]) -> None:
        """Persist order_index 0..n-1 following ordered_ids."""
        query = text(
            "UPDATE quiz_questions SET order_index = :order_index "
            "WHERE id = :question_id AND quiz_id = :quiz_id"
        )
        for index, question_id in enumerate(ordered_ids):
            result = await self._execute(
                "reorder_questions",
                query,
                {"order_index": index, "question_id": question_id, "quiz_id": quiz_id},
                question_id,
            )
            if result.rowcount == 0:
                await self.session.rollback()
                raise PersistenceError("reorder_questions", f"question not in quiz {quiz_id}", question_id)
        await self._commit("reorder_questions", quiz_id)
        logger.info("Reordered {} question(s) of quiz {}", len(ordered_ids), quiz_id)

    async def create_notification(self, notification: Notification) -> str:
        """Insert an in-app notification row."""
        query = text(
            """
            INSERT INTO notifications (recipient_id, title, body, link_url)
            VALUES (:recipient_id, :title, :body, :link_url)
            RETURNING id
            """
        )
        result = await self._execute(
            "create_notification", query, notification.to_dict(), notification.recipient_id
        )
        notification_id = str(result.scalar_one())
        await self._commit("create_notification", notification.recipient_id)
        return notification_id

    # ========================================
    # Reads
    # ========================================

    async def fetch_quiz(self, quiz_id: str) -> Quiz | None:
        query = text("SELECT * FROM quizzes WHERE id = :quiz_id")
        result = await self._execute("fetch_quiz", query, {"quiz_id": quiz_id}, quiz_id)
        row = result.first()
        return _row_to_quiz(row) if row else None

    async def fetch_questions(self, quiz_id: str) -> list[Question]:
        """Load all questions of a quiz with their options, in stored order."""
        question_rows = await self._execute(
            "fetch_questions",
            text("SELECT * FROM quiz_questions WHERE quiz_id = :quiz_id ORDER BY order_index"),
            {"quiz_id": quiz_id},
            quiz_id,
        )
        option_rows = await self._execute(
            "fetch_questions",
            text(
                """
                SELECT o.*
                FROM quiz_options o
                JOIN quiz_questions q ON q.id = o.question_id
                WHERE q.quiz_id = :quiz_id
                ORDER BY o.order_index
                """
            ),
            {"quiz_id": quiz_id},
            quiz_id,
        )

        options_by_question: dict[str, list[Option]] = defaultdict(list)
        for row in option_rows.fetchall():
            mapping = _mapping(row)
            options_by_question[str(mapping["question_id"])].append(Option(
                id=str(mapping["id"]),
                text=mapping["text"],
                is_correct=bool(mapping["is_correct"]),
                order_index=mapping["order_index"],
            ))

        questions = []
        for row in question_rows.fetchall():
            mapping = dict(_mapping(row))
            mapping["id"] = str(mapping["id"])
            mapping["quiz_id"] = str(mapping["quiz_id"])
            handler = get_handler(mapping["type"])
            questions.append(handler.load(mapping, options_by_question.get(mapping["id"], [])))
        return questions

    async def list_attempts_for_quiz(self, quiz_id: str) -> list[Attempt]:
        query = text(
            """
            SELECT id, quiz_id, student_id, status, started_at, submitted_at, score
            FROM quiz_attempts
            WHERE quiz_id = :quiz_id
            ORDER BY started_at ASC
            """
        )
        result = await self._execute("list_attempts_for_quiz", query, {"quiz_id": quiz_id}, quiz_id)
        attempts = []
        for row in result.fetchall():
            mapping = _mapping(row)
            attempts.append(Attempt(
                id=str(mapping["id"]),
                quiz_id=str(mapping["quiz_id"]),
                student_id=str(mapping["student_id"]),
                status=mapping["status"],
                started_at=mapping.get("started_at"),
                submitted_at=mapping.get("submitted_at"),
                score=float(mapping["score"]) if mapping.get("score") is not None else None,
            ))
        return attempts

    async def enrolled_learners_for_subject(self, subject_id: str) -> list[LearnerRef]:
        query = text(
            """
            SELECT DISTINCT e.student_id
            FROM student_enrollments e
            JOIN class_subjects s ON s.class_id = e.class_id
            WHERE s.id = :subject_id
              AND e.status = 'active'
            """
        )
        result = await self._execute("enrolled_learners_for_subject", query, {"subject_id": subject_id}, subject_id)
        return [LearnerRef(id=str(_mapping(row)["student_id"])) for row in result.fetchall()]

    async def profiles_by_id(self, ids: Iterable[str]) -> dict[str, Profile]:
        ids = sorted(set(ids))
        if not ids:
            return {}
        query = text("SELECT id, full_name, email FROM profiles WHERE id = ANY(:ids)")
        result = await self._execute("profiles_by_id", query, {"ids": ids})
        profiles = {}
        for row in result.fetchall():
            mapping = _mapping(row)
            profile = Profile(
                id=str(mapping["id"]),
                full_name=mapping.get("full_name"),
                email=mapping.get("email"),
            )
            profiles[profile.id] = profile
        return profiles
