"""Database layer: table definitions, engine/session setup and the SQL store."""

from .database import async_session_scope, dispose, get_engine, init_db
from .models import AttemptRow, Base, NotificationRow, OptionRow, QuestionRow, QuizRow
from .quiz_store import QuizStore, RosterLookup, SqlQuizStore, StaffStore

__all__ = [
    "AttemptRow",
    "Base",
    "NotificationRow",
    "OptionRow",
    "QuestionRow",
    "QuizRow",
    "QuizStore",
    "RosterLookup",
    "SqlQuizStore",
    "StaffStore",
    "async_session_scope",
    "dispose",
    "get_engine",
    "init_db",
]
