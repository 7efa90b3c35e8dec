"""
Unit tests for attempt export.

Run: pytest tests/unit/test_export.py -v
"""

from datetime import datetime, timezone

import pytest

from quizdesk.export import HEADER, export_filename, to_delimited
from quizdesk.models import Attempt, AttemptStatus, Profile


@pytest.fixture
def attempts():
    return [
        Attempt(
            id="a-1",
            quiz_id="quiz-1",
            student_id="s-1",
            status=AttemptStatus.GRADED,
            started_at=datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc),
            submitted_at=datetime(2024, 5, 1, 9, 20, tzinfo=timezone.utc),
            score=7.5,
        ),
        Attempt(
            id="a-2",
            quiz_id="quiz-1",
            student_id="s-2",
            status=AttemptStatus.IN_PROGRESS,
            started_at=datetime(2024, 5, 1, 9, 5, tzinfo=timezone.utc),
        ),
    ]


@pytest.fixture
def profiles():
    return {
        "s-1": Profile(id="s-1", full_name='Ada "The Count" Lovelace', email="ada@example.com"),
    }


def test_header_line(attempts, profiles):
    lines = to_delimited(attempts, profiles).split("\n")

    assert lines[0] == "student_id,full_name,email,started_at,submitted_at,status,score"
    assert HEADER[0] == "student_id"


def test_row_with_profile(attempts, profiles):
    row = to_delimited(attempts, profiles).split("\n")[1]

    assert row == (
        's-1,"Ada ""The Count"" Lovelace","ada@example.com",'
        "2024-05-01T09:00:00+00:00,2024-05-01T09:20:00+00:00,graded,7.5"
    )


def test_row_without_profile_or_score(attempts, profiles):
    row = to_delimited(attempts, profiles).split("\n")[2]

    assert row == 's-2,"","",2024-05-01T09:05:00+00:00,,in_progress,0'


def test_integral_score_has_no_decimals(attempts):
    attempt = attempts[0].model_copy(update={"score": 8.0})

    row = to_delimited([attempt], {}).split("\n")[1]

    assert row.endswith(",graded,8")


def test_mapping_profiles_accepted(attempts):
    row = to_delimited(attempts[:1], {"s-1": {"full_name": "Ada", "email": None}}).split("\n")[1]

    assert row.startswith('s-1,"Ada","",')


def test_custom_delimiter(attempts, profiles):
    text = to_delimited(attempts, profiles, delimiter=";")

    assert text.split("\n")[0] == ";".join(HEADER)


def test_no_attempts_is_header_only():
    assert to_delimited([], {}) == ",".join(HEADER)


def test_export_filename():
    assert export_filename("quiz-1") == "quiz_quiz-1_attempts.csv"
