"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from quizdesk.models import (  # noqa: E402
    McqMultiQuestion,
    McqSingleQuestion,
    NumericQuestion,
    Option,
    Quiz,
    ShortTextQuestion,
    TrueFalseQuestion,
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_quiz():
    """Provide a saved quiz linked to a subject."""
    return Quiz(
        id="quiz-1",
        subject_id="subject-1",
        title="Fractions",
        description="Unit 3 check",
        attempts_allowed=2,
    )


@pytest.fixture
def mcq_single():
    """Single-answer question with stored option ids."""
    return McqSingleQuestion(
        id="q-single",
        text="Which fraction equals 0.5?",
        points=2,
        order_index=0,
        options=[
            Option(id="o-a", text="1/3", order_index=0),
            Option(id="o-b", text="1/2", is_correct=True, order_index=1),
            Option(id="o-c", text="2/3", order_index=2),
        ],
    )


@pytest.fixture
def mcq_multi():
    """Multi-answer question with two correct options."""
    return McqMultiQuestion(
        id="q-multi",
        text="Which are equal to 1/2?",
        points=3,
        order_index=1,
        options=[
            Option(id="m-a", text="2/4", is_correct=True, order_index=0),
            Option(id="m-b", text="3/6", is_correct=True, order_index=1),
            Option(id="m-c", text="2/3", order_index=2),
        ],
    )


@pytest.fixture
def true_false():
    return TrueFalseQuestion(
        id="q-tf",
        text="1/2 is greater than 1/3",
        points=1,
        order_index=2,
        options=[
            Option(id="tf-true", text="True", is_correct=True, order_index=0),
            Option(id="tf-false", text="False", order_index=1),
        ],
    )


@pytest.fixture
def numeric():
    return NumericQuestion(
        id="q-num",
        text="What is 9.5 + 0.5?",
        points=1,
        order_index=3,
        correct_value=10,
        tolerance=0.5,
    )


@pytest.fixture
def short_text():
    return ShortTextQuestion(
        id="q-text",
        text="Explain how to compare fractions",
        points=4,
        order_index=4,
    )


@pytest.fixture
def all_questions(mcq_single, mcq_multi, true_false, numeric, short_text):
    return [mcq_single, mcq_multi, true_false, numeric, short_text]
