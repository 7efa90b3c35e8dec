"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work. Only
offline commands are exercised; nothing here needs a database.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import subprocess
import sys
from pathlib import Path

import pytest
from loguru import logger
from typer.testing import CliRunner

from quizdesk.cli.main import app

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

runner = CliRunner()

DRAFT = {
    "quiz": {"title": "Fractions", "subject_id": "subject-1", "shuffle_questions": True},
    "questions": [
        {
            "type": "mcq_single",
            "text": "Which fraction equals 0.5?",
            "points": 2,
            "order_index": 0,
            "options": [
                {"text": "1/3", "order_index": 0},
                {"text": "1/2", "is_correct": True, "order_index": 1},
            ],
        },
        {
            "type": "numeric",
            "text": "What is 9.5 + 0.5?",
            "order_index": 1,
            "correct_value": 10,
            "tolerance": 0.5,
        },
    ],
}


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger.remove()


@pytest.fixture
def draft_file(tmp_path):
    path = tmp_path / "draft.json"
    path.write_text(json.dumps(DRAFT), encoding="utf-8")
    return path


@pytest.fixture
def invalid_draft_file(tmp_path):
    draft = {"quiz": {"title": ""}, "questions": [{"type": "true_false", "text": "Statement"}]}
    path = tmp_path / "invalid.json"
    path.write_text(json.dumps(draft), encoding="utf-8")
    return path


def run_cli_command(command: str, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command in a subprocess and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m quizdesk.cli.main')
        timeout: Maximum time to wait
    """
    result = subprocess.run(
        f"{sys.executable} -m quizdesk.cli.main {command}",
        shell=True,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
    )
    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should display without errors."""
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "validate" in stdout
        assert "notify-results" in stdout
        assert "stats" in stdout
        assert "move" in stdout

    def test_db_help(self):
        result = runner.invoke(app, ["db", "--help"])

        assert result.exit_code == 0
        assert "init" in result.output


class TestCLIValidate:

    def test_valid_draft(self, draft_file):
        result = runner.invoke(app, ["validate", str(draft_file)])

        assert result.exit_code == 0, result.output
        assert "is valid" in result.output

    def test_invalid_draft(self, invalid_draft_file):
        result = runner.invoke(app, ["validate", str(invalid_draft_file)])

        assert result.exit_code == 1

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.json")])

        assert result.exit_code == 1

    def test_unknown_question_type(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"quiz": {"title": "x"}, "questions": [{"type": "essay"}]}))

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1


class TestCLIPreview:

    def test_preview_runs(self, draft_file):
        result = runner.invoke(app, ["preview", str(draft_file), "--attempt", "attempt-1"])

        assert result.exit_code == 0, result.output
        assert "attempt-1" in result.output
        assert "mcq_single" in result.output

    def test_preview_is_stable(self, draft_file):
        first = runner.invoke(app, ["preview", str(draft_file), "-a", "attempt-1"])
        second = runner.invoke(app, ["preview", str(draft_file), "-a", "attempt-1"])

        assert first.output == second.output


class TestCLIGrade:

    def test_grade_answers(self, draft_file, tmp_path):
        answers = tmp_path / "answers.json"
        answers.write_text(json.dumps({"#0": "#1", "#1": 10.2}))

        result = runner.invoke(app, ["grade", str(draft_file), str(answers)])

        assert result.exit_code == 0, result.output
        assert "Score: 3/3" in result.output
        assert "status: graded" in result.output

    def test_grade_wrong_answers(self, draft_file, tmp_path):
        answers = tmp_path / "answers.json"
        answers.write_text(json.dumps({"#0": "#0", "#1": 12}))

        result = runner.invoke(app, ["grade", str(draft_file), str(answers)])

        assert result.exit_code == 0
        assert "Score: 0/3" in result.output

    def test_draft_without_positions(self, tmp_path):
        draft = {
            "quiz": {"title": "Fractions", "subject_id": "subject-1"},
            "questions": [
                {"type": "mcq_single", "text": "Pick", "options": [
                    {"text": "Right", "is_correct": True},
                    {"text": "Wrong"},
                ]},
                {"type": "short_text", "text": "Why?"},
            ],
        }
        draft_path = tmp_path / "draft.json"
        draft_path.write_text(json.dumps(draft), encoding="utf-8")
        answers = tmp_path / "answers.json"
        answers.write_text(json.dumps({"#0": "#1", "#1": "Because"}))

        result = runner.invoke(app, ["grade", str(draft_path), str(answers)])

        assert result.exit_code == 0, result.output
        assert "Score: 0/2" in result.output
        assert "status: submitted" in result.output

    def test_finalize_scores_pending_as_zero(self, tmp_path):
        draft = {
            "quiz": {"title": "Essay", "subject_id": "subject-1"},
            "questions": [{"type": "short_text", "text": "Why?", "points": 3}],
        }
        draft_path = tmp_path / "draft.json"
        draft_path.write_text(json.dumps(draft), encoding="utf-8")
        answers = tmp_path / "answers.json"
        answers.write_text(json.dumps({"#0": "Because"}))

        result = runner.invoke(app, ["grade", str(draft_path), str(answers), "--finalize"])

        assert result.exit_code == 0, result.output
        assert "Score: 0/3" in result.output
        assert "status: graded" in result.output


class TestCLIOfflineGuards:
    """Commands that stop before reaching the database."""

    def test_save_rejects_invalid_draft(self, invalid_draft_file):
        result = runner.invoke(app, ["save", str(invalid_draft_file)])

        assert result.exit_code == 1

    def test_delete_requires_confirmation(self):
        result = runner.invoke(app, ["delete", "quiz-1"], input="n\n")

        assert result.exit_code == 1
