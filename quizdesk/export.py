"""
Attempt export to delimited text.

One header line, then one row per attempt. Name and email are always
double-quoted (embedded quotes doubled); ids, timestamps, status and score
are written raw. A learner without a resolvable profile gets empty name and
email fields instead of failing the export.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from .models import Attempt, Profile

HEADER = ["student_id", "full_name", "email", "started_at", "submitted_at", "status", "score"]


def _quote(value: str | None) -> str:
    return '"' + (value or "").replace('"', '""') + '"'


def _timestamp(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def _score(value: float | None) -> str:
    if value is None:
        return "0"
    return str(int(value)) if float(value).is_integer() else str(value)


def _profile_fields(profile: Profile | Mapping[str, Any] | None) -> tuple[str | None, str | None]:
    if profile is None:
        return None, None
    if isinstance(profile, Mapping):
        return profile.get("full_name"), profile.get("email")
    return profile.full_name, profile.email


def to_delimited(
    attempts: Iterable[Attempt],
    profile_lookup: Mapping[str, Profile | Mapping[str, Any]],
    delimiter: str = ",",
) -> str:
    """
    Tabulate attempts with learner details.

    Args:
        attempts: Attempt records of one quiz
        profile_lookup: Profiles keyed by learner id
        delimiter: Field delimiter

    Returns:
        Delimited text, lines joined with newlines
    """
    lines = [delimiter.join(HEADER)]
    for attempt in attempts:
        full_name, email = _profile_fields(profile_lookup.get(attempt.student_id))
        status = attempt.status.value if hasattr(attempt.status, "value") else str(attempt.status)
        lines.append(delimiter.join([
            attempt.student_id,
            _quote(full_name),
            _quote(email),
            _timestamp(attempt.started_at),
            _timestamp(attempt.submitted_at),
            status,
            _score(attempt.score),
        ]))
    return "\n".join(lines)


def export_filename(quiz_id: str) -> str:
    """File name offered for download."""
    return f"quiz_{quiz_id}_attempts.csv"
