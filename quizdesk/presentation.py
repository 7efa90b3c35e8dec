"""
Presentation ordering for an attempt.

Shuffling is deterministic per attempt: the seed is derived from the attempt
id, so reloading an in-progress attempt reproduces the same order while a new
attempt by the same learner gets an independent permutation.

Seed derivation:
    derive_seed(attempt_id) = int.from_bytes(sha256(attempt_id)[:8], "big")
One random.Random(seed) stream drives the whole attempt: it shuffles the
questions (sorted by order_index) first, then the options of each question
in presentation order, each sorted by order_index before shuffling.

True/false options are never shuffled and draw nothing from the stream;
True stays before False.
"""

from __future__ import annotations

import hashlib
import random
from collections.abc import Sequence
from typing import Any

from .models import Question, QuestionType, Quiz


def derive_seed(attempt_id: str) -> int:
    """Stable 64-bit seed for an attempt id."""
    digest = hashlib.sha256(str(attempt_id).encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def _present_options(question: Question, rng: random.Random, shuffle: bool) -> Question:
    options = getattr(question, "options", None)
    if not options:
        return question

    ordered = sorted(options, key=lambda o: o.order_index)
    if shuffle and question.type != QuestionType.TRUE_FALSE:
        rng.shuffle(ordered)
    return question.model_copy(update={"options": ordered})


def present(quiz: Quiz, questions: Sequence[Question], attempt_seed: int | str) -> list[Question]:
    """
    Order questions and options for display in one attempt.

    Args:
        quiz: Quiz whose shuffle flags apply
        questions: Persisted questions in any order
        attempt_seed: Seed from derive_seed(), or the attempt id itself

    Returns:
        New question objects in presentation order. Options are moved as
        whole objects, so each keeps its own is_correct flag.
    """
    seed = attempt_seed if isinstance(attempt_seed, int) else derive_seed(attempt_seed)
    rng = random.Random(seed)

    ordered = sorted(questions, key=lambda q: q.order_index)
    if quiz.shuffle_questions:
        rng.shuffle(ordered)

    return [_present_options(q, rng, quiz.shuffle_options) for q in ordered]


def learner_view(question: Question) -> dict[str, Any]:
    """Learner-facing payload of a question, with every answer key removed."""
    payload: dict[str, Any] = {
        "id": question.id,
        "type": question.type,
        "text": question.text,
        "points": question.points,
    }
    options = getattr(question, "options", None)
    if options:
        payload["options"] = [{"id": o.id, "text": o.text} for o in options]
    return payload
