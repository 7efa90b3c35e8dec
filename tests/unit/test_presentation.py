"""
Unit tests for per-attempt presentation order.

Run: pytest tests/unit/test_presentation.py -v
"""

import hashlib

import pytest

from quizdesk.models import McqSingleQuestion, NumericQuestion, Option, ShortTextQuestion
from quizdesk.presentation import derive_seed, learner_view, present


@pytest.fixture
def shuffled_quiz(sample_quiz):
    return sample_quiz.model_copy(update={"shuffle_questions": True, "shuffle_options": True})


def _ids(questions):
    return [q.id for q in questions]


class TestDeriveSeed:

    def test_derivation_is_pinned(self):
        expected = int.from_bytes(hashlib.sha256(b"attempt-42").digest()[:8], "big")

        assert derive_seed("attempt-42") == expected

    def test_seed_fits_64_bits(self):
        assert 0 <= derive_seed("any") < 2 ** 64

    def test_different_attempts_different_seeds(self):
        assert derive_seed("attempt-1") != derive_seed("attempt-2")


class TestPresent:

    def test_same_attempt_same_order(self, shuffled_quiz, all_questions):
        first = present(shuffled_quiz, all_questions, "attempt-1")
        second = present(shuffled_quiz, list(reversed(all_questions)), "attempt-1")

        assert _ids(first) == _ids(second)
        assert [[o.id for o in getattr(q, "options", [])] for q in first] == [
            [o.id for o in getattr(q, "options", [])] for q in second
        ]

    def test_known_seed_gives_fixed_permutation(self, shuffled_quiz):
        questions = [
            McqSingleQuestion(id="q-a", text="Pick", order_index=0, options=[
                Option(id="o-1", text="1", is_correct=True, order_index=0),
                Option(id="o-2", text="2", order_index=1),
                Option(id="o-3", text="3", order_index=2),
            ]),
            NumericQuestion(id="q-b", text="2 + 2?", order_index=1, correct_value=4),
            ShortTextQuestion(id="q-c", text="Why?", order_index=2),
        ]

        ordered = present(shuffled_quiz, questions, 42)

        assert _ids(ordered) == ["q-b", "q-a", "q-c"]
        assert [o.id for o in ordered[1].options] == ["o-3", "o-2", "o-1"]

    def test_attempt_id_and_seed_are_interchangeable(self, shuffled_quiz, all_questions):
        by_id = present(shuffled_quiz, all_questions, "attempt-3")
        by_seed = present(shuffled_quiz, all_questions, derive_seed("attempt-3"))

        assert _ids(by_id) == _ids(by_seed)

    def test_attempts_get_independent_orders(self, shuffled_quiz, all_questions):
        orders = {
            tuple(_ids(present(shuffled_quiz, all_questions, f"attempt-{n}")))
            for n in range(20)
        }

        assert len(orders) > 1

    def test_is_a_permutation(self, shuffled_quiz, all_questions):
        ordered = present(shuffled_quiz, all_questions, "attempt-9")

        assert sorted(_ids(ordered)) == sorted(_ids(all_questions))

    def test_no_shuffle_keeps_order_index(self, sample_quiz, all_questions):
        quiz = sample_quiz.model_copy(update={"shuffle_questions": False, "shuffle_options": False})

        ordered = present(quiz, list(reversed(all_questions)), "attempt-1")

        assert [q.order_index for q in ordered] == [0, 1, 2, 3, 4]
        assert [o.id for o in ordered[0].options] == ["o-a", "o-b", "o-c"]

    def test_options_keep_their_correct_flag(self, shuffled_quiz, mcq_single):
        for n in range(10):
            question = present(shuffled_quiz, [mcq_single], f"attempt-{n}")[0]
            flags = {o.id: o.is_correct for o in question.options}
            assert flags == {"o-a": False, "o-b": True, "o-c": False}

    def test_true_false_never_shuffled(self, shuffled_quiz, true_false):
        for n in range(10):
            question = present(shuffled_quiz, [true_false], f"attempt-{n}")[0]
            assert [o.id for o in question.options] == ["tf-true", "tf-false"]

    def test_input_not_mutated(self, shuffled_quiz, all_questions, mcq_single):
        present(shuffled_quiz, all_questions, "attempt-5")

        assert _ids(all_questions) == ["q-single", "q-multi", "q-tf", "q-num", "q-text"]
        assert [o.id for o in mcq_single.options] == ["o-a", "o-b", "o-c"]


class TestLearnerView:

    def test_hides_correct_flags(self, mcq_single):
        view = learner_view(mcq_single)

        assert view["options"] == [
            {"id": "o-a", "text": "1/3"},
            {"id": "o-b", "text": "1/2"},
            {"id": "o-c", "text": "2/3"},
        ]

    def test_hides_numeric_answer(self, numeric):
        view = learner_view(numeric)

        assert "correct_value" not in view
        assert "tolerance" not in view
        assert "options" not in view
