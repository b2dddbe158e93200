"""Tests for per-question-type answer validation and rendering."""

import json

from levelcheck.models.assessment import QuestionBankItem
from levelcheck.services.answer_validator import normalize_text, validate_answer


def _mc(type_="multiple_choice"):
    return QuestionBankItem.model_validate({
        "id": "mc1",
        "type": type_,
        "stem": "Pick one",
        "options": [
            {"text": "red", "isCorrect": False},
            {"text": "blue", "isCorrect": True},
            {"text": "green"},
        ],
    })


def _blanks(*accepted):
    return QuestionBankItem.model_validate({
        "id": "fb1",
        "type": "fill_blank",
        "blanks": [{"acceptedAnswers": a} for a in accepted],
    })


def _matching(n=3):
    return QuestionBankItem.model_validate({
        "id": "m1",
        "type": "matching",
        "matchingPairs": [
            {"leftText": f"L{i}", "rightText": f"R{i}"} for i in range(n)
        ],
    })


class TestOptionQuestions:
    def test_correct_index(self):
        result = validate_answer(_mc(), 1)
        assert result.is_correct is True
        assert result.score == 1
        assert result.normalized_answer == {"value": 1}
        assert result.readable_answer == "blue"

    def test_wrong_index(self):
        result = validate_answer(_mc(), 0)
        assert result.is_correct is False
        assert result.score == 0
        assert result.readable_answer == "red"

    def test_out_of_range_and_non_numeric_are_incorrect(self):
        for answer in (7, -1, "1", None, 1.0, True, [1]):
            assert validate_answer(_mc(), answer).is_correct is False

    def test_unknown_index_renders_option_number(self):
        assert validate_answer(_mc(), 7).readable_answer == "Option 8"

    def test_non_integer_index_renders_as_json(self):
        result = validate_answer(_mc(), 1.0)
        assert result.is_correct is False
        assert json.loads(result.readable_answer) == {"value": 1.0}

    def test_listening_and_reading_share_the_rule(self):
        assert validate_answer(_mc("listening_comprehension"), 1).is_correct is True
        assert validate_answer(_mc("reading_comprehension"), 2).is_correct is False


class TestFillBlank:
    def test_case_and_whitespace_insensitive(self):
        result = validate_answer(_blanks("Paris|Lyon"), [" paris "])
        assert result.is_correct is True

    def test_alternatives(self):
        assert validate_answer(_blanks("color|colour"), ["COLOUR"]).is_correct is True

    def test_single_string_answer(self):
        result = validate_answer(_blanks("went"), "Went")
        assert result.is_correct is True
        assert result.normalized_answer == {"value": "Went"}

    def test_all_blanks_must_match(self):
        question = _blanks("went", "saw")
        assert validate_answer(question, ["went", "saw"]).is_correct is True
        assert validate_answer(question, ["went", "seen"]).is_correct is False
        assert validate_answer(question, ["went"]).is_correct is False

    def test_no_blanks_is_never_correct(self):
        assert validate_answer(_blanks(), ["anything"]).is_correct is False

    def test_readable_joins_values(self):
        result = validate_answer(_blanks("a", "b"), ["a", "b"])
        assert result.readable_answer == "a, b"
        assert result.normalized_answer == {"value": ["a", "b"]}

    def test_normalize_text(self):
        assert normalize_text("  Hello ") == "hello"
        assert normalize_text(None) == ""


class TestMatching:
    def test_all_pairs_correct(self):
        result = validate_answer(_matching(), {"0": 0, "1": 1, "2": 2})
        assert result.is_correct is True
        assert result.normalized_answer == {"pairs": {"0": 0, "1": 1, "2": 2}}
        assert result.readable_answer == "L0 -> R0; L1 -> R1; L2 -> R2"

    def test_one_wrong_pair_fails_the_item(self):
        result = validate_answer(_matching(), {"0": 0, "1": 2, "2": 1})
        assert result.is_correct is False
        assert result.score == 0

    def test_two_of_three_correct_is_not_partial_credit(self):
        assert validate_answer(_matching(), {"0": 0, "1": 1, "2": 0}).is_correct is False

    def test_every_pair_must_be_attempted(self):
        assert validate_answer(_matching(), {"0": 0, "1": 1}).is_correct is False

    def test_extra_pairs_outside_question_fail(self):
        assert validate_answer(_matching(2), {"0": 0, "1": 1, "5": 5}).is_correct is False

    def test_malformed_answers(self):
        question = _matching()
        assert validate_answer(question, {"a": 0}).is_correct is False
        assert validate_answer(question, [0, 1, 2]).is_correct is False
        assert validate_answer(question, None).is_correct is False

    def test_fractional_positions_are_not_truncated(self):
        question = _matching()
        result = validate_answer(question, {"0": 0.9, "1": 1.5, "2": 2.99})
        assert result.is_correct is False
        assert result.score == 0
        assert json.loads(result.readable_answer) == {"pairs": {"0": 0.9, "1": 1.5, "2": 2.99}}
        assert validate_answer(question, {"0": 0, "1": 1, "2": 2.0}).is_correct is False
        assert validate_answer(question, {"0": "0", "1": "1.0", "2": 2}).is_correct is False
        assert validate_answer(question, {"0": True, "1": 1, "2": 2}).is_correct is False

    def test_digit_strings_are_accepted(self):
        assert validate_answer(_matching(), {"0": "0", "1": "1", "2": "2"}).is_correct is True

    def test_readable_falls_back_to_positions(self):
        question = QuestionBankItem.model_validate({
            "id": "m2",
            "type": "matching",
            "matchingPairs": [{"leftType": "image", "rightType": "image"}],
        })
        assert validate_answer(question, {"0": 0}).readable_answer == "Left 1 -> Right 1"

    def test_unrenderable_pairs_fall_back_to_json(self):
        result = validate_answer(_matching(), {"x": "y"})
        assert result.is_correct is False
        assert json.loads(result.readable_answer) == {"pairs": {"x": "y"}}


class TestSpeaking:
    def _question(self):
        return QuestionBankItem.model_validate({"id": "s1", "type": "speaking"})

    def test_any_content_passes(self):
        assert validate_answer(self._question(), "recording-123").is_correct is True
        assert validate_answer(self._question(), {"transcript": "hello"}).is_correct is True

    def test_empty_answers_fail(self):
        for answer in ("", "   ", None, {}, [], False, 0, 0.0):
            assert validate_answer(self._question(), answer).is_correct is False

    def test_non_zero_numbers_pass(self):
        assert validate_answer(self._question(), 3).is_correct is True

    def test_readable_is_json(self):
        result = validate_answer(self._question(), "take-1")
        assert json.loads(result.readable_answer) == {"value": "take-1"}


class TestStorageShape:
    def test_primitives_are_wrapped(self):
        assert validate_answer(_mc(), 2).normalized_answer == {"value": 2}

    def test_objects_are_kept(self):
        question = QuestionBankItem.model_validate({"id": "s1", "type": "speaking"})
        assert validate_answer(question, {"audio": "a.mp3"}).normalized_answer == {"audio": "a.mp3"}


class TestPublicView:
    def test_answer_keys_are_removed(self):
        data = _mc().public_view()
        assert data["options"] == [{"text": "red"}, {"text": "blue"}, {"text": "green"}]

        data = _blanks("went", "saw").public_view()
        assert "blanks" not in data
        assert data["blankCount"] == 2

    def test_matching_pairs_are_served_for_client_shuffling(self):
        data = _matching(2).public_view()
        assert [p["rightText"] for p in data["matchingPairs"]] == ["R0", "R1"]
