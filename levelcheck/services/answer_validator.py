"""
answer_validator.py - Per-question-type answer checking

Provides:
- validate_answer(question, answer) - Correctness, binary score, stored answer shape
  and a human-readable rendering for audit display

Answers arrive as loosely-typed JSON and are coerced at this boundary:
option questions take an index, fill_blank a list of strings, matching a
{left_index: right_index} mapping, speaking anything non-empty.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from levelcheck.models.assessment import OPTION_QUESTION_TYPES, QuestionBankItem

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    is_correct: bool
    score: int
    normalized_answer: dict
    readable_answer: str


def normalize_text(value: Any) -> str:
    """Normalize a blank entry for comparison."""
    if value is None:
        return ""
    return str(value).strip().lower()


# ── Boundary coercion ────────────────────────────────────────────────

def _as_index(answer: Any) -> Optional[int]:
    # bool is an int subclass but never a valid option index
    if isinstance(answer, bool) or not isinstance(answer, int):
        return None
    return answer


def _as_strings(answer: Any) -> list:
    if isinstance(answer, (list, tuple)):
        return list(answer)
    return [answer]


def _as_position(value: Any) -> Optional[int]:
    """Pair position from an int or an all-digit string. Floats are never truncated."""
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    return _as_index(value)


def _as_pairs(answer: Any) -> Optional[dict[int, int]]:
    """Parse {left: right} with string or int keys; None if any entry is malformed."""
    if not isinstance(answer, dict):
        return None
    pairs = {}
    for left, right in answer.items():
        left_idx, right_idx = _as_position(left), _as_position(right)
        if left_idx is None or right_idx is None:
            return None
        pairs[left_idx] = right_idx
    return pairs


# ── Correctness rules ────────────────────────────────────────────────

def _check_option(question: QuestionBankItem, answer: Any) -> bool:
    index = _as_index(answer)
    if index is None or not 0 <= index < len(question.options):
        return False
    return question.options[index].is_correct is True


def _check_blanks(question: QuestionBankItem, answer: Any) -> bool:
    if not question.blanks:
        return False
    user_answers = _as_strings(answer)
    for i, blank in enumerate(question.blanks):
        accepted = {normalize_text(a) for a in blank.accepted_answers.split("|")}
        user_value = normalize_text(user_answers[i]) if i < len(user_answers) else ""
        if user_value not in accepted:
            return False
    return True


def _check_matching(question: QuestionBankItem, answer: Any) -> bool:
    total = len(question.matching_pairs)
    pairs = _as_pairs(answer)
    if not total or pairs is None:
        return False
    # Pairs are aligned by construction: left i belongs with right i
    if set(pairs) != set(range(total)):
        return False
    return all(left == right for left, right in pairs.items())


def _check_speaking(answer: Any) -> bool:
    # Pronunciation is judged upstream; reaching here with content is a pass
    if answer is None or (isinstance(answer, (bool, int, float)) and not answer):
        return False
    if isinstance(answer, str):
        return bool(answer.strip())
    if isinstance(answer, (list, dict)):
        return len(answer) > 0
    return True


def _is_correct(question: QuestionBankItem, answer: Any) -> bool:
    q_type = question.type

    if q_type in OPTION_QUESTION_TYPES:
        return _check_option(question, answer)
    elif q_type == "fill_blank":
        return _check_blanks(question, answer)
    elif q_type == "matching":
        return _check_matching(question, answer)
    elif q_type == "speaking":
        return _check_speaking(answer)

    logger.warning("No validation rule for question type %s", q_type)
    return False


# ── Storage shape and rendering ──────────────────────────────────────

def normalize_answer(question: QuestionBankItem, answer: Any) -> dict:
    """Wrap the answer so storage never receives a bare scalar or list."""
    if question.type == "matching" and isinstance(answer, dict):
        # Numeric-looking keys are kept under their own object
        return {"pairs": answer}
    if isinstance(answer, dict):
        return answer
    return {"value": answer}


def _dump(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


def _render(question: QuestionBankItem, normalized: dict) -> str:
    q_type = question.type

    if q_type in OPTION_QUESTION_TYPES:
        index = _as_index(normalized.get("value"))
        if index is not None:
            if 0 <= index < len(question.options):
                return question.options[index].text
            return f"Option {index + 1}"

    if q_type == "matching":
        pairs = _as_pairs(normalized.get("pairs"))
        if pairs:
            total = len(question.matching_pairs)
            parts = []
            for left_idx, right_idx in pairs.items():
                left_pair = question.matching_pairs[left_idx] if 0 <= left_idx < total else None
                right_pair = question.matching_pairs[right_idx] if 0 <= right_idx < total else None
                left_label = (left_pair.left_text if left_pair else None) or f"Left {left_idx + 1}"
                right_label = (right_pair.right_text if right_pair else None) or f"Right {right_idx + 1}"
                parts.append(f"{left_label} -> {right_label}")
            return "; ".join(parts)

    if q_type == "fill_blank":
        value = normalized.get("value")
        if isinstance(value, list):
            return ", ".join(str(v) for v in value)
        if isinstance(value, str):
            return value

    return _dump(normalized)


def render_answer(question: QuestionBankItem, normalized: dict) -> str:
    """Human-readable answer for audit views. Never raises."""
    try:
        return _render(question, normalized)
    except Exception:
        logger.debug("Falling back to JSON rendering for question %s", question.id)
        return _dump(normalized)


def validate_answer(question: QuestionBankItem, answer: Any) -> ValidationResult:
    """
    Score a single answer.

    Returns:
        ValidationResult with is_correct, score (0 or 1), normalized_answer, readable_answer
    """
    is_correct = _is_correct(question, answer)
    normalized = normalize_answer(question, answer)
    return ValidationResult(
        is_correct=is_correct,
        score=1 if is_correct else 0,
        normalized_answer=normalized,
        readable_answer=render_answer(question, normalized),
    )
