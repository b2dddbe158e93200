"""Proficiency scales and the rule-based difficulty model.

Levels are 1-based integers on the scale of the blueprint's difficulty
standard: 1..6 for CEFR, 1..11 for ACTFL.  Questions carry one label per
scale and only the one matching the standard is ever consulted.
"""

CEFR_LEVELS = ["A1", "A2", "B1", "B2", "C1", "C2"]

ACTFL_LEVELS = [
    "novice_low", "novice_mid", "novice_high",
    "intermediate_low", "intermediate_mid", "intermediate_high",
    "advanced_low", "advanced_mid", "advanced_high",
    "superior", "distinguished",
]

LEVEL_SCALES = {
    "cefr": CEFR_LEVELS,
    "actfl": ACTFL_LEVELS,
}

# Question-bank column holding the label for each standard
DIFFICULTY_FIELDS = {
    "cefr": "difficulty_cefr",
    "actfl": "difficulty_actfl",
}


def _scale(standard: str) -> list[str]:
    try:
        return LEVEL_SCALES[standard]
    except KeyError:
        raise ValueError(f"Unknown difficulty standard: {standard}")


def max_level(standard: str) -> int:
    return len(_scale(standard))


def clamp_level(level: int, standard: str) -> int:
    return max(1, min(max_level(standard), level))


def level_to_label(level: int, standard: str) -> str:
    """Map a 1-based level to its label, clamping out-of-range values."""
    return _scale(standard)[clamp_level(level, standard) - 1]


def label_to_level(label: str, standard: str) -> int | None:
    scale = _scale(standard)
    if label not in scale:
        return None
    return scale.index(label) + 1


def adjust_level(level: int, is_correct: bool, standard: str) -> int:
    """One step up on a correct answer, one step down otherwise."""
    level = clamp_level(level, standard)
    if is_correct:
        return min(max_level(standard), level + 1)
    return max(1, level - 1)


def difficulty_filter(level: int, standard: str) -> dict[str, str]:
    """Equality filter selecting questions labelled at ``level``."""
    return {DIFFICULTY_FIELDS[standard]: level_to_label(level, standard)}
