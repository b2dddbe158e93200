"""Final result for a finished test session."""

import logging

import aiosqlite

from levelcheck.db import content_store as store
from levelcheck.models.assessment import FinalResult, HistoryItem, SkillStat, TestBlueprint, TestSession
from levelcheck.services import levels
from levelcheck.services.question_selector import AdaptiveSelector

logger = logging.getLogger(__name__)

PASS_THRESHOLD = 0.6


def skill_breakdown(history: list[HistoryItem]) -> dict[str, SkillStat]:
    """Correct/total counts per tag across all answered questions."""
    breakdown: dict[str, SkillStat] = {}
    for item in history:
        for tag in item.tags:
            stat = breakdown.setdefault(tag, SkillStat())
            stat.total += 1
            if item.is_correct:
                stat.correct += 1
    return breakdown


def summarize_history(history: list[HistoryItem]) -> FinalResult:
    score = sum(item.awarded_score for item in history)
    max_score = len(history)
    return FinalResult(
        score=score,
        max_score=max_score,
        passed=max_score > 0 and score / max_score > PASS_THRESHOLD,
        skill_breakdown=skill_breakdown(history),
    )


async def build_final_result(
    db: aiosqlite.Connection, blueprint: TestBlueprint, session: TestSession
) -> FinalResult:
    """Score the session and, for adaptive tests, attach the level verdict.

    A missing level description is not an error; the title and description
    are simply left out.
    """
    result = summarize_history(session.history)

    if blueprint.strategy != AdaptiveSelector.strategy or session.current_estimate is None:
        return result

    standard = blueprint.adaptive_config.difficulty_standard
    level_code = levels.level_to_label(session.current_estimate.level, standard)
    result.level = level_code

    description = await store.find_level_description(db, standard, level_code)
    if description:
        result.level_title = description.title
        result.level_description = description.description
    else:
        logger.info("No level description for %s %s", standard, level_code)
    return result
