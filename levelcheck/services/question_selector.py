"""Question selection strategies.

Every strategy answers two questions for the session engine:
- which question opens the test (select_first)
- what follows the question that was just answered (select_next)

Strategies may update the in-memory session (materialized pool order,
adaptive estimate); the engine persists it in the same write as the answer.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional

import aiosqlite

from levelcheck.db import content_store as store
from levelcheck.models.assessment import CurrentEstimate, TestBlueprint, TestSession
from levelcheck.services import levels
from levelcheck.services.errors import StrategyNotImplemented

logger = logging.getLogger(__name__)

# Candidates fetched per adaptive query; one of them is picked at random
ADAPTIVE_CANDIDATE_LIMIT = 10


@dataclass
class Selection:
    next_question_id: Optional[str] = None
    finished: bool = False
    adaptive_level: Optional[int] = None


def _next_in_sequence(question_ids: list[str], just_answered_id: str) -> Selection:
    """Step through a fixed order. An id missing from the order ends the test."""
    try:
        index = question_ids.index(just_answered_id)
    except ValueError:
        logger.warning("Question %s is not in the session order, finishing", just_answered_id)
        return Selection(finished=True)
    if index + 1 < len(question_ids):
        return Selection(next_question_id=question_ids[index + 1])
    return Selection(finished=True)


class QuestionSelector:
    strategy = ""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def initial_estimate(self, blueprint: TestBlueprint) -> Optional[CurrentEstimate]:
        return None

    async def select_first(
        self, db: aiosqlite.Connection, blueprint: TestBlueprint, session: TestSession
    ) -> Optional[str]:
        raise NotImplementedError

    async def select_next(
        self,
        db: aiosqlite.Connection,
        blueprint: TestBlueprint,
        session: TestSession,
        just_answered_id: str,
    ) -> Selection:
        raise NotImplementedError


class LinearSelector(QuestionSelector):
    strategy = "linear"

    async def select_first(self, db, blueprint, session):
        return blueprint.linear_questions[0] if blueprint.linear_questions else None

    async def select_next(self, db, blueprint, session, just_answered_id):
        return _next_in_sequence(blueprint.linear_questions, just_answered_id)


class RandomizedPoolSelector(QuestionSelector):
    strategy = "randomized_pool"

    async def select_first(self, db, blueprint, session):
        if session.generated_questions is not None:
            # Already drawn for this session; never reshuffle
            order = session.generated_questions
            return order[0] if order else None

        pool_size = blueprint.pool_config.pool_size
        candidates = await store.find_questions(db, tags=blueprint.pool_config.tags or None)
        if not candidates or pool_size <= 0:
            return None

        selected = self.rng.sample(candidates, min(pool_size, len(candidates)))
        session.generated_questions = [q.id for q in selected]
        logger.info(
            "Drew %d of %d questions for session %s",
            len(selected), len(candidates), session.id,
        )
        return session.generated_questions[0]

    async def select_next(self, db, blueprint, session, just_answered_id):
        return _next_in_sequence(session.generated_questions or [], just_answered_id)


class AdaptiveSelector(QuestionSelector):
    strategy = "adaptive_rule_based"

    def initial_estimate(self, blueprint):
        config = blueprint.adaptive_config
        level = levels.clamp_level(config.initial_difficulty, config.difficulty_standard)
        return CurrentEstimate(level=level, questions_count=0)

    async def _pick(self, db, filters=None, exclude_ids=None) -> Optional[str]:
        candidates = await store.find_questions(
            db, filters=filters, exclude_ids=exclude_ids, limit=ADAPTIVE_CANDIDATE_LIMIT
        )
        if not candidates:
            return None
        return self.rng.choice(candidates).id

    async def select_first(self, db, blueprint, session):
        standard = blueprint.adaptive_config.difficulty_standard
        if session.current_estimate is None:
            session.current_estimate = self.initial_estimate(blueprint)
        level = session.current_estimate.level

        question_id = await self._pick(db, filters=levels.difficulty_filter(level, standard))
        if question_id is None:
            # Opening question may come from anywhere in the bank; later ones may not
            logger.warning(
                "No %s questions at %s, opening with any question",
                standard, levels.level_to_label(level, standard),
            )
            question_id = await self._pick(db)
        return question_id

    async def select_next(self, db, blueprint, session, just_answered_id):
        config = blueprint.adaptive_config
        standard = config.difficulty_standard
        estimate = session.current_estimate or self.initial_estimate(blueprint)

        last = session.history[-1] if session.history else None
        is_correct = bool(last and last.is_correct)
        new_level = levels.adjust_level(estimate.level, is_correct, standard)
        new_count = estimate.questions_count + 1
        session.current_estimate = CurrentEstimate(level=new_level, questions_count=new_count)

        if new_count >= config.max_questions:
            return Selection(finished=True, adaptive_level=new_level)

        question_id = await self._pick(
            db,
            filters=levels.difficulty_filter(new_level, standard),
            exclude_ids=session.answered_question_ids(),
        )
        if question_id is None:
            logger.info(
                "Question pool exhausted at %s for session %s, finishing",
                levels.level_to_label(new_level, standard), session.id,
            )
            return Selection(finished=True, adaptive_level=new_level)
        return Selection(next_question_id=question_id, adaptive_level=new_level)


SELECTORS = {
    cls.strategy: cls
    for cls in (LinearSelector, RandomizedPoolSelector, AdaptiveSelector)
}


def get_selector(strategy: str, rng: Optional[random.Random] = None) -> QuestionSelector:
    """Return the selector for a blueprint strategy."""
    try:
        selector_cls = SELECTORS[strategy]
    except KeyError:
        raise StrategyNotImplemented(f"Strategy not implemented: {strategy}")
    return selector_cls(rng)
