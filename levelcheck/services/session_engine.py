"""
session_engine.py - Test session lifecycle

Provides:
- start_session(db, blueprint_id, user) - Create a session and return the first unit
- submit(db, body, user) - Record a questionnaire or question answer and return what's next

A session moves through:
    pre-test questionnaire (optional) -> question loop -> post-test questionnaire (optional) -> completed

Each call reads the session fresh, mutates it in memory and writes it back
once with a version check. A unit is either {"type": "question", ...} or
{"type": "questionnaire", ...}.
"""

import logging
import random
from typing import Any, Dict, Optional

import aiosqlite

from levelcheck.config import settings
from levelcheck.db import content_store as store
from levelcheck.models.assessment import (
    HistoryItem,
    QuestionBankItem,
    Questionnaire,
    QuestionnaireAnswer,
    SubmitRequest,
    TestBlueprint,
    TestSession,
    utc_now,
)
from levelcheck.services.answer_validator import validate_answer
from levelcheck.services.errors import (
    InvalidRequest,
    InvalidState,
    NoQuestionsAvailable,
    NotFound,
)
from levelcheck.services.question_selector import QuestionSelector, get_selector
from levelcheck.services.result_aggregator import build_final_result

logger = logging.getLogger(__name__)


def new_rng() -> random.Random:
    """Per-request random source; seeded from config when reproducible draws are wanted."""
    return random.Random(settings.pool_shuffle_seed)


def can_access(session: TestSession, user: Optional[dict]) -> bool:
    if user is None or session.user_id is None:
        return True
    if user.get("role") in settings.staff_role_set:
        return True
    return session.user_id == str(user.get("id"))


# ── Helpers ──────────────────────────────────────────────────────────

def _question_unit(question: QuestionBankItem) -> dict:
    return {"type": "question", "data": question.public_view()}


def _questionnaire_unit(questionnaire: Questionnaire) -> dict:
    return {"type": "questionnaire", "data": questionnaire.to_json()}


async def _load_blueprint(db: aiosqlite.Connection, blueprint_id: str) -> TestBlueprint:
    blueprint = await store.get_blueprint(db, blueprint_id)
    if blueprint is None:
        raise NotFound("Blueprint not found")
    return blueprint


async def _load_questionnaire(db: aiosqlite.Connection, questionnaire_id: str) -> Questionnaire:
    questionnaire = await store.get_questionnaire(db, questionnaire_id)
    if questionnaire is None:
        raise NotFound(f"Questionnaire not found: {questionnaire_id}")
    return questionnaire


async def _load_question(db: aiosqlite.Connection, question_id: str) -> QuestionBankItem:
    question = await store.get_question(db, question_id)
    if question is None:
        raise NotFound(f"Question not found: {question_id}")
    return question


async def _open_question_loop(
    db: aiosqlite.Connection,
    blueprint: TestBlueprint,
    session: TestSession,
    selector: QuestionSelector,
) -> QuestionBankItem:
    first_id = await selector.select_first(db, blueprint, session)
    if not first_id:
        raise NoQuestionsAvailable("No questions found for this test")
    return await _load_question(db, first_id)


def _pre_test_pending(blueprint: TestBlueprint, session: TestSession) -> bool:
    if not blueprint.pre_test_questionnaire:
        return False
    answered = {a.questionnaire_id for a in session.questionnaire_answers}
    return blueprint.pre_test_questionnaire not in answered


# ── Start ────────────────────────────────────────────────────────────

async def start_session(
    db: aiosqlite.Connection,
    blueprint_id: Optional[str],
    user: Optional[dict] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Create a session for a blueprint.

    Returns:
        dict with: sessionId, type ("question" | "questionnaire"), data
    """
    if not blueprint_id:
        raise InvalidRequest("Missing blueprintId")

    blueprint = await _load_blueprint(db, blueprint_id)
    selector = get_selector(blueprint.strategy, rng or new_rng())

    session = TestSession(
        user_id=str(user["id"]) if user else None,
        blueprint_id=blueprint.id,
        current_estimate=selector.initial_estimate(blueprint),
    )

    if blueprint.pre_test_questionnaire:
        unit = _questionnaire_unit(await _load_questionnaire(db, blueprint.pre_test_questionnaire))
    else:
        # Selected before the insert so a test without questions leaves no session behind
        unit = _question_unit(await _open_question_loop(db, blueprint, session, selector))

    await store.create_session(db, session)
    logger.info(
        "Started session %s on blueprint %s (%s), first unit: %s",
        session.id, blueprint.id, blueprint.strategy, unit["type"],
    )
    return {"sessionId": session.id, **unit}


# ── Submit ───────────────────────────────────────────────────────────

async def _submit_questionnaire(
    db: aiosqlite.Connection,
    blueprint: TestBlueprint,
    session: TestSession,
    selector: QuestionSelector,
    body: SubmitRequest,
) -> Dict[str, Any]:
    if body.answers is None:
        raise InvalidRequest("Missing answers for questionnaire")

    questionnaire_id = body.questionnaire_id
    answer = QuestionnaireAnswer(questionnaire_id=questionnaire_id, answers=body.answers)

    if questionnaire_id == blueprint.pre_test_questionnaire and _pre_test_pending(blueprint, session):
        session.questionnaire_answers.append(answer)
        question = await _open_question_loop(db, blueprint, session, selector)
        return {"status": "continue", **_question_unit(question)}

    if questionnaire_id == blueprint.post_test_questionnaire:
        if session.final_result is None:
            raise InvalidState("Post-test questionnaire is only accepted after the last question")
        session.questionnaire_answers.append(answer)
        session.status = "completed"
        session.end_time = utc_now()
        logger.info("Session %s completed after post-test questionnaire", session.id)
        return {"status": "completed", "result": session.final_result.to_json()}

    if questionnaire_id == blueprint.pre_test_questionnaire:
        raise InvalidState("Pre-test questionnaire already submitted")
    raise InvalidRequest("Questionnaire is not part of this test")


async def _finish(
    db: aiosqlite.Connection, blueprint: TestBlueprint, session: TestSession
) -> Dict[str, Any]:
    result = await build_final_result(db, blueprint, session)
    session.final_result = result
    logger.info(
        "Session %s finished: %d/%d%s",
        session.id, result.score, result.max_score,
        f", level {result.level}" if result.level else "",
    )

    if blueprint.post_test_questionnaire:
        # Result is stored now; the session completes with the questionnaire
        questionnaire = await _load_questionnaire(db, blueprint.post_test_questionnaire)
        return {"status": "continue", **_questionnaire_unit(questionnaire)}

    session.status = "completed"
    session.end_time = utc_now()
    return {"status": "completed", "result": result.to_json()}


async def _submit_answer(
    db: aiosqlite.Connection,
    blueprint: TestBlueprint,
    session: TestSession,
    selector: QuestionSelector,
    body: SubmitRequest,
) -> Dict[str, Any]:
    if not body.has_answer:
        raise InvalidRequest("Missing answer")
    if session.final_result is not None:
        raise InvalidState("All questions are answered, submit the post-test questionnaire")
    if _pre_test_pending(blueprint, session):
        raise InvalidState("Pre-test questionnaire must be submitted first")
    if body.question_id in session.answered_question_ids():
        raise InvalidState("Question already answered")

    question = await _load_question(db, body.question_id)
    validation = validate_answer(question, body.answer)

    session.history.append(HistoryItem(
        question_id=question.id,
        tags=list(question.tags),
        user_answer=validation.normalized_answer,
        readable_answer=validation.readable_answer,
        is_correct=validation.is_correct,
        awarded_score=validation.score,
        time_taken=body.time_taken or 0,
    ))
    logger.info(
        "Session %s: question %s answered (%s)",
        session.id, question.id, "correct" if validation.is_correct else "incorrect",
    )

    selection = await selector.select_next(db, blueprint, session, question.id)
    if selection.finished or not selection.next_question_id:
        return await _finish(db, blueprint, session)

    next_question = await _load_question(db, selection.next_question_id)
    return {"status": "continue", **_question_unit(next_question)}


async def submit(
    db: aiosqlite.Connection,
    body: SubmitRequest,
    user: Optional[dict] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Apply one submission to a started session.

    Returns:
        dict with: status ("continue" | "completed") and either type/data for
        the next unit or result for a completed session
    """
    if not body.session_id:
        raise InvalidRequest("Missing sessionId")

    session = await store.get_session(db, body.session_id)
    if session is None or not can_access(session, user):
        raise NotFound("Session not found")

    if body.idempotency_key:
        replay = await store.get_submission_response(db, session.id, body.idempotency_key)
        if replay is not None:
            logger.info("Replaying submission %s for session %s", body.idempotency_key, session.id)
            return replay

    if session.status != "started":
        raise InvalidState("Session is not active")

    blueprint = await _load_blueprint(db, session.blueprint_id)
    selector = get_selector(blueprint.strategy, rng or new_rng())

    if body.questionnaire_id:
        response = await _submit_questionnaire(db, blueprint, session, selector, body)
    elif body.question_id:
        response = await _submit_answer(db, blueprint, session, selector, body)
    else:
        raise InvalidRequest("Invalid request: expected questionId or questionnaireId")

    await store.update_session(db, session, body.idempotency_key, response)
    return response
