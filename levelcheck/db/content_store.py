"""
content_store.py - Database helper queries for test content and sessions

Provides insert/fetch functions for:
- questionnaires
- question_bank
- test_blueprints
- level_descriptions
- test_sessions (version-checked whole-document updates)
- session_submissions (idempotent replay of submit responses)

Documents are stored as camelCase JSON; filterable fields are duplicated
into their own columns.
"""

import json
import logging
from typing import Optional, List, Dict, Any
import aiosqlite

from levelcheck.models.assessment import (
    LevelDescription,
    QuestionBankItem,
    Questionnaire,
    TestBlueprint,
    TestSession,
)
from levelcheck.services.errors import SessionConflict

logger = logging.getLogger(__name__)

# Columns find_questions() may filter on
QUESTION_FILTER_COLUMNS = {"type", "difficulty_cefr", "difficulty_actfl"}


def _dump(model) -> str:
    return json.dumps(model.model_dump(mode="json", by_alias=True, exclude_none=True))


# ══════════════════════════════════════════════════════════════════════════════
# QUESTIONNAIRES
# ══════════════════════════════════════════════════════════════════════════════

async def create_questionnaire(db: aiosqlite.Connection, questionnaire: Questionnaire) -> str:
    """Insert a questionnaire. Returns its ID."""
    await db.execute(
        "INSERT INTO questionnaires (id, title, questionnaire_json) VALUES (?, ?, ?)",
        (questionnaire.id, questionnaire.title, _dump(questionnaire))
    )
    await db.commit()
    return questionnaire.id


async def get_questionnaire(db: aiosqlite.Connection, questionnaire_id: str) -> Optional[Questionnaire]:
    """Get a questionnaire by ID."""
    cursor = await db.execute(
        "SELECT questionnaire_json FROM questionnaires WHERE id = ?",
        (questionnaire_id,)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    return Questionnaire.model_validate(json.loads(row["questionnaire_json"]))


# ══════════════════════════════════════════════════════════════════════════════
# QUESTION BANK
# ══════════════════════════════════════════════════════════════════════════════

async def create_question(db: aiosqlite.Connection, question: QuestionBankItem) -> str:
    """Insert a question-bank item. Returns its ID."""
    await db.execute(
        """INSERT INTO question_bank (id, type, difficulty_cefr, difficulty_actfl, question_json)
           VALUES (?, ?, ?, ?, ?)""",
        (
            question.id,
            question.type,
            question.difficulty_cefr,
            question.difficulty_actfl,
            _dump(question),
        )
    )
    await db.commit()
    return question.id


async def get_question(db: aiosqlite.Connection, question_id: str) -> Optional[QuestionBankItem]:
    """Get a question by ID."""
    cursor = await db.execute(
        "SELECT question_json FROM question_bank WHERE id = ?",
        (question_id,)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    return QuestionBankItem.model_validate(json.loads(row["question_json"]))


async def find_questions(
    db: aiosqlite.Connection,
    filters: Optional[Dict[str, str]] = None,
    exclude_ids: Optional[List[str]] = None,
    tags: Optional[List[str]] = None,
    limit: Optional[int] = None
) -> List[QuestionBankItem]:
    """
    Query the question bank.

    Args:
        filters: column -> value equality filters (type, difficulty_cefr, difficulty_actfl)
        exclude_ids: question IDs to leave out
        tags: keep only questions carrying at least one of these tags
        limit: maximum number of questions returned
    """
    clauses = []
    params: list = []

    for column, value in (filters or {}).items():
        if column not in QUESTION_FILTER_COLUMNS:
            raise ValueError(f"Cannot filter question bank on {column}")
        clauses.append(f"{column} = ?")
        params.append(value)

    if exclude_ids:
        placeholders = ",".join("?" for _ in exclude_ids)
        clauses.append(f"id NOT IN ({placeholders})")
        params.extend(exclude_ids)

    sql = "SELECT question_json FROM question_bank"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY created_at, id"

    # Tags live inside the JSON document, so the limit is applied after filtering
    if limit is not None and not tags:
        sql += " LIMIT ?"
        params.append(limit)

    cursor = await db.execute(sql, params)
    rows = await cursor.fetchall()
    questions = [QuestionBankItem.model_validate(json.loads(r["question_json"])) for r in rows]

    if tags:
        wanted = set(tags)
        questions = [q for q in questions if wanted.intersection(q.tags)]
        if limit is not None:
            questions = questions[:limit]

    return questions


# ══════════════════════════════════════════════════════════════════════════════
# BLUEPRINTS AND LEVEL DESCRIPTIONS
# ══════════════════════════════════════════════════════════════════════════════

async def create_blueprint(db: aiosqlite.Connection, blueprint: TestBlueprint) -> str:
    """Insert a test blueprint. Returns its ID."""
    await db.execute(
        "INSERT INTO test_blueprints (id, title, strategy, blueprint_json) VALUES (?, ?, ?, ?)",
        (blueprint.id, blueprint.title, blueprint.strategy, _dump(blueprint))
    )
    await db.commit()
    return blueprint.id


async def get_blueprint(db: aiosqlite.Connection, blueprint_id: str) -> Optional[TestBlueprint]:
    """Get a test blueprint by ID."""
    cursor = await db.execute(
        "SELECT blueprint_json FROM test_blueprints WHERE id = ?",
        (blueprint_id,)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    return TestBlueprint.model_validate(json.loads(row["blueprint_json"]))


async def list_blueprints(db: aiosqlite.Connection, limit: int = 100) -> List[TestBlueprint]:
    """List test blueprints in creation order."""
    cursor = await db.execute(
        "SELECT blueprint_json FROM test_blueprints ORDER BY created_at, id LIMIT ?",
        (limit,)
    )
    rows = await cursor.fetchall()
    return [TestBlueprint.model_validate(json.loads(r["blueprint_json"])) for r in rows]


async def create_level_description(db: aiosqlite.Connection, description: LevelDescription) -> str:
    """Insert a level description. Returns its ID."""
    await db.execute(
        """INSERT INTO level_descriptions (id, standard, level_code, title, description_json)
           VALUES (?, ?, ?, ?, ?)""",
        (
            description.id,
            description.standard,
            description.level_code,
            description.title,
            json.dumps(description.description),
        )
    )
    await db.commit()
    return description.id


async def find_level_description(
    db: aiosqlite.Connection,
    standard: str,
    level_code: str
) -> Optional[LevelDescription]:
    """Get the description for a level code on the given standard, if one exists."""
    cursor = await db.execute(
        """SELECT id, standard, level_code, title, description_json
           FROM level_descriptions
           WHERE standard = ? AND level_code = ?
           ORDER BY created_at
           LIMIT 1""",
        (standard, level_code)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    return LevelDescription(
        id=row["id"],
        standard=row["standard"],
        level_code=row["level_code"],
        title=row["title"],
        description=json.loads(row["description_json"]) if row["description_json"] else None,
    )


# ══════════════════════════════════════════════════════════════════════════════
# TEST SESSIONS
# ══════════════════════════════════════════════════════════════════════════════

def _session_json(session: TestSession) -> str:
    return json.dumps(session.model_dump(
        mode="json", by_alias=True, exclude_none=True, exclude={"version"}
    ))


async def create_session(db: aiosqlite.Connection, session: TestSession) -> TestSession:
    """Insert a new session document at version 1."""
    await db.execute(
        """INSERT INTO test_sessions (id, user_id, blueprint_id, status, version, session_json)
           VALUES (?, ?, ?, ?, 1, ?)""",
        (session.id, session.user_id, session.blueprint_id, session.status, _session_json(session))
    )
    await db.commit()
    session.version = 1
    return session


async def get_session(db: aiosqlite.Connection, session_id: str) -> Optional[TestSession]:
    """Get a session by ID, carrying its current version."""
    cursor = await db.execute(
        "SELECT version, session_json FROM test_sessions WHERE id = ?",
        (session_id,)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    data = json.loads(row["session_json"])
    data["version"] = row["version"]
    return TestSession.model_validate(data)


async def list_sessions(
    db: aiosqlite.Connection,
    user_id: Optional[str] = None,
    limit: int = 50
) -> List[TestSession]:
    """
    List sessions, newest first.

    Args:
        user_id: only this user's sessions; None lists every session
        limit: maximum number of sessions returned
    """
    if user_id is None:
        cursor = await db.execute(
            """SELECT version, session_json FROM test_sessions
               ORDER BY created_at DESC, id DESC
               LIMIT ?""",
            (limit,)
        )
    else:
        cursor = await db.execute(
            """SELECT version, session_json FROM test_sessions
               WHERE user_id = ?
               ORDER BY created_at DESC, id DESC
               LIMIT ?""",
            (user_id, limit)
        )
    rows = await cursor.fetchall()
    sessions = []
    for row in rows:
        data = json.loads(row["session_json"])
        data["version"] = row["version"]
        sessions.append(TestSession.model_validate(data))
    return sessions


async def update_session(
    db: aiosqlite.Connection,
    session: TestSession,
    idempotency_key: Optional[str] = None,
    response: Optional[Dict[str, Any]] = None
) -> TestSession:
    """
    Replace the session document if nobody else wrote it since it was read.

    When an idempotency key is given, the response for this submission is
    recorded in the same commit so a retry can replay it.

    Raises:
        SessionConflict: the stored version no longer matches session.version
    """
    cursor = await db.execute(
        """UPDATE test_sessions
           SET status = ?, version = version + 1, session_json = ?, updated_at = CURRENT_TIMESTAMP
           WHERE id = ? AND version = ?
           RETURNING version""",
        (session.status, _session_json(session), session.id, session.version)
    )
    rows = await cursor.fetchall()
    if not rows:
        logger.warning("Version conflict on session %s (expected version %d)", session.id, session.version)
        raise SessionConflict("Session was modified by another request, please retry")

    if idempotency_key and response is not None:
        await db.execute(
            """INSERT INTO session_submissions (session_id, idempotency_key, response_json)
               VALUES (?, ?, ?)""",
            (session.id, idempotency_key, json.dumps(response))
        )
    await db.commit()
    session.version = rows[0]["version"]
    return session


async def get_submission_response(
    db: aiosqlite.Connection,
    session_id: str,
    idempotency_key: str
) -> Optional[Dict[str, Any]]:
    """Get the recorded response for a previous submission with this key."""
    cursor = await db.execute(
        """SELECT response_json FROM session_submissions
           WHERE session_id = ? AND idempotency_key = ?""",
        (session_id, idempotency_key)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    return json.loads(row["response_json"])
