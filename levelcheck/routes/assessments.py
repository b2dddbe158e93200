"""Test session endpoints: list blueprints, start a test, submit answers, list and read sessions."""

import logging
from fastapi import APIRouter, Depends, HTTPException

from levelcheck.config import settings
from levelcheck.db.database import get_db
from levelcheck.db import content_store as store
from levelcheck.middleware.auth import get_current_user
from levelcheck.models.assessment import StartRequest, SubmitRequest
from levelcheck.services import session_engine
from levelcheck.services.errors import AssessmentError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tests", tags=["tests"])


def _http_error(exc: AssessmentError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.post("/start", status_code=201)
async def start_test(body: StartRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    """
    Start a test session for a blueprint.

    Request body:
    {
        "blueprintId": "..."
    }
    """
    try:
        return await session_engine.start_session(db, body.blueprint_id, user)
    except AssessmentError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("Start test failed for blueprint %s", body.blueprint_id)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/submit")
async def submit_test_unit(body: SubmitRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    """
    Submit a question answer or a questionnaire.

    Request body (question):
    {
        "sessionId": "...",
        "questionId": "...",
        "answer": 2,
        "timeTaken": 14,
        "idempotencyKey": "optional, replays the first response on retry"
    }

    Request body (questionnaire):
    {
        "sessionId": "...",
        "questionnaireId": "...",
        "answers": {"0": "daily", "1": 4}
    }
    """
    try:
        return await session_engine.submit(db, body, user)
    except AssessmentError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("Submit failed for session %s", body.session_id)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/blueprints")
async def list_test_blueprints(user: dict = Depends(get_current_user), db=Depends(get_db)):
    """Blueprints a test can be started from."""
    blueprints = await store.list_blueprints(db, limit=100)
    return {"docs": [b.to_json() for b in blueprints]}


@router.get("/sessions")
async def list_test_sessions(user: dict = Depends(get_current_user), db=Depends(get_db)):
    """The caller's sessions, newest first. Staff see every session."""
    owner = None if user.get("role") in settings.staff_role_set else user["id"]
    sessions = await store.list_sessions(db, user_id=owner, limit=50)
    return {"docs": [s.to_json() for s in sessions]}


@router.get("/sessions/{session_id}")
async def get_test_session(session_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    """Session document for its owner or staff."""
    session = await store.get_session(db, session_id)
    if session is None or not session_engine.can_access(session, user):
        raise HTTPException(status_code=404, detail="Session not found")
    return session.to_json()
