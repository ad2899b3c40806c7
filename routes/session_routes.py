# routes/session_routes.py

import logging
from fastapi import APIRouter, Depends, HTTPException
from typing import Any, Dict

from models.assessment_models import AttentionAnswer, DigitPress, DigitResponse, ParticipantCreate
from routes.common import to_http_exception
from services.errors import AssessmentError
from services.result_store import ResultStore, get_store
from services.session_controller import SessionController
from services.session_registry import (
    SessionRegistry,
    get_assessment_sessions,
    get_scheduler_factory,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Complete Assessment"])

def _get_session(session_id: str, sessions: SessionRegistry) -> SessionController:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session

def _state(session_id: str, session: SessionController, **extra) -> Dict[str, Any]:
    return {"ok": True, "session_id": session_id, **extra, "state": session.snapshot()}

@router.post("")
async def create_session(
    participant: ParticipantCreate,
    store: ResultStore = Depends(get_store),
    sessions: SessionRegistry = Depends(get_assessment_sessions),
    scheduler_factory=Depends(get_scheduler_factory),
):
    session = SessionController(scheduler_factory(), store=store)
    try:
        session.submit_participant(participant.name, participant.age, participant.education_level)
    except (AssessmentError, ValueError) as e:
        raise to_http_exception(e)
    session_id = sessions.add(session)
    return _state(session_id, session)

@router.get("/{session_id}")
async def get_session(session_id: str, sessions: SessionRegistry = Depends(get_assessment_sessions)):
    return _state(session_id, _get_session(session_id, sessions))

@router.delete("/{session_id}")
async def delete_session(session_id: str, sessions: SessionRegistry = Depends(get_assessment_sessions)):
    session = _get_session(session_id, sessions)
    session.reset()
    sessions.remove(session_id)
    return {"ok": True, "message": "Session deleted"}

@router.post("/{session_id}/participant")
async def submit_participant(
    session_id: str,
    participant: ParticipantCreate,
    sessions: SessionRegistry = Depends(get_assessment_sessions),
):
    """Re-enter participant info after a reset."""
    session = _get_session(session_id, sessions)
    try:
        session.submit_participant(participant.name, participant.age, participant.education_level)
    except (AssessmentError, ValueError) as e:
        raise to_http_exception(e)
    return _state(session_id, session)

# --- VISUAL MEMORY ---
@router.post("/{session_id}/visual/start")
async def start_visual(session_id: str, sessions: SessionRegistry = Depends(get_assessment_sessions)):
    session = _get_session(session_id, sessions)
    try:
        sequence = session.start_visual()
    except AssessmentError as e:
        raise to_http_exception(e)
    return _state(session_id, session, sequence=sequence)

@router.post("/{session_id}/visual/digit")
async def press_visual_digit(
    session_id: str,
    body: DigitPress,
    sessions: SessionRegistry = Depends(get_assessment_sessions),
):
    session = _get_session(session_id, sessions)
    try:
        trial = session.press_visual_digit(body.digit)
    except (AssessmentError, ValueError) as e:
        raise to_http_exception(e)
    return _state(session_id, session, trial=trial.to_dict() if trial else None)

# --- WORKING MEMORY ---
@router.post("/{session_id}/working-memory/start")
async def start_working_memory(session_id: str, sessions: SessionRegistry = Depends(get_assessment_sessions)):
    session = _get_session(session_id, sessions)
    try:
        sequence = session.start_working_memory()
    except AssessmentError as e:
        raise to_http_exception(e)
    return _state(session_id, session, sequence=sequence)

@router.put("/{session_id}/working-memory/response")
async def update_working_memory_response(
    session_id: str,
    body: DigitResponse,
    sessions: SessionRegistry = Depends(get_assessment_sessions),
):
    session = _get_session(session_id, sessions)
    try:
        response = session.update_working_memory_response(body.digits)
    except (AssessmentError, ValueError) as e:
        raise to_http_exception(e)
    return _state(session_id, session, response=response)

@router.post("/{session_id}/working-memory/confirm")
async def confirm_working_memory(session_id: str, sessions: SessionRegistry = Depends(get_assessment_sessions)):
    session = _get_session(session_id, sessions)
    try:
        trial = session.confirm_working_memory()
    except AssessmentError as e:
        raise to_http_exception(e)
    return _state(session_id, session, trial=trial.to_dict())

# --- SUSTAINED ATTENTION ---
@router.post("/{session_id}/attention/start")
async def start_attention(session_id: str, sessions: SessionRegistry = Depends(get_assessment_sessions)):
    session = _get_session(session_id, sessions)
    try:
        stimulus = session.start_attention()
    except AssessmentError as e:
        raise to_http_exception(e)
    return _state(session_id, session, stimulus=stimulus)

@router.post("/{session_id}/attention/respond")
async def respond_attention(
    session_id: str,
    body: AttentionAnswer,
    sessions: SessionRegistry = Depends(get_assessment_sessions),
):
    session = _get_session(session_id, sessions)
    try:
        session.respond_attention(body.is_target)
    except AssessmentError as e:
        raise to_http_exception(e)
    return _state(session_id, session)

# --- RESULTS ---
@router.post("/{session_id}/save")
async def save_results(session_id: str, sessions: SessionRegistry = Depends(get_assessment_sessions)):
    session = _get_session(session_id, sessions)
    try:
        result = session.save_result()
    except AssessmentError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Failed to save results for %s: %s", session_id, e)
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")
    # nothing left to do with a saved session
    sessions.remove(session_id)
    return {"ok": True, "message": "Results saved successfully", "result": result.to_record()}

@router.post("/{session_id}/reset")
async def reset_session(session_id: str, sessions: SessionRegistry = Depends(get_assessment_sessions)):
    session = _get_session(session_id, sessions)
    session.reset()
    return _state(session_id, session)
