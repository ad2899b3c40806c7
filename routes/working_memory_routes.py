# routes/working_memory_routes.py

from fastapi import APIRouter, Depends, HTTPException

from models.assessment_models import DigitResponse
from routes.common import to_http_exception
from services.errors import AssessmentError
from services.result_store import ResultStore, get_store
from services.session_registry import (
    SessionRegistry,
    get_scheduler_factory,
    get_working_memory_sessions,
)
from services.working_memory_test import WorkingMemoryTest

router = APIRouter(prefix="/working-memory", tags=["Working Memory Test"])

def _get_test(test_id: str, tests: SessionRegistry) -> WorkingMemoryTest:
    test = tests.get(test_id)
    if test is None:
        raise HTTPException(status_code=404, detail="Test not found")
    return test

@router.post("")
async def create_test(
    store: ResultStore = Depends(get_store),
    tests: SessionRegistry = Depends(get_working_memory_sessions),
    scheduler_factory=Depends(get_scheduler_factory),
):
    test = WorkingMemoryTest(scheduler_factory(), store=store)
    test_id = tests.add(test)
    return {"ok": True, "test_id": test_id, "state": test.snapshot()}

@router.get("/{test_id}")
async def get_test(test_id: str, tests: SessionRegistry = Depends(get_working_memory_sessions)):
    return {"ok": True, "test_id": test_id, "state": _get_test(test_id, tests).snapshot()}

@router.delete("/{test_id}")
async def delete_test(test_id: str, tests: SessionRegistry = Depends(get_working_memory_sessions)):
    test = _get_test(test_id, tests)
    test.reset()
    tests.remove(test_id)
    return {"ok": True, "message": "Test deleted"}

@router.post("/{test_id}/practice")
async def start_practice(test_id: str, tests: SessionRegistry = Depends(get_working_memory_sessions)):
    test = _get_test(test_id, tests)
    try:
        sequence = test.start_practice()
    except AssessmentError as e:
        raise to_http_exception(e)
    return {"ok": True, "sequence": sequence, "state": test.snapshot()}

@router.post("/{test_id}/test")
async def start_main_test(test_id: str, tests: SessionRegistry = Depends(get_working_memory_sessions)):
    test = _get_test(test_id, tests)
    try:
        sequence = test.start_main_test()
    except AssessmentError as e:
        raise to_http_exception(e)
    return {"ok": True, "sequence": sequence, "state": test.snapshot()}

@router.put("/{test_id}/response")
async def update_response(
    test_id: str,
    body: DigitResponse,
    tests: SessionRegistry = Depends(get_working_memory_sessions),
):
    test = _get_test(test_id, tests)
    try:
        response = test.update_response(body.digits)
    except (AssessmentError, ValueError) as e:
        raise to_http_exception(e)
    return {"ok": True, "response": response, "state": test.snapshot()}

@router.post("/{test_id}/confirm")
async def confirm_response(test_id: str, tests: SessionRegistry = Depends(get_working_memory_sessions)):
    test = _get_test(test_id, tests)
    try:
        trial = test.confirm()
    except AssessmentError as e:
        raise to_http_exception(e)
    return {
        "ok": True,
        "message": "Correct!" if trial.correct else "Incorrect",
        "trial": trial.to_dict(),
        "state": test.snapshot(),
    }

@router.post("/{test_id}/reset")
async def reset_test(test_id: str, tests: SessionRegistry = Depends(get_working_memory_sessions)):
    test = _get_test(test_id, tests)
    test.reset()
    return {"ok": True, "state": test.snapshot()}
