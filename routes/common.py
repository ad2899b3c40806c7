# routes/common.py

from fastapi import HTTPException
from services.errors import (
    AssessmentError,
    InsufficientDataError,
    InvalidPhaseError,
    MalformedResponseError,
)

def to_http_exception(e: Exception) -> HTTPException:
    if isinstance(e, InsufficientDataError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, MalformedResponseError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, InvalidPhaseError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, (AssessmentError, ValueError)):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))
