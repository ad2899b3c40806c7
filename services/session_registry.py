# services/session_registry.py

import logging
import uuid
from typing import Callable, Dict, Generic, Optional, TypeVar

from services.scheduler import AsyncioScheduler, Scheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionRegistry(Generic[T]):
    """In-process map of live sessions keyed by a generated id."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        self._sessions: Dict[str, T] = {}

    def add(self, session: T) -> str:
        session_id = f"{self.prefix}_{uuid.uuid4().hex[:12]}"
        self._sessions[session_id] = session
        logger.info("Created session %s", session_id)
        return session_id

    def get(self, session_id: str) -> Optional[T]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[T]:
        return self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


assessment_sessions: SessionRegistry = SessionRegistry("EVAL")
working_memory_sessions: SessionRegistry = SessionRegistry("WM")


def get_assessment_sessions() -> SessionRegistry:
    return assessment_sessions


def get_working_memory_sessions() -> SessionRegistry:
    return working_memory_sessions


def get_scheduler_factory() -> Callable[[], Scheduler]:
    """FastAPI dependency; sessions created inside a request run on the app's event loop."""
    return AsyncioScheduler
