# services/score_aggregator.py

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from models.test_result import TestResult

DEFAULT_AGE = 25
DEFAULT_EDUCATION_LEVEL = 2
DEFAULT_FATIGUE = 1
# Immediate memory is not measured on its own; it tracks working memory
IMMEDIATE_MEMORY_RATIO = 0.9


@dataclass(frozen=True)
class ParticipantInfo:
    name: str = ""
    age: Optional[int] = None
    education_level: Optional[int] = None


@dataclass(frozen=True)
class PartialScores:
    """Scores collected across the phases of a session; None means not measured."""
    visual_memory: Optional[float] = None
    working_memory: Optional[float] = None
    immediate_memory: Optional[float] = None
    sustained_attention: Optional[float] = None
    response_accuracy: Optional[float] = None
    reaction_time: Optional[int] = None
    cognitive_fatigue: Optional[int] = None

    def update(self, **changes) -> "PartialScores":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "visual_memory": self.visual_memory,
            "working_memory": self.working_memory,
            "immediate_memory": self.immediate_memory,
            "sustained_attention": self.sustained_attention,
            "response_accuracy": self.response_accuracy,
            "reaction_time": self.reaction_time,
            "cognitive_fatigue": self.cognitive_fatigue,
        }


def _or(value, default):
    return default if value is None else value


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def assemble_result(
    participant: ParticipantInfo,
    scores: PartialScores,
    participant_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
    id_prefix: str = "EVAL",
) -> TestResult:
    """
    Build a complete TestResult from whatever the session measured.

    Unset subscales fall back to documented defaults so that every persisted
    record carries every field. Inputs are only read.
    """
    timestamp = timestamp or datetime.now(timezone.utc)
    working = _clamp(float(_or(scores.working_memory, 0.0)), 0, 10)
    immediate = scores.immediate_memory
    if immediate is None:
        immediate = working * IMMEDIATE_MEMORY_RATIO

    return TestResult(
        participant_id=participant_id or f"{id_prefix}_{int(timestamp.timestamp() * 1000)}",
        age=_or(participant.age, DEFAULT_AGE),
        education_level=_or(participant.education_level, DEFAULT_EDUCATION_LEVEL),
        immediate_memory=_clamp(float(immediate), 0, 10),
        working_memory=working,
        visual_memory=_clamp(float(_or(scores.visual_memory, 0.0)), 0, 10),
        reaction_time=max(0, int(_or(scores.reaction_time, 0))),
        response_accuracy=_clamp(float(_or(scores.response_accuracy, 0.0)), 0, 100),
        sustained_attention=_clamp(float(_or(scores.sustained_attention, 0.0)), 0, 10),
        cognitive_fatigue=int(_or(scores.cognitive_fatigue, DEFAULT_FATIGUE)),
        timestamp=timestamp.isoformat(),
    )
