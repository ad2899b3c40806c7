# services/working_memory_test.py

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from config.settings import settings
from models.test_result import TestResult
from services.errors import InvalidPhaseError
from services.result_store import ResultStore
from services.scheduler import Scheduler
from services.score_aggregator import ParticipantInfo, PartialScores, assemble_result
from services.sequence_generator import SequenceGenerator
from services.session_controller import START_LENGTH, adaptive_length
from services.trial_engine import DIGIT_SPAN, Trial, TrialEngine

logger = logging.getLogger(__name__)

PRACTICE_TRIALS = 2
MAIN_TRIALS = 10

# Defaults for the fields this test does not measure
STANDALONE_DEFAULTS = ParticipantInfo(name="", age=25, education_level=2)
DEFAULT_VISUAL_MEMORY = 7.5
DEFAULT_FATIGUE = 2


class WorkingMemoryPhase(str, Enum):
    INSTRUCTIONS = "instructions"
    PRACTICE = "practice"
    TEST = "test"
    RESULTS = "results"


@dataclass
class WorkingMemorySummary:
    correct: int
    total: int
    accuracy: float           # percent
    avg_reaction_time: float  # ms
    score: float              # 0..10
    interpretation: str

    def to_dict(self) -> dict:
        return {
            "correct": self.correct,
            "total": self.total,
            "accuracy": self.accuracy,
            "avg_reaction_time": self.avg_reaction_time,
            "score": self.score,
            "interpretation": self.interpretation,
        }


def memory_score(accuracy: float) -> float:
    """Map accuracy (percent) onto the 0..10 working memory scale."""
    for floor in (90, 80, 70, 60, 50):
        if accuracy >= floor:
            score = floor / 10 + (accuracy - floor) / 10
            break
    else:
        score = accuracy / 10
    return min(10.0, max(0.0, score))


def interpret(correct_fraction: float) -> str:
    if correct_fraction >= 0.8:
        return "Excellent working memory capacity"
    if correct_fraction >= 0.6:
        return "Good working memory capacity"
    if correct_fraction >= 0.4:
        return "Average working memory capacity"
    return "Further evaluation is recommended"


def attention_proxy(avg_reaction_time: float) -> float:
    return min(10.0, max(0.0, 10 - (avg_reaction_time - 1000) / 200))


class WorkingMemoryTest:
    """Standalone backward digit span: two practice trials, then ten adaptive trials."""

    def __init__(
        self,
        scheduler: Scheduler,
        store: Optional[ResultStore] = None,
        rng: Optional[random.Random] = None,
    ):
        self.scheduler = scheduler
        self.store = store
        self.generator = SequenceGenerator(rng or random.Random(settings.RANDOM_SEED))
        self._reset_state()

    def _reset_state(self) -> None:
        self.phase = WorkingMemoryPhase.INSTRUCTIONS
        self.trials: List[Trial] = []
        self.engine: Optional[TrialEngine] = None
        self.summary: Optional[WorkingMemorySummary] = None
        self.result: Optional[TestResult] = None

    @property
    def practice_complete(self) -> bool:
        return self.phase == WorkingMemoryPhase.PRACTICE and len(self.trials) >= PRACTICE_TRIALS

    @property
    def current_length(self) -> int:
        if self.phase == WorkingMemoryPhase.PRACTICE:
            return START_LENGTH
        return adaptive_length(self.trials)

    def start_practice(self) -> List[int]:
        if self.phase != WorkingMemoryPhase.INSTRUCTIONS:
            raise InvalidPhaseError("Practice can only start from the instructions")
        self.phase = WorkingMemoryPhase.PRACTICE
        self.trials = []
        return self._next_trial()

    def start_main_test(self) -> List[int]:
        if not self.practice_complete:
            raise InvalidPhaseError("Complete the practice trials first")
        self.phase = WorkingMemoryPhase.TEST
        self.trials = []
        return self._next_trial()

    def _next_trial(self) -> List[int]:
        self.engine = TrialEngine(
            DIGIT_SPAN, self.current_length, self.generator, self.scheduler,
            on_scored=self._scored,
        )
        return self.engine.start()

    def _active_engine(self) -> TrialEngine:
        if self.engine is None:
            raise InvalidPhaseError("No trial in progress")
        return self.engine

    def update_response(self, digits) -> List[int]:
        engine = self._active_engine()
        engine.set_response(digits)
        return engine.response

    def confirm(self) -> Trial:
        return self._active_engine().confirm()

    def _scored(self, engine: TrialEngine, trial: Trial) -> None:
        self.trials.append(trial)
        self.engine = None
        if self.phase == WorkingMemoryPhase.PRACTICE:
            if len(self.trials) < PRACTICE_TRIALS:
                self._next_trial()
            else:
                logger.info("Practice completed: %d/%d correct", self.correct, len(self.trials))
        elif len(self.trials) < MAIN_TRIALS:
            self._next_trial()
        else:
            self._finish()

    @property
    def correct(self) -> int:
        return sum(1 for t in self.trials if t.correct)

    def _finish(self, timestamp: Optional[datetime] = None) -> None:
        total = len(self.trials)
        accuracy = self.correct / total * 100
        avg_rt = sum(t.reaction_time for t in self.trials) / total
        score = memory_score(accuracy)
        self.summary = WorkingMemorySummary(
            correct=self.correct,
            total=total,
            accuracy=accuracy,
            avg_reaction_time=avg_rt,
            score=score,
            interpretation=interpret(self.correct / total),
        )
        self.result = assemble_result(
            STANDALONE_DEFAULTS,
            PartialScores(
                working_memory=score,
                immediate_memory=score * 0.9,
                visual_memory=DEFAULT_VISUAL_MEMORY,
                sustained_attention=attention_proxy(avg_rt),
                response_accuracy=accuracy,
                reaction_time=round(avg_rt),
                cognitive_fatigue=DEFAULT_FATIGUE,
            ),
            timestamp=timestamp or datetime.now(timezone.utc),
            id_prefix="WM",
        )
        self.phase = WorkingMemoryPhase.RESULTS
        if self.store is not None:
            self.store.append_result(self.result.to_record())
        logger.info("Working memory test completed: score %.1f/10", score)

    def reset(self) -> None:
        if self.engine is not None:
            self.engine.cancel()
        self._reset_state()

    def snapshot(self) -> Dict:
        return {
            "phase": self.phase.value,
            "trial_number": len(self.trials) + (1 if self.engine else 0),
            "total_trials": PRACTICE_TRIALS if self.phase == WorkingMemoryPhase.PRACTICE else MAIN_TRIALS,
            "current_length": self.current_length,
            "practice_complete": self.practice_complete,
            "trial": self.engine.snapshot() if self.engine else None,
            "trials": [t.to_dict() for t in self.trials],
            "summary": self.summary.to_dict() if self.summary else None,
            "result": self.result.to_record() if self.result else None,
        }
