# services/session_controller.py

import logging
import random
from enum import Enum
from typing import Dict, List, Optional

from config.settings import settings
from models.test_result import TestResult
from services.attention_stream import AttentionOutcome, AttentionStream
from services.errors import InvalidPhaseError
from services.result_store import ResultStore
from services.scheduler import Scheduler, TimerHandle
from services.score_aggregator import ParticipantInfo, PartialScores, assemble_result
from services.sequence_generator import SequenceGenerator
from services.trial_engine import VISUAL, WORKING_MEMORY, Trial, TrialEngine

logger = logging.getLogger(__name__)

VISUAL_SEQUENCE_LENGTH = 5
WORKING_MEMORY_TRIALS = 10
START_LENGTH = 3
MAX_LENGTH = 7
CORRECT_PER_STEP = 2


class Phase(str, Enum):
    INFO = "info"
    VISUAL = "visual"
    WORKING_MEMORY = "working_memory"
    ATTENTION = "attention"
    RESULTS = "results"


def adaptive_length(history: List[Trial]) -> int:
    """Sequence length for the next trial: +1 per two cumulative correct answers, 3..7."""
    correct = sum(1 for t in history if t.correct)
    return min(MAX_LENGTH, START_LENGTH + correct // CORRECT_PER_STEP)


class SessionController:
    """
    Runs one participant through info -> visual -> working memory ->
    attention -> results. Only one phase (and one trial engine) is live at a
    time; every scheduled callback is tagged with the session epoch so that
    anything firing after reset() is ignored.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        store: Optional[ResultStore] = None,
        rng: Optional[random.Random] = None,
        inter_trial_delay_ms: Optional[int] = None,
        attention_tick_ms: Optional[int] = None,
    ):
        self.scheduler = scheduler
        self.store = store
        self.rng = rng or random.Random(settings.RANDOM_SEED)
        self.generator = SequenceGenerator(self.rng)
        self.inter_trial_delay_ms = (
            settings.INTER_TRIAL_DELAY_MS if inter_trial_delay_ms is None else inter_trial_delay_ms
        )
        self.attention_tick_ms = (
            settings.ATTENTION_TICK_MS if attention_tick_ms is None else attention_tick_ms
        )
        self._epoch = 0
        self._timers: List[TimerHandle] = []
        self._reset_state()

    def _reset_state(self) -> None:
        self.phase = Phase.INFO
        self.participant: Optional[ParticipantInfo] = None
        self.scores = PartialScores()
        self.engine: Optional[TrialEngine] = None
        self.visual_trial: Optional[Trial] = None
        self.history: List[Trial] = []
        self.working_memory_started = False
        self.attention: Optional[AttentionStream] = None
        self.result: Optional[TestResult] = None
        self.saved = False

    # ------------------------------------------------------------------
    # scheduling

    def _later(self, delay_ms: int, action) -> None:
        epoch = self._epoch

        def fire():
            if epoch != self._epoch:
                return
            action()

        self._timers.append(self.scheduler.call_later(delay_ms, fire))

    def _require(self, phase: Phase) -> None:
        if self.phase != phase:
            raise InvalidPhaseError(
                f"Action requires phase '{phase.value}' (current: '{self.phase.value}')"
            )

    def _enter(self, phase: Phase) -> None:
        logger.info("Session phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    # ------------------------------------------------------------------
    # participant info

    def submit_participant(self, name: str, age: int, education_level: int = 2) -> None:
        self._require(Phase.INFO)
        if not name or not name.strip():
            raise ValueError("Participant name is required")
        if not 18 <= int(age) <= 85:
            raise ValueError("Age must be between 18 and 85")
        if int(education_level) not in (1, 2, 3):
            raise ValueError("Education level must be 1, 2 or 3")
        self.participant = ParticipantInfo(name.strip(), int(age), int(education_level))
        self._enter(Phase.VISUAL)

    # ------------------------------------------------------------------
    # visual memory

    def start_visual(self) -> List[int]:
        self._require(Phase.VISUAL)
        if self.engine is not None:
            raise InvalidPhaseError("Visual test already started")
        self.engine = TrialEngine(
            VISUAL, VISUAL_SEQUENCE_LENGTH, self.generator, self.scheduler,
            on_scored=self._visual_scored,
        )
        return self.engine.start()

    def press_visual_digit(self, digit: int) -> Optional[Trial]:
        self._require(Phase.VISUAL)
        if self.engine is None:
            raise InvalidPhaseError("Visual test not started")
        return self.engine.press(digit)

    def _visual_scored(self, engine: TrialEngine, trial: Trial) -> None:
        self.visual_trial = trial
        self.scores = self.scores.update(
            visual_memory=float(trial.score), reaction_time=trial.reaction_time
        )
        logger.info("Visual memory test completed: score %s/10", trial.score)
        self._later(self.inter_trial_delay_ms, self._after_visual)

    def _after_visual(self) -> None:
        self.engine = None
        self._enter(Phase.WORKING_MEMORY)

    # ------------------------------------------------------------------
    # working memory

    @property
    def current_length(self) -> int:
        return adaptive_length(self.history)

    @property
    def current_trial_number(self) -> int:
        return len(self.history) + (1 if self.engine is not None else 0)

    def start_working_memory(self) -> List[int]:
        self._require(Phase.WORKING_MEMORY)
        if self.working_memory_started:
            raise InvalidPhaseError("Working memory test already started")
        self.working_memory_started = True
        self.history = []
        return self._start_working_memory_trial()

    def _start_working_memory_trial(self) -> List[int]:
        self.engine = TrialEngine(
            WORKING_MEMORY, self.current_length, self.generator, self.scheduler,
            on_scored=self._working_memory_scored,
        )
        return self.engine.start()

    def _active_working_memory_engine(self) -> TrialEngine:
        self._require(Phase.WORKING_MEMORY)
        if self.engine is None:
            raise InvalidPhaseError("No working memory trial in progress")
        return self.engine

    def update_working_memory_response(self, digits) -> List[int]:
        engine = self._active_working_memory_engine()
        engine.set_response(digits)
        return engine.response

    def confirm_working_memory(self) -> Trial:
        return self._active_working_memory_engine().confirm()

    def _working_memory_scored(self, engine: TrialEngine, trial: Trial) -> None:
        self.history.append(trial)
        self.engine = None
        if len(self.history) >= WORKING_MEMORY_TRIALS:
            correct = sum(1 for t in self.history if t.correct)
            score = correct / WORKING_MEMORY_TRIALS * 10
            self.scores = self.scores.update(working_memory=score)
            logger.info("Working memory test completed: score %.1f/10", score)
            self._enter(Phase.ATTENTION)
        else:
            self._later(self.inter_trial_delay_ms, self._start_working_memory_trial)

    # ------------------------------------------------------------------
    # sustained attention

    def start_attention(self) -> Optional[str]:
        self._require(Phase.ATTENTION)
        if self.attention is not None:
            raise InvalidPhaseError("Attention test already started")
        epoch = self._epoch
        self.attention = AttentionStream(
            self.rng, self.scheduler, tick_ms=self.attention_tick_ms,
            on_complete=lambda outcome: self._attention_complete(epoch, outcome),
        )
        return self.attention.start()

    def respond_attention(self, is_target: bool) -> None:
        self._require(Phase.ATTENTION)
        if self.attention is None:
            raise InvalidPhaseError("Attention test not started")
        self.attention.respond(is_target)

    def _attention_complete(self, epoch: int, outcome: AttentionOutcome) -> None:
        if epoch != self._epoch:
            return
        self.scores = self.scores.update(
            sustained_attention=outcome.attention_score,
            response_accuracy=outcome.precision_percent,
            cognitive_fatigue=outcome.fatigue,
        )
        logger.info("Attention test completed: score %.1f/10", outcome.attention_score)
        self._enter(Phase.RESULTS)

    # ------------------------------------------------------------------
    # results

    def build_result(self) -> TestResult:
        self._require(Phase.RESULTS)
        if self.result is None:
            self.result = assemble_result(self.participant or ParticipantInfo(), self.scores)
        return self.result

    def save_result(self) -> TestResult:
        result = self.build_result()
        if self.store is None:
            raise InvalidPhaseError("No result store configured")
        if not self.saved:
            self.store.append_result(result.to_record())
            self.saved = True
            logger.info("Saved results for %s", result.participant_id)
        return result

    def reset(self) -> None:
        self._epoch += 1
        for timer in self._timers:
            timer.cancel()
        self._timers = []
        if self.engine is not None:
            self.engine.cancel()
        if self.attention is not None:
            self.attention.cancel()
        self._reset_state()
        logger.info("Session reset")

    def snapshot(self) -> Dict:
        return {
            "phase": self.phase.value,
            "participant": (
                {
                    "name": self.participant.name,
                    "age": self.participant.age,
                    "education_level": self.participant.education_level,
                }
                if self.participant else None
            ),
            "trial": self.engine.snapshot() if self.engine else None,
            "working_memory": {
                "started": self.working_memory_started,
                "trial_number": self.current_trial_number,
                "total_trials": WORKING_MEMORY_TRIALS,
                "current_length": self.current_length,
                "correct": sum(1 for t in self.history if t.correct),
                "completed": len(self.history),
            },
            "visual_trial": self.visual_trial.to_dict() if self.visual_trial else None,
            "history": [t.to_dict() for t in self.history],
            "attention": self.attention.snapshot() if self.attention else None,
            "scores": self.scores.to_dict(),
            "saved": self.saved,
        }
