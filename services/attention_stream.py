# services/attention_stream.py

import logging
import random
import string
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from services.errors import InvalidPhaseError
from services.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

STREAM_LENGTH = 20
TARGET_PROBABILITY = 0.3
TARGET_LETTER = "X"
DISTRACTOR_LETTERS = [c for c in string.ascii_uppercase if c != TARGET_LETTER]


@dataclass
class AttentionOutcome:
    correct: int
    total: int
    accuracy: float            # 0..1
    attention_score: float     # 0..10
    precision_percent: float   # 0..100
    fatigue: int               # synthetic, 1..3

    def to_dict(self) -> dict:
        return {
            "correct": self.correct,
            "total": self.total,
            "accuracy": self.accuracy,
            "attention_score": self.attention_score,
            "precision_percent": self.precision_percent,
            "fatigue": self.fatigue,
        }


class AttentionStream:
    """
    Go/no-go letter stream. Each stimulus is shown for one tick; the
    participant answers target / not-target for whichever stimulus is
    showing. Unanswered stimuli count as misses.
    """

    def __init__(
        self,
        rng: random.Random,
        scheduler: Scheduler,
        tick_ms: int = 1500,
        length: int = STREAM_LENGTH,
        target_probability: float = TARGET_PROBABILITY,
        on_complete: Optional[Callable[[AttentionOutcome], None]] = None,
    ):
        self.rng = rng
        self.scheduler = scheduler
        self.tick_ms = tick_ms
        self.length = length
        self.target_probability = target_probability
        self.on_complete = on_complete

        self.targets: List[bool] = []
        self.letters: List[str] = []
        self.responses: Dict[int, bool] = {}
        self.index = 0
        self.running = False
        self.outcome: Optional[AttentionOutcome] = None
        self._timer: Optional[TimerHandle] = None
        self._generation = 0

    def generate(self) -> List[bool]:
        self.targets = [self.rng.random() < self.target_probability for _ in range(self.length)]
        self.letters = [
            TARGET_LETTER if is_target else self.rng.choice(DISTRACTOR_LETTERS)
            for is_target in self.targets
        ]
        return self.targets

    def start(self) -> str:
        if self.running or self.outcome is not None:
            raise InvalidPhaseError("Attention stream already started")
        self.generate()
        self.responses = {}
        self.index = 0
        self.running = True
        self._generation += 1
        self._schedule_tick(self._generation)
        logger.info("Attention stream started: %d stimuli, %d targets", self.length, sum(self.targets))
        return self.current_stimulus

    @property
    def current_stimulus(self) -> Optional[str]:
        if not self.running or self.index >= self.length:
            return None
        return self.letters[self.index]

    def _schedule_tick(self, generation: int) -> None:
        self._timer = self.scheduler.call_later(self.tick_ms, lambda: self._tick(generation))

    def _tick(self, generation: int) -> None:
        if generation != self._generation or not self.running:
            return
        if self.index >= self.length - 1:
            self._finish()
            return
        self.index += 1
        self._schedule_tick(generation)

    def respond(self, is_target: bool) -> None:
        if not self.running:
            raise InvalidPhaseError("Attention stream is not running")
        self.responses[self.index] = bool(is_target)

    def score(self) -> AttentionOutcome:
        correct = sum(
            1 for i, target in enumerate(self.targets)
            if i in self.responses and self.responses[i] == target
        )
        total = len(self.targets)
        accuracy = correct / total if total else 0.0
        return AttentionOutcome(
            correct=correct,
            total=total,
            accuracy=accuracy,
            attention_score=accuracy * 10,
            precision_percent=accuracy * 100,
            fatigue=self.rng.randint(1, 3),
        )

    def _finish(self) -> None:
        self.running = False
        self._timer = None
        self.outcome = self.score()
        logger.info(
            "Attention stream finished: %d/%d correct", self.outcome.correct, self.outcome.total
        )
        if self.on_complete:
            self.on_complete(self.outcome)

    def cancel(self) -> None:
        self._generation += 1
        self.running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def snapshot(self) -> dict:
        return {
            "running": self.running,
            "index": self.index,
            "length": self.length,
            "stimulus": self.current_stimulus,
            "responded": self.index in self.responses,
            "outcome": self.outcome.to_dict() if self.outcome else None,
        }
