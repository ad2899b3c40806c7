# services/trial_engine.py

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional

from services.errors import InvalidPhaseError, MalformedResponseError
from services.scheduler import Scheduler, TimerHandle
from services.sequence_generator import DIGITS, SequenceGenerator

logger = logging.getLogger(__name__)

PERFECT_SCORE = 10
MISMATCH_PENALTY = 2


class TrialState(str, Enum):
    IDLE = "idle"
    PRESENTING = "presenting"
    AWAITING_RESPONSE = "awaiting_response"
    SCORED = "scored"


@dataclass(frozen=True)
class TrialVariant:
    """How a trial is timed and scored."""
    name: str
    reverse: bool            # expected answer is the reversed sequence
    base_ms: int             # presentation window = base_ms + per_item_ms * length
    per_item_ms: int
    auto_submit: bool        # score as soon as the response is complete

    def presentation_ms(self, length: int) -> int:
        return self.base_ms + self.per_item_ms * length


VISUAL = TrialVariant("visual", reverse=False, base_ms=500, per_item_ms=500, auto_submit=True)
WORKING_MEMORY = TrialVariant("working_memory", reverse=True, base_ms=2000, per_item_ms=500, auto_submit=False)
# Standalone backward span test: one second per digit
DIGIT_SPAN = TrialVariant("digit_span", reverse=True, base_ms=0, per_item_ms=1000, auto_submit=False)


@dataclass
class Trial:
    sequence: List[int]
    response: List[int] = field(default_factory=list)
    correct: bool = False
    score: float = 0.0
    reaction_time: int = 0

    def to_dict(self) -> dict:
        return {
            "sequence": list(self.sequence),
            "response": list(self.response),
            "correct": self.correct,
            "score": self.score,
            "reaction_time": self.reaction_time,
        }


def expected_answer(sequence: List[int], reverse: bool) -> List[int]:
    return list(reversed(sequence)) if reverse else list(sequence)


def is_exact_match(response: List[int], expected: List[int]) -> bool:
    return len(response) == len(expected) and all(
        r == e for r, e in zip(response, expected)
    )


def positional_matches(response: List[int], expected: List[int]) -> int:
    return sum(1 for r, e in zip(response, expected) if r == e)


def visual_score(sequence: List[int], response: List[int]) -> int:
    """10 on a full match, otherwise 10 minus 2 per mismatched position, floored at 0."""
    if is_exact_match(response, sequence):
        return PERFECT_SCORE
    mismatches = len(sequence) - positional_matches(response, sequence)
    return max(0, PERFECT_SCORE - MISMATCH_PENALTY * mismatches)


class TrialEngine:
    """
    Runs one present -> hide -> respond -> score cycle.

    IDLE -> PRESENTING on start(); PRESENTING -> AWAITING_RESPONSE when the
    presentation timer fires; AWAITING_RESPONSE -> SCORED on confirm() (or as
    soon as the response is complete for auto-submit variants).
    """

    _run_ids = itertools.count(1)

    def __init__(
        self,
        variant: TrialVariant,
        length: int,
        generator: SequenceGenerator,
        scheduler: Scheduler,
        on_presentation_end: Optional[Callable[["TrialEngine"], None]] = None,
        on_scored: Optional[Callable[["TrialEngine", Trial], None]] = None,
    ):
        self.variant = variant
        self.length = length
        self.generator = generator
        self.scheduler = scheduler
        self.on_presentation_end = on_presentation_end
        self.on_scored = on_scored

        self.state = TrialState.IDLE
        self.trial: Optional[Trial] = None
        self.started_at: Optional[float] = None
        self.presentation_ended_at: Optional[float] = None
        self._timer: Optional[TimerHandle] = None
        self._run_id: Optional[int] = None

    @property
    def sequence(self) -> List[int]:
        return list(self.trial.sequence) if self.trial else []

    @property
    def response(self) -> List[int]:
        return list(self.trial.response) if self.trial else []

    @property
    def expected(self) -> List[int]:
        return expected_answer(self.sequence, self.variant.reverse)

    @property
    def can_confirm(self) -> bool:
        return (
            self.state == TrialState.AWAITING_RESPONSE
            and len(self.trial.response) == self.length
        )

    def start(self) -> List[int]:
        if self.state != TrialState.IDLE:
            raise InvalidPhaseError(f"Trial already {self.state.value}")
        self.trial = Trial(sequence=self.generator.generate(self.length))
        self.started_at = self.scheduler.now_ms()
        self.state = TrialState.PRESENTING

        run_id = next(self._run_ids)
        self._run_id = run_id
        self._timer = self.scheduler.call_later(
            self.variant.presentation_ms(self.length),
            lambda: self._end_presentation(run_id),
        )
        return self.sequence

    def _end_presentation(self, run_id: int) -> None:
        if run_id != self._run_id or self.state != TrialState.PRESENTING:
            return
        self._timer = None
        self.presentation_ended_at = self.scheduler.now_ms()
        self.state = TrialState.AWAITING_RESPONSE
        if self.on_presentation_end:
            self.on_presentation_end(self)

    def _require_awaiting(self) -> None:
        if self.state != TrialState.AWAITING_RESPONSE:
            raise InvalidPhaseError(f"Not accepting responses while {self.state.value}")

    def press(self, digit: int) -> Optional[Trial]:
        """Append one keypad digit. Returns the scored trial if this completed an auto-submit response."""
        self._require_awaiting()
        if int(digit) not in DIGITS:
            raise ValueError(f"Digit must be between {DIGITS[0]} and {DIGITS[-1]}")
        if len(self.trial.response) >= self.length:
            return None
        self.trial.response.append(int(digit))
        if self.variant.auto_submit and len(self.trial.response) == self.length:
            return self.confirm()
        return None

    def set_response(self, digits: Iterable) -> Optional[Trial]:
        """Replace the typed response; non-digits are dropped and input is cut at the expected length."""
        self._require_awaiting()
        cleaned = [int(ch) for ch in (str(d) for d in digits) if len(ch) == 1 and ch in "0123456789"]
        self.trial.response = cleaned[: self.length]
        if self.variant.auto_submit and len(self.trial.response) == self.length:
            return self.confirm()
        return None

    def confirm(self) -> Trial:
        self._require_awaiting()
        if len(self.trial.response) != self.length:
            raise MalformedResponseError(self.length, len(self.trial.response))

        trial = self.trial
        trial.reaction_time = max(0, int(round(self.scheduler.now_ms() - self.presentation_ended_at)))
        if self.variant.reverse:
            trial.correct = is_exact_match(trial.response, self.expected)
            trial.score = PERFECT_SCORE if trial.correct else 0
        else:
            trial.score = visual_score(trial.sequence, trial.response)
            trial.correct = trial.score == PERFECT_SCORE
        self.state = TrialState.SCORED
        logger.debug(
            "%s trial scored: sequence=%s response=%s correct=%s rt=%sms",
            self.variant.name, trial.sequence, trial.response, trial.correct, trial.reaction_time,
        )
        if self.on_scored:
            self.on_scored(self, trial)
        return trial

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._run_id = None

    def snapshot(self) -> dict:
        return {
            "variant": self.variant.name,
            "state": self.state.value,
            "length": self.length,
            # the sequence is only visible while it is being presented
            "sequence": self.sequence if self.state == TrialState.PRESENTING else None,
            "presentation_ms": self.variant.presentation_ms(self.length),
            "response": self.response,
            "can_confirm": self.can_confirm,
        }
