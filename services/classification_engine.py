# services/classification_engine.py

import logging
import random
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from config.settings import settings
from models.test_result import ModelMetrics, TestResult
from services.errors import InsufficientDataError
from services.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

LABELS = ("low", "medium", "high")
LOW_THRESHOLD = 4.5
HIGH_THRESHOLD = 7.0

FEATURE_IMPORTANCE = [
    {"feature": "visual_memory", "importance": 0.28},
    {"feature": "working_memory", "importance": 0.25},
    {"feature": "sustained_attention", "importance": 0.22},
    {"feature": "response_accuracy", "importance": 0.12},
    {"feature": "age", "importance": 0.08},
    {"feature": "reaction_time", "importance": 0.05},
]


def _field(record: Any, key: str, attr: str) -> float:
    if isinstance(record, TestResult):
        return float(getattr(record, attr))
    if isinstance(record, dict):
        value = record.get(key, record.get(attr))
    else:
        value = getattr(record, attr, None)
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def memory_average(record: Any) -> float:
    """Mean of the visual memory, working memory and sustained attention subscales."""
    return (
        _field(record, "memoria_visual", "visual_memory")
        + _field(record, "memoria_trabajo", "working_memory")
        + _field(record, "atencion_sostenida", "sustained_attention")
    ) / 3


def label_for_average(average: float) -> str:
    if average < LOW_THRESHOLD:
        return "low"
    if average <= HIGH_THRESHOLD:
        return "medium"
    return "high"


def classify_memory(record: Any) -> str:
    return label_for_average(memory_average(record))


def feature_importance() -> List[Dict[str, float]]:
    return sorted(FEATURE_IMPORTANCE, key=lambda f: f["importance"], reverse=True)


class ClassificationEngine:
    """
    Labels records with the fixed averaging rule and "trains" a simulated
    model that reproduces those labels with a small rate of random noise.
    There is no learning here; the metrics describe the injected noise.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        noise_rate: Optional[float] = None,
        min_samples: Optional[int] = None,
    ):
        self.rng = rng or random.Random(settings.RANDOM_SEED)
        self.noise_rate = settings.MODEL_NOISE_RATE if noise_rate is None else noise_rate
        self.min_samples = settings.MIN_TRAINING_SAMPLES if min_samples is None else min_samples

    def simulate_predictions(self, records: Sequence[Any]) -> List[Tuple[str, str]]:
        pairs = []
        for record in records:
            true_label = classify_memory(record)
            predicted = true_label
            if self.rng.random() < self.noise_rate:
                predicted = self.rng.choice(LABELS)
            pairs.append((true_label, predicted))
        return pairs

    def evaluate(self, records: Sequence[Any]) -> ModelMetrics:
        if len(records) < self.min_samples:
            raise InsufficientDataError(len(records), self.min_samples)
        pairs = self.simulate_predictions(records)
        matrix = build_confusion_matrix(pairs)
        metrics = compute_metrics(matrix)
        logger.info(
            "Model evaluated on %d samples: accuracy %.3f", metrics.samples, metrics.accuracy
        )
        return metrics

    def schedule_training(
        self,
        scheduler: Scheduler,
        records: Sequence[Any],
        callback: Callable[[Optional[ModelMetrics], Optional[Exception]], None],
        delay_ms: Optional[int] = None,
    ) -> TimerHandle:
        """Run evaluate() after the simulated training delay; refuses up front on too little data."""
        if len(records) < self.min_samples:
            raise InsufficientDataError(len(records), self.min_samples)
        snapshot = list(records)

        def run():
            try:
                metrics = self.evaluate(snapshot)
            except Exception as e:
                callback(None, e)
                return
            callback(metrics, None)

        delay = settings.TRAINING_DELAY_MS if delay_ms is None else delay_ms
        return scheduler.call_later(delay, run)


def build_confusion_matrix(pairs: Sequence[Tuple[str, str]]) -> np.ndarray:
    matrix = np.zeros((len(LABELS), len(LABELS)), dtype=int)
    for true_label, predicted in pairs:
        matrix[LABELS.index(true_label), LABELS.index(predicted)] += 1
    return matrix


def _ratio(numerator: float, denominator: float) -> float:
    return float(numerator / denominator) if denominator else 0.0


def compute_metrics(matrix: np.ndarray) -> ModelMetrics:
    matrix = np.asarray(matrix, dtype=int)
    total = int(matrix.sum())
    precision, recall, f1 = {}, {}, {}
    for i, label in enumerate(LABELS):
        tp = int(matrix[i, i])
        fp = int(matrix[:, i].sum()) - tp
        fn = int(matrix[i, :].sum()) - tp
        precision[label] = _ratio(tp, tp + fp)
        recall[label] = _ratio(tp, tp + fn)
        f1[label] = _ratio(2 * precision[label] * recall[label], precision[label] + recall[label])
    return ModelMetrics(
        accuracy=_ratio(int(np.trace(matrix)), total),
        precision=precision,
        recall=recall,
        f1_score=f1,
        confusion_matrix=matrix.tolist(),
        labels=list(LABELS),
        samples=total,
    )
