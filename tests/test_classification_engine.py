import random

import numpy as np
import pytest

from conftest import make_record
from services.classification_engine import (
    LABELS,
    ClassificationEngine,
    build_confusion_matrix,
    classify_memory,
    compute_metrics,
    feature_importance,
)
from services.errors import InsufficientDataError


@pytest.mark.parametrize("average,label", [
    (4.0, "low"),
    (4.49, "low"),
    (4.5, "medium"),
    (5.5, "medium"),
    (7.0, "medium"),
    (7.01, "high"),
    (8.0, "high"),
])
def test_ground_truth_thresholds(average, label):
    assert classify_memory(make_record(average, average, average)) == label


def test_classify_uses_mean_of_three_subscales():
    # (3 + 6 + 7.5) / 3 = 5.5
    assert classify_memory(make_record(3.0, 6.0, 7.5)) == "medium"


def test_eight_right_two_swapped_gives_point_eight():
    pairs = (
        [("low", "low")] * 3 + [("medium", "medium")] * 3 + [("high", "high")] * 2
        + [("low", "medium"), ("medium", "low")]
    )
    metrics = compute_metrics(build_confusion_matrix(pairs))
    assert metrics.accuracy == pytest.approx(0.8)
    assert metrics.samples == 10
    assert metrics.precision["high"] == 1.0
    assert metrics.precision["low"] == pytest.approx(0.75)
    assert metrics.recall["medium"] == pytest.approx(0.75)
    assert metrics.f1_score["low"] == pytest.approx(0.75)


def test_zero_denominators_yield_zero():
    # nothing is ever predicted "high", and no record is truly "low"
    pairs = [("medium", "medium"), ("high", "medium"), ("medium", "low")]
    metrics = compute_metrics(build_confusion_matrix(pairs))
    assert metrics.precision["high"] == 0.0
    assert metrics.recall["low"] == 0.0
    assert metrics.f1_score["high"] == 0.0
    assert metrics.f1_score["low"] == 0.0


def test_empty_matrix_has_zero_accuracy():
    metrics = compute_metrics(np.zeros((3, 3), dtype=int))
    assert metrics.accuracy == 0.0
    assert all(v == 0.0 for v in metrics.precision.values())


def _records(n, seed=0):
    rng = random.Random(seed)
    return [make_record(rng.uniform(0, 10), rng.uniform(0, 10), rng.uniform(0, 10)) for _ in range(n)]


def test_matrix_sums_to_record_count_and_accuracy_is_trace_ratio():
    records = _records(200)
    engine = ClassificationEngine(rng=random.Random(3), noise_rate=0.3)
    metrics = engine.evaluate(records)
    matrix = np.array(metrics.confusion_matrix)
    assert matrix.sum() == len(records)
    assert metrics.accuracy == pytest.approx(np.trace(matrix) / matrix.sum())
    assert metrics.labels == list(LABELS)


def test_without_noise_predictions_match_labels():
    metrics = ClassificationEngine(rng=random.Random(1), noise_rate=0.0).evaluate(_records(30))
    assert metrics.accuracy == 1.0


def test_seeded_engines_reproduce_the_same_matrix():
    records = _records(100)
    a = ClassificationEngine(rng=random.Random(9), noise_rate=0.2).evaluate(records)
    b = ClassificationEngine(rng=random.Random(9), noise_rate=0.2).evaluate(records)
    assert a.confusion_matrix == b.confusion_matrix


def test_refuses_fewer_than_ten_records():
    engine = ClassificationEngine(rng=random.Random(0), min_samples=10)
    with pytest.raises(InsufficientDataError):
        engine.evaluate(_records(9))
    assert engine.evaluate(_records(10)).samples == 10


def test_training_runs_after_scheduled_delay(scheduler):
    engine = ClassificationEngine(rng=random.Random(0), noise_rate=0.05, min_samples=10)
    results = []
    engine.schedule_training(scheduler, _records(12), lambda m, e: results.append((m, e)), delay_ms=2000)
    scheduler.advance(1999)
    assert results == []
    scheduler.advance(1)
    metrics, error = results[0]
    assert error is None
    assert metrics.samples == 12


def test_training_refused_before_scheduling(scheduler):
    engine = ClassificationEngine(rng=random.Random(0), min_samples=10)
    with pytest.raises(InsufficientDataError):
        engine.schedule_training(scheduler, _records(3), lambda m, e: None)
    assert scheduler.pending == 0


def test_feature_importance_sorted():
    importances = [f["importance"] for f in feature_importance()]
    assert importances == sorted(importances, reverse=True)
    assert feature_importance()[0]["feature"] == "visual_memory"
