# services/prediction_heuristic.py

from models.test_result import MemoryFeatures, Prediction
from services.classification_engine import label_for_average, memory_average

CATEGORY_PROBABILITIES = {
    "low": {"low": 0.85, "medium": 0.12, "high": 0.03},
    "medium": {"low": 0.15, "medium": 0.70, "high": 0.15},
    "high": {"low": 0.05, "medium": 0.15, "high": 0.80},
}

MIN_CONFIDENCE = 0.60
MAX_CONFIDENCE = 0.95


def age_bonus(age: int) -> float:
    if age < 30:
        return 0.10
    if age > 60:
        return -0.10
    return 0.0


def education_bonus(level: int) -> float:
    if level == 3:
        return 0.05
    if level == 1:
        return -0.05
    return 0.0


def predict(features: MemoryFeatures) -> Prediction:
    """
    Category from the subscale average, with a fixed probability triple.
    Age and education only nudge the reported confidence.
    """
    category = label_for_average(memory_average(features))
    probabilities = dict(CATEGORY_PROBABILITIES[category])
    confidence = (
        probabilities[category]
        + age_bonus(features.age)
        + education_bonus(features.education_level)
    )
    confidence = min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence))
    return Prediction(category=category, confidence=round(confidence, 4), probabilities=probabilities)
