# services/dataset_summary.py

import math
from typing import Any, Dict, List

from models.test_result import DatasetSummary

EDUCATION_NAMES = {1: "basic", 2: "medium", 3: "higher"}
REQUIRED_KEYS = ("memoria_visual", "memoria_trabajo", "atencion_sostenida")
AVERAGED_KEYS = {
    "visual_memory": "memoria_visual",
    "working_memory": "memoria_trabajo",
    "sustained_attention": "atencion_sostenida",
    "immediate_memory": "memoria_inmediata",
    "response_accuracy": "precision_respuestas",
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def valid_records(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        r for r in records
        if isinstance(r, dict) and all(_is_number(r.get(k)) for k in REQUIRED_KEYS)
    ]


def summarize(records: List[Dict[str, Any]]) -> DatasetSummary:
    data = valid_records(records)
    if not data:
        return DatasetSummary(samples=0)

    averages = {
        name: round(sum(float(r.get(key) or 0) for r in data) / len(data), 1)
        for name, key in AVERAGED_KEYS.items()
    }

    counts: Dict[str, int] = {}
    for r in data:
        level = r.get("nivel_educacion") or 1
        name = EDUCATION_NAMES.get(level, "higher")
        counts[name] = counts.get(name, 0) + 1
    distribution = [
        {"name": name, "value": value, "percentage": round(value / len(data) * 100, 1)}
        for name, value in counts.items()
    ]
    return DatasetSummary(samples=len(data), averages=averages, education_distribution=distribution)
