import random

import pytest
from fastapi.testclient import TestClient

from config.settings import settings
from services.result_store import KeyValueResultStore, get_store
from services.scheduler import VirtualScheduler
from services.session_registry import (
    SessionRegistry,
    get_assessment_sessions,
    get_scheduler_factory,
    get_working_memory_sessions,
)


class FixedGenerator:
    """Sequence generator stub that hands out predetermined sequences."""

    def __init__(self, *sequences):
        self.sequences = [list(s) for s in sequences]

    def generate(self, length):
        sequence = self.sequences.pop(0)
        assert len(sequence) == length
        return sequence


def make_record(visual, working, attention, **extra):
    record = {
        "participante_id": extra.pop("participante_id", "P"),
        "edad": 40,
        "nivel_educacion": 2,
        "memoria_inmediata": working * 0.9,
        "memoria_trabajo": working,
        "memoria_visual": visual,
        "tiempo_reaccion": 900,
        "precision_respuestas": 80.0,
        "atencion_sostenida": attention,
        "fatiga_cognitiva": 2,
        "fecha": "2024-06-10T12:00:00+00:00",
    }
    record.update(extra)
    return record


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def store():
    return KeyValueResultStore()


@pytest.fixture
def client(scheduler, store, monkeypatch):
    from main import app
    from routes.analysis_routes import get_classification_engine
    from services.classification_engine import ClassificationEngine

    monkeypatch.setattr(settings, "TRAINING_DELAY_MS", 0)
    sessions = SessionRegistry("EVAL")
    wm_sessions = SessionRegistry("WM")
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_scheduler_factory] = lambda: (lambda: scheduler)
    app.dependency_overrides[get_assessment_sessions] = lambda: sessions
    app.dependency_overrides[get_working_memory_sessions] = lambda: wm_sessions
    app.dependency_overrides[get_classification_engine] = lambda: ClassificationEngine(rng=random.Random(7))
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
