# routes/analysis_routes.py

import asyncio
import logging
from fastapi import APIRouter, Depends, HTTPException
from typing import Any, Dict, List

from config.settings import settings
from models.test_result import MemoryFeatures, TestResult
from routes.common import to_http_exception
from services.classification_engine import ClassificationEngine, feature_importance
from services.dataset_summary import summarize
from services.errors import AssessmentError
from services.prediction_heuristic import predict
from services.result_store import ResultStore, get_store
from services.scheduler import AsyncioScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["Model Analysis"])

def get_classification_engine() -> ClassificationEngine:
    return ClassificationEngine()

@router.get("/results")
async def list_results(store: ResultStore = Depends(get_store)) -> Dict[str, Any]:
    """All stored session results plus the uploaded dataset."""
    records = store.combined()
    return {"ok": True, "count": len(records), "results": records}

@router.post("/dataset")
async def upload_dataset(records: List[TestResult], store: ResultStore = Depends(get_store)):
    """Replace the uploaded dataset with already-parsed TestResult records."""
    try:
        count = store.replace_uploaded([r.to_record() for r in records])
    except Exception as e:
        logger.error("Dataset upload failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")
    logger.info("Uploaded dataset replaced with %d records", count)
    return {"ok": True, "count": count, "message": "Dataset uploaded successfully"}

@router.post("/train")
async def train_model(
    store: ResultStore = Depends(get_store),
    engine: ClassificationEngine = Depends(get_classification_engine),
):
    """
    Simulated training: waits for the training delay, then labels every
    record and reports confusion matrix, accuracy and per-class metrics.
    """
    records = store.combined()
    loop = asyncio.get_running_loop()
    done: asyncio.Future = loop.create_future()

    def finished(metrics, error):
        if done.done():
            return
        if error is not None:
            done.set_exception(error)
        else:
            done.set_result(metrics)

    try:
        engine.schedule_training(AsyncioScheduler(loop), records, finished, settings.TRAINING_DELAY_MS)
        metrics = await done
    except AssessmentError as e:
        raise to_http_exception(e)
    return {"ok": True, "message": "Model trained and evaluated successfully", "metrics": metrics}

@router.post("/predict")
async def make_prediction(features: MemoryFeatures):
    return {"ok": True, "prediction": predict(features)}

@router.get("/feature-importance")
async def get_feature_importance():
    return {"ok": True, "features": feature_importance()}

@router.get("/summary")
async def dataset_summary(store: ResultStore = Depends(get_store)):
    return {"ok": True, "summary": summarize(store.combined())}
