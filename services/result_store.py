# services/result_store.py

import json
import logging
from typing import Any, Dict, List, Optional

from config.settings import settings

logger = logging.getLogger(__name__)

TEST_RESULTS_KEY = "test_results"
UPLOADED_DATASET_KEY = "uploaded_dataset"


class ResultStore:
    """
    Owned access to the two persisted collections:
    `test_results` (append-only, written by sessions) and
    `uploaded_dataset` (externally supplied, read together with test_results).
    """

    def append_result(self, record: Dict[str, Any]) -> None:
        raise NotImplementedError

    def list_results(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def list_uploaded(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def replace_uploaded(self, records: List[Dict[str, Any]]) -> int:
        raise NotImplementedError

    def combined(self) -> List[Dict[str, Any]]:
        return self.list_results() + self.list_uploaded()


class KeyValueResultStore(ResultStore):
    """String-keyed store holding each collection as a JSON-serialized array."""

    def __init__(self, backing: Optional[Dict[str, str]] = None):
        self._data = backing if backing is not None else {}

    def _read(self, key: str) -> List[Dict[str, Any]]:
        return json.loads(self._data.get(key) or "[]")

    def _write(self, key: str, records: List[Dict[str, Any]]) -> None:
        self._data[key] = json.dumps(records)

    def append_result(self, record: Dict[str, Any]) -> None:
        records = self._read(TEST_RESULTS_KEY)
        records.append(record)
        self._write(TEST_RESULTS_KEY, records)

    def list_results(self) -> List[Dict[str, Any]]:
        return self._read(TEST_RESULTS_KEY)

    def list_uploaded(self) -> List[Dict[str, Any]]:
        return self._read(UPLOADED_DATASET_KEY)

    def replace_uploaded(self, records: List[Dict[str, Any]]) -> int:
        self._write(UPLOADED_DATASET_KEY, list(records))
        return len(records)


class MongoResultStore(ResultStore):
    """One MongoDB collection per logical key."""

    def __init__(self, db=None):
        if db is None:
            from services.db_service import get_db
            db = get_db()
        self.db = db

    def append_result(self, record: Dict[str, Any]) -> None:
        # insert_one adds _id to the dict it is given
        self.db[TEST_RESULTS_KEY].insert_one(dict(record))

    def list_results(self) -> List[Dict[str, Any]]:
        return list(self.db[TEST_RESULTS_KEY].find({}, {"_id": 0}))

    def list_uploaded(self) -> List[Dict[str, Any]]:
        return list(self.db[UPLOADED_DATASET_KEY].find({}, {"_id": 0}))

    def replace_uploaded(self, records: List[Dict[str, Any]]) -> int:
        collection = self.db[UPLOADED_DATASET_KEY]
        collection.delete_many({})
        if records:
            collection.insert_many([dict(r) for r in records])
        return len(records)


_store: Optional[ResultStore] = None

def get_store() -> ResultStore:
    """FastAPI dependency returning the process-wide store."""
    global _store
    if _store is None:
        if settings.STORE_BACKEND == "mongo":
            logger.info("Using MongoDB result store (%s)", settings.DB_NAME)
            _store = MongoResultStore()
        else:
            logger.info("Using in-memory result store")
            _store = KeyValueResultStore()
    return _store
