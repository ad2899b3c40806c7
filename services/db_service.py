# services/db_service.py

from pymongo import MongoClient
from config.settings import settings

_client = None

def get_db():
    """Return the configured MongoDB database, creating the client on first use."""
    global _client
    if _client is None:
        _client = MongoClient(settings.MONGODB_URI)
    return _client[settings.DB_NAME]
