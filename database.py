"""
Key-value storage backends.

Values are JSON documents stored under string keys. The gateway only ever
reads a whole aggregate, merges, and writes it back.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

import config
from errors import StorageFailure

logger = logging.getLogger(__name__)


class KeyValueStore:
    name = "abstract"

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def ping(self) -> Dict[str, Any]:
        return {"backend": self.name, "connected": True}


class MemoryStore(KeyValueStore):
    """In-process store. Values round-trip through JSON so they behave like persisted ones."""

    name = "memory"

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageFailure(f"Value for {key} is not JSON-serialisable: {e}")

    def keys(self) -> List[str]:
        return list(self._data)


class MongoStore(KeyValueStore):
    """One document per key: {"_id": key, "value": <json>}."""

    name = "mongo"

    def __init__(self, url: str, database: str, collection: str = "kv"):
        self.client = MongoClient(url, serverSelectionTimeoutMS=5000)
        self.db = self.client[database]
        self.collection = self.db[collection]

    def get(self, key: str) -> Optional[Any]:
        try:
            doc = self.collection.find_one({"_id": key})
        except PyMongoError as e:
            raise StorageFailure(f"Failed to read {key}: {e}")
        return doc.get("value") if doc else None

    def set(self, key: str, value: Any) -> None:
        try:
            self.collection.replace_one({"_id": key}, {"_id": key, "value": value}, upsert=True)
        except PyMongoError as e:
            raise StorageFailure(f"Failed to write {key}: {e}")

    def ping(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {"backend": self.name, "database_name": self.db.name}
        try:
            self.client.admin.command("ping")
            status["connected"] = True
            status["collections"] = self.db.list_collection_names()
        except PyMongoError as e:
            status["connected"] = False
            status["error"] = str(e)
        return status


def create_store() -> KeyValueStore:
    if config.STORAGE_BACKEND == "mongo":
        if not config.DATABASE_URL:
            raise StorageFailure("DATABASE_URL not set")
        logger.info("Using MongoDB storage (%s)", config.DATABASE_NAME)
        return MongoStore(config.DATABASE_URL, config.DATABASE_NAME, config.STORAGE_COLLECTION)
    logger.info("Using in-memory storage")
    return MemoryStore()
