"""
Key/value storage backends.

Everything the app persists lives under four string keys, each holding a
JSON document (see ``store.py``). A backend only has to get, set and remove
raw strings:

- MemoryStorage   -> private dict, one copy per process
- JsonFileStorage -> whole mapping in a single JSON file
- MongoStorage    -> one document per key in a MongoDB collection
"""
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pymongo import MongoClient
from pymongo.collection import Collection

from config import Settings, settings

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    name = "abstract"

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None: ...

    @abstractmethod
    def remove_item(self, key: str) -> None: ...

    @abstractmethod
    def keys(self) -> List[str]: ...


class MemoryStorage(KeyValueStorage):
    name = "memory"

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileStorage(KeyValueStorage):
    """Stores the whole mapping in one JSON file, rewritten on every change."""

    name = "file"

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, str]) -> None:
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._dump(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._dump(data)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._load())


class MongoStorage(KeyValueStorage):
    name = "mongo"

    def __init__(self, collection: Collection):
        self.collection = collection

    def get_item(self, key: str) -> Optional[str]:
        doc = self.collection.find_one({"_id": key})
        return doc.get("value") if doc else None

    def set_item(self, key: str, value: str) -> None:
        self.collection.update_one({"_id": key}, {"$set": {"value": value}}, upsert=True)

    def remove_item(self, key: str) -> None:
        self.collection.delete_one({"_id": key})

    def keys(self) -> List[str]:
        return [d["_id"] for d in self.collection.find({}, {"_id": 1})]


# ---------- Mongo handle ----------

# MongoClient connects lazily, so a bad URL only shows up on first use
db = MongoClient(settings.DATABASE_URL)[settings.DATABASE_NAME] if settings.DATABASE_URL else None


def get_database(cfg: Settings = settings):
    """The shared ``db`` handle when ``cfg`` points at it, else a fresh client."""
    if db is not None and (cfg.DATABASE_URL, cfg.DATABASE_NAME) == (settings.DATABASE_URL, settings.DATABASE_NAME):
        return db
    if not cfg.DATABASE_URL:
        return None
    return MongoClient(cfg.DATABASE_URL)[cfg.DATABASE_NAME]


def storage_from_settings(cfg: Settings = settings) -> KeyValueStorage:
    if cfg.STORAGE_BACKEND == "mongo":
        database = get_database(cfg)
        if database is None:
            raise RuntimeError("STORAGE_BACKEND=mongo requires DATABASE_URL")
        logger.info("Using MongoDB storage: %s.%s", cfg.DATABASE_NAME, cfg.STORAGE_COLLECTION)
        return MongoStorage(database[cfg.STORAGE_COLLECTION])
    if cfg.STORAGE_BACKEND == "file":
        logger.info("Using JSON file storage: %s", cfg.STORAGE_PATH)
        return JsonFileStorage(cfg.STORAGE_PATH)
    logger.info("Using in-memory storage")
    return MemoryStorage()
