from __future__ import annotations
import json
import logging
import os
import tempfile
import threading
import time
import weakref
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pymongo import MongoClient
from pymongo.errors import PyMongoError

load_dotenv()

logger = logging.getLogger(__name__)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "file")
DATA_DIR = os.getenv("DATA_DIR", os.getcwd())
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "comicshop")

PRODUCTS = "products"
BOOKINGS = "bookings"
CARTS = "carts"

DEFAULT_CATALOG: Dict[str, List[Dict[str, Any]]] = {
    "manga": [
        {
            "id": 101,
            "title": "Jujutsu Kaisen Vol. 1",
            "description": "...",
            "price": "12,90€",
            "mainImageUrl": "https://placehold.co/400x600/e74c3c/ffffff?text=Jujutsu+Kaisen",
            "additionalImages": [],
        }
    ],
    "fumettiAmericani": [],
    "tcg": [],
    "giochiTavolo": [],
    "actionFigure": [],
    "funkoPop": [],
    "libri": [],
}


class StorageReadError(Exception):
    """A document exists but could not be read or decoded."""

    def __init__(self, name: str, cause: Exception):
        super().__init__(f"could not read {name}: {cause}")
        self.name = name
        self.cause = cause


def cart_key(user_id: str) -> str:
    return f"{CARTS}/{user_id}"


# ---------- Stores ----------

class DocumentStore:
    """Named JSON documents with one lock per name.

    A lock lives only as long as someone holds a reference to it, so
    per-user cart names do not accumulate.

    `load` returns None when the document does not exist and raises
    StorageReadError when it exists but is unreadable. `save` never raises:
    failures are logged and reported through the return value.
    """

    kind = "abstract"

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def lock(self, name: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = threading.Lock()
                self._locks[name] = lock
            return lock

    def load(self, name: str) -> Optional[Any]:
        raise NotImplementedError

    def save(self, name: str, data: Any) -> bool:
        raise NotImplementedError

    def exists(self, name: str) -> bool:
        raise NotImplementedError

    def ensure(self, name: str, default: Any) -> None:
        with self.lock(name):
            if not self.exists(name):
                logger.info("Seeding %s", name)
                self.save(name, default)

    def location(self) -> str:
        raise NotImplementedError


class JsonFileStore(DocumentStore):
    kind = "file"

    def __init__(self, data_dir: str):
        super().__init__()
        self.data_dir = data_dir

    def path(self, name: str) -> str:
        return os.path.join(self.data_dir, *name.split("/")) + ".json"

    def load(self, name: str) -> Optional[Any]:
        path = self.path(name)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as e:
            logger.error("Error reading file %s: %s", path, e)
            raise StorageReadError(name, e) from e

    def save(self, name: str, data: Any) -> bool:
        path = self.path(name)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=os.path.dirname(path), suffix=".tmp")
        except OSError as e:
            logger.error("Error writing file %s: %s", path, e)
            return False
        # readers only ever see the old or the new document
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
            os.replace(tmp, path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error writing file %s: %s", path, e)
            if os.path.exists(tmp):
                os.remove(tmp)
            return False

    def exists(self, name: str) -> bool:
        return os.path.exists(self.path(name))

    def ensure_dir(self, name: str) -> None:
        os.makedirs(os.path.join(self.data_dir, name), exist_ok=True)

    def location(self) -> str:
        return self.data_dir


class MongoStore(DocumentStore):
    """Keeps every document in one collection as {_id: name, data: ...}."""

    kind = "mongo"

    def __init__(self, url: str, db_name: str, collection_name: str = "documents"):
        super().__init__()
        self.url = url
        self.db_name = db_name
        self._client = MongoClient(url)
        self._col = self._client[db_name][collection_name]

    def load(self, name: str) -> Optional[Any]:
        try:
            doc = self._col.find_one({"_id": name})
        except PyMongoError as e:
            logger.error("Error reading document %s: %s", name, e)
            raise StorageReadError(name, e) from e
        if doc is None:
            return None
        return doc.get("data")

    def save(self, name: str, data: Any) -> bool:
        try:
            self._col.replace_one({"_id": name}, {"_id": name, "data": data}, upsert=True)
            return True
        except PyMongoError as e:
            logger.error("Error writing document %s: %s", name, e)
            return False

    def exists(self, name: str) -> bool:
        try:
            return self._col.count_documents({"_id": name}, limit=1) > 0
        except PyMongoError as e:
            raise StorageReadError(name, e) from e

    def location(self) -> str:
        return f"{self.db_name}@{self.url}"


_store: Optional[DocumentStore] = None


def _build_store() -> DocumentStore:
    if STORAGE_BACKEND == "mongo":
        return MongoStore(DATABASE_URL, DATABASE_NAME)
    if STORAGE_BACKEND != "file":
        raise ValueError(f"Unknown STORAGE_BACKEND: {STORAGE_BACKEND}")
    return JsonFileStore(DATA_DIR)


def get_store() -> DocumentStore:
    global _store
    if _store is None:
        _store = _build_store()
    return _store


def set_store(store: Optional[DocumentStore]) -> None:
    global _store
    _store = store


def init_storage(store: DocumentStore) -> None:
    """Create the catalog, bookings list and carts location if absent."""
    store.ensure(PRODUCTS, DEFAULT_CATALOG)
    store.ensure(BOOKINGS, [])
    if isinstance(store, JsonFileStore):
        store.ensure_dir(CARTS)


# ---------- Ids ----------

class ProductIdGenerator:
    """Millisecond timestamps that never repeat within the process."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            now = int(self._clock() * 1000)
            self._last = max(now, self._last + 1)
            return self._last


new_product_id = ProductIdGenerator()
