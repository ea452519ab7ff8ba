"""Document cache for crop lists keyed by normalized location."""

from __future__ import annotations

import copy
import json
import sqlite3
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from ..domain.crop_parser import validate_crop_items
from ..observability.logging_utils import log_event, log_warning
from ..schemas import CacheEntry, CacheLookup
from .config import get_config


class CropCacheError(Exception):
    """The cache backend could not be read."""


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def classify_document(key: str, document: Any) -> CacheLookup:
    if not isinstance(document, dict):
        return CacheLookup(status="corrupt", reason="document_not_object")
    if "cultivos" not in document:
        return CacheLookup(status="corrupt", reason="missing_cultivos")
    items = document["cultivos"]
    if not isinstance(items, list):
        return CacheLookup(status="corrupt", reason="cultivos_not_array")
    if not items:
        return CacheLookup(status="corrupt", reason="empty_cultivos")
    crops, dropped = validate_crop_items(items)
    if dropped:
        return CacheLookup(
            status="corrupt", reason=f"malformed_crop_items:{dropped}"
        )
    original = document.get("nombreOriginal")
    entry = CacheEntry(
        key=key,
        original_query=original if isinstance(original, str) else "",
        crops=crops,
        retrieved_at=_parse_timestamp(document.get("fechaConsulta")),
    )
    return CacheLookup(status="hit", entry=entry)


class CropCacheStore:
    def read_document(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def write_document(self, key: str, document: Dict[str, Any]) -> None:
        raise NotImplementedError

    def lookup(self, key: str) -> CacheLookup:
        document = self.read_document(key)
        if document is None:
            return CacheLookup(status="miss")
        return classify_document(key, document)

    def get(self, key: str) -> Optional[CacheEntry]:
        result = self.lookup(key)
        return result.entry if result.is_hit else None

    def put(self, entry: CacheEntry) -> bool:
        document = entry.to_document()
        document["fechaConsulta"] = datetime.now(timezone.utc).isoformat()
        try:
            self.write_document(entry.key, document)
        except Exception as exc:
            log_warning(
                "crop_cache_write_failed",
                key=entry.key,
                error=f"{type(exc).__name__}: {exc}",
            )
            return False
        log_event("crop_cache_write", key=entry.key, crops=len(entry.crops))
        return True


class MemoryCropCacheStore(CropCacheStore):
    def __init__(self, documents: Optional[Dict[str, Any]] = None) -> None:
        self._documents: Dict[str, Any] = copy.deepcopy(documents or {})
        self._lock = Lock()

    def read_document(self, key: str) -> Optional[Any]:
        with self._lock:
            if key not in self._documents:
                return None
            return copy.deepcopy(self._documents[key])

    def write_document(self, key: str, document: Dict[str, Any]) -> None:
        with self._lock:
            self._documents[key] = copy.deepcopy(document)


class SqliteCropCacheStore(CropCacheStore):
    def __init__(self, path: Path, collection: str = "ubicacionesCultivos") -> None:
        self._path = path
        self._collection = collection
        self._lock = Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._path)

    def _init_db(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS crop_cache ("
                "collection TEXT NOT NULL, "
                "cache_key TEXT NOT NULL, "
                "document TEXT NOT NULL, "
                "updated_at TEXT NOT NULL, "
                "PRIMARY KEY (collection, cache_key))"
            )

    def read_document(self, key: str) -> Optional[Any]:
        try:
            with self._lock, self._connect() as conn:
                row = conn.execute(
                    "SELECT document FROM crop_cache "
                    "WHERE collection = ? AND cache_key = ?",
                    (self._collection, key),
                ).fetchone()
        except sqlite3.Error as exc:
            raise CropCacheError(f"crop cache read failed: {exc}") from exc
        if not row:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            # Undecodable rows surface as corrupt documents.
            return row[0]

    def write_document(self, key: str, document: Dict[str, Any]) -> None:
        payload_json = json.dumps(document, ensure_ascii=False, default=str)
        updated_at = datetime.now(timezone.utc).isoformat()
        with self._lock, self._connect() as conn:
            conn.execute(
                "INSERT INTO crop_cache (collection, cache_key, document, updated_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(collection, cache_key) DO UPDATE SET "
                "document = excluded.document, "
                "updated_at = excluded.updated_at",
                (self._collection, key, payload_json, updated_at),
            )


def build_crop_cache() -> CropCacheStore:
    cfg = get_config()
    store = (cfg.crop_cache_store or "sqlite").lower()
    if store == "memory":
        return MemoryCropCacheStore()
    if store != "sqlite":
        raise ValueError(f"unsupported CROP_CACHE_STORE: {store}")
    if cfg.crop_cache_path:
        path = Path(cfg.crop_cache_path)
    else:
        root = Path(__file__).resolve().parents[2]
        path = root / ".cache" / "crop_cache.sqlite3"
    return SqliteCropCacheStore(path=path, collection=cfg.crop_cache_collection)


@lru_cache(maxsize=1)
def get_crop_cache() -> CropCacheStore:
    return build_crop_cache()
