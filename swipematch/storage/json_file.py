"""Simple JSON-file backed document store, one file per collection."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any

from .base import CreateResult, Document, Predicate, StoreUnavailable


class JsonFileStore:
    """Persist each collection as ``<data_dir>/<collection>.json``.

    Every operation is a locked read-modify-write of the whole collection
    file, so ``create_if_absent`` is atomic within one process.
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self._lock = threading.Lock()

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def _load(self, collection: str) -> dict[str, Any]:
        path = self._path(collection)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                return {"documents": {}, "tombstones": []}
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreUnavailable(f"cannot read {path}") from exc

    def _save(self, collection: str, data: dict[str, Any]) -> None:
        path = self._path(collection)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise StoreUnavailable(f"cannot write {path}") from exc

    def get(self, collection: str, key: str) -> Document | None:
        with self._lock:
            return self._load(collection)["documents"].get(key)

    def upsert(self, collection: str, key: str, value: Document) -> Document:
        with self._lock:
            data = self._load(collection)
            data["documents"][key] = value
            self._save(collection, data)
            return value

    def create_if_absent(self, collection: str, key: str, value: Document) -> CreateResult:
        with self._lock:
            data = self._load(collection)
            if key in data["tombstones"]:
                return CreateResult(created=False, value=None)
            existing = data["documents"].get(key)
            if existing is not None:
                return CreateResult(created=False, value=existing)
            data["documents"][key] = value
            self._save(collection, data)
            return CreateResult(created=True, value=value)

    def update(self, collection: str, key: str, changes: Document) -> Document | None:
        with self._lock:
            data = self._load(collection)
            doc = data["documents"].get(key)
            if doc is None:
                return None
            doc.update(changes)
            self._save(collection, data)
            return doc

    def delete(self, collection: str, key: str, tombstone: bool = False) -> bool:
        with self._lock:
            data = self._load(collection)
            removed = data["documents"].pop(key, None) is not None
            if tombstone and key not in data["tombstones"]:
                data["tombstones"].append(key)
            self._save(collection, data)
            return removed

    def query(self, collection: str, predicate: Predicate) -> list[Document]:
        with self._lock:
            docs = list(self._load(collection)["documents"].values())
        return [d for d in docs if predicate(d)]
