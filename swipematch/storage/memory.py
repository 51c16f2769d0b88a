from __future__ import annotations

import copy
import threading

from .base import CreateResult, Document, Predicate


class MemoryStore:
    """Thread-safe in-process document store.

    One instance per application; nothing here is module-global.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = {}
        self._tombstones: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def _docs(self, collection: str) -> dict[str, Document]:
        return self._collections.setdefault(collection, {})

    def get(self, collection: str, key: str) -> Document | None:
        with self._lock:
            doc = self._docs(collection).get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def upsert(self, collection: str, key: str, value: Document) -> Document:
        with self._lock:
            self._docs(collection)[key] = copy.deepcopy(value)
            return copy.deepcopy(value)

    def create_if_absent(self, collection: str, key: str, value: Document) -> CreateResult:
        with self._lock:
            if key in self._tombstones.get(collection, set()):
                return CreateResult(created=False, value=None)
            docs = self._docs(collection)
            existing = docs.get(key)
            if existing is not None:
                return CreateResult(created=False, value=copy.deepcopy(existing))
            docs[key] = copy.deepcopy(value)
            return CreateResult(created=True, value=copy.deepcopy(value))

    def update(self, collection: str, key: str, changes: Document) -> Document | None:
        with self._lock:
            doc = self._docs(collection).get(key)
            if doc is None:
                return None
            doc.update(copy.deepcopy(changes))
            return copy.deepcopy(doc)

    def delete(self, collection: str, key: str, tombstone: bool = False) -> bool:
        with self._lock:
            removed = self._docs(collection).pop(key, None) is not None
            if tombstone:
                self._tombstones.setdefault(collection, set()).add(key)
            return removed

    def query(self, collection: str, predicate: Predicate) -> list[Document]:
        with self._lock:
            docs = list(self._docs(collection).values())
        return [copy.deepcopy(d) for d in docs if predicate(d)]
