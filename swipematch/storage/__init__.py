"""
Document storage primitives.

Responsibilities:
- Provide upsert, atomic create-if-absent and predicate queries over
  string-keyed JSON documents.
- Ship an in-memory adapter (default, tests) and a JSON-file adapter.
"""
from .base import CreateResult, DocumentStore, StoreUnavailable
from .json_file import JsonFileStore
from .memory import MemoryStore

__all__ = [
    "CreateResult",
    "DocumentStore",
    "JsonFileStore",
    "MemoryStore",
    "StoreUnavailable",
]
