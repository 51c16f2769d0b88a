from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol

Document = dict[str, Any]
Predicate = Callable[[Document], bool]


class StoreUnavailable(Exception):
    """The backing store could not be read or written."""


@dataclass(frozen=True)
class CreateResult:
    """Outcome of ``create_if_absent``.

    ``created`` is True only for the single caller whose write landed.
    ``value`` is the stored document: the new one when created, otherwise the
    pre-existing one (``None`` when the key was tombstoned).
    """

    created: bool
    value: Document | None


class DocumentStore(Protocol):
    """String-keyed JSON documents grouped into named collections.

    Implementations must be thread-safe and must make ``create_if_absent``
    atomic: among concurrent callers for one key exactly one sees
    ``created=True``. A key removed with ``tombstone=True`` can never be
    created again.
    """

    def get(self, collection: str, key: str) -> Document | None: ...

    def upsert(self, collection: str, key: str, value: Document) -> Document: ...

    def create_if_absent(self, collection: str, key: str, value: Document) -> CreateResult: ...

    def update(self, collection: str, key: str, changes: Document) -> Document | None: ...

    def delete(self, collection: str, key: str, tombstone: bool = False) -> bool: ...

    def query(self, collection: str, predicate: Predicate) -> list[Document]: ...
