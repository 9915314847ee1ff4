"""Document store interface shared by every client of a session.

The store holds plain-dict documents grouped into named collections. All
reads and writes are coroutines; subscriptions deliver the full matching set
every time it changes, never deltas.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator


class _Sentinel:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")
"""Write-time marker replaced by the store's own clock."""

DELETE_FIELD = _Sentinel("DELETE_FIELD")
"""Patch marker that removes the named field."""


class StoreError(Exception):
    """Raised when a store operation cannot be completed."""


class DocumentNotFoundError(StoreError):
    """Raised when patching a document that does not exist."""


class SubscriptionClosedError(StoreError):
    """Raised when reading from a subscription after it was closed."""


OP_PUT = "put"
OP_PATCH = "patch"
OP_DELETE = "delete"


@dataclass(slots=True)
class WriteOperation:
    """One write inside an atomic batch."""

    kind: str
    collection: str
    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def put(cls, collection: str, doc_id: str, document: dict[str, Any]) -> WriteOperation:
        return cls(OP_PUT, collection, doc_id, document)

    @classmethod
    def patch(cls, collection: str, doc_id: str, fields: dict[str, Any]) -> WriteOperation:
        return cls(OP_PATCH, collection, doc_id, fields)

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> WriteOperation:
        return cls(OP_DELETE, collection, doc_id)


class Subscription(ABC):
    """Stream of snapshots for one collection query or document."""

    @abstractmethod
    async def next_snapshot(self) -> list[dict[str, Any]]:
        """Wait for and return the next full snapshot."""

    @abstractmethod
    def close(self) -> None:
        """Stop delivering snapshots. Safe to call more than once."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass

    def __aiter__(self) -> AsyncIterator[list[dict[str, Any]]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[list[dict[str, Any]]]:
        while not self.closed:
            try:
                yield await self.next_snapshot()
            except SubscriptionClosedError:
                return


class DocumentStore(ABC):
    """Realtime document store collaborator.

    Implementations must resolve ``SERVER_TIMESTAMP`` to strictly increasing
    values, honour ``DELETE_FIELD`` in patches and apply ``batch`` all or
    nothing.
    """

    @abstractmethod
    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        """Create or fully overwrite a document."""

    @abstractmethod
    async def patch(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge the named fields into an existing document."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document if present."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return a copy of the document or ``None``."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Return documents matching every equality filter, ordered."""

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        doc_id: str | None = None,
    ) -> Subscription:
        """Subscribe to a query (or a single document when ``doc_id`` is set)."""

    @abstractmethod
    async def batch(self, operations: list[WriteOperation]) -> None:
        """Commit every operation atomically."""
