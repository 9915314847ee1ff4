"""In-process document store used by the server and the tests."""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Callable

from superlatives.core.store import (
    DELETE_FIELD,
    OP_DELETE,
    OP_PATCH,
    OP_PUT,
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
    Subscription,
    SubscriptionClosedError,
    WriteOperation,
)

logger = logging.getLogger(__name__)

_CLOSED = object()


@dataclass(slots=True)
class _SubscriptionTarget:
    collection: str
    where: dict[str, Any] | None
    order_by: str | None
    doc_id: str | None


class MemorySubscription(Subscription):
    """Queue-backed subscription; one snapshot per observed change."""

    def __init__(self, target: _SubscriptionTarget, on_close: Callable[[MemorySubscription], None]) -> None:
        self.target = target
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._on_close = on_close
        self._closed = False
        self.last_snapshot: list[dict[str, Any]] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, snapshot: list[dict[str, Any]]) -> None:
        if self._closed or snapshot == self.last_snapshot:
            return
        self.last_snapshot = copy.deepcopy(snapshot)
        self._queue.put_nowait(copy.deepcopy(snapshot))

    async def next_snapshot(self) -> list[dict[str, Any]]:
        if self._closed and self._queue.empty():
            raise SubscriptionClosedError("Subscription is closed.")
        item = await self._queue.get()
        if item is _CLOSED:
            raise SubscriptionClosedError("Subscription is closed.")
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        self._on_close(self)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store with change notification and atomic batches."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._subscriptions: list[MemorySubscription] = []
        self._lock = asyncio.Lock()
        self._last_timestamp: datetime | None = None

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    # --- Writes ---

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        await self.batch([WriteOperation.put(collection, doc_id, document)])

    async def patch(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        await self.batch([WriteOperation.patch(collection, doc_id, fields)])

    async def delete(self, collection: str, doc_id: str) -> None:
        await self.batch([WriteOperation.delete(collection, doc_id)])

    async def batch(self, operations: list[WriteOperation]) -> None:
        if not operations:
            return
        async with self._lock:
            touched = {operation.collection for operation in operations}
            backup = {name: copy.deepcopy(self._collections.get(name, {})) for name in touched}
            try:
                for operation in operations:
                    self._apply(operation)
            except Exception as exc:
                for name, documents in backup.items():
                    self._collections[name] = documents
                if isinstance(exc, StoreError):
                    raise
                raise StoreError(f"Batch rejected: {exc}") from exc
            self._notify(touched)

    # --- Reads ---

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        async with self._lock:
            document = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    async def query(
        self,
        collection: str,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        async with self._lock:
            return copy.deepcopy(self._select(collection, where, order_by, descending))

    async def subscribe(
        self,
        collection: str,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        doc_id: str | None = None,
    ) -> Subscription:
        target = _SubscriptionTarget(collection, dict(where) if where else None, order_by, doc_id)
        subscription = MemorySubscription(target, self._remove_subscription)
        async with self._lock:
            self._subscriptions.append(subscription)
            subscription.deliver(self._snapshot_for(target))
        return subscription

    # --- Internals ---

    def _apply(self, operation: WriteOperation) -> None:
        documents = self._collections.setdefault(operation.collection, {})
        if operation.kind == OP_PUT:
            if not isinstance(operation.data, dict):
                raise StoreError("Documents must be dictionaries.")
            documents[operation.doc_id] = self._resolve(
                {key: value for key, value in operation.data.items() if value is not DELETE_FIELD}
            )
        elif operation.kind == OP_PATCH:
            existing = documents.get(operation.doc_id)
            if existing is None:
                raise DocumentNotFoundError(
                    f"{operation.collection}/{operation.doc_id} does not exist."
                )
            for key, value in operation.data.items():
                if value is DELETE_FIELD:
                    existing.pop(key, None)
                else:
                    existing[key] = self._resolve(value)
        elif operation.kind == OP_DELETE:
            documents.pop(operation.doc_id, None)
        else:
            raise StoreError(f"Unknown write operation '{operation.kind}'.")

    def _resolve(self, value: Any) -> Any:
        if value is SERVER_TIMESTAMP:
            return self._server_now()
        if isinstance(value, dict):
            return {key: self._resolve(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._resolve(item) for item in value]
        return copy.deepcopy(value)

    def _server_now(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _select(
        self,
        collection: str,
        where: dict[str, Any] | None,
        order_by: str | None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        documents = list(self._collections.get(collection, {}).values())
        if where:
            documents = [
                document
                for document in documents
                if all(document.get(key) == value for key, value in where.items())
            ]
        if order_by:
            present = [document for document in documents if document.get(order_by) is not None]
            missing = [document for document in documents if document.get(order_by) is None]
            present.sort(key=lambda document: document[order_by], reverse=descending)
            documents = present + missing
        return documents

    def _snapshot_for(self, target: _SubscriptionTarget) -> list[dict[str, Any]]:
        if target.doc_id is not None:
            document = self._collections.get(target.collection, {}).get(target.doc_id)
            return [document] if document is not None else []
        return self._select(target.collection, target.where, target.order_by)

    def _notify(self, collections: set[str]) -> None:
        for subscription in list(self._subscriptions):
            if subscription.target.collection in collections:
                subscription.deliver(self._snapshot_for(subscription.target))

    def _remove_subscription(self, subscription: MemorySubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug("Subscription on '%s' closed", subscription.target.collection)
