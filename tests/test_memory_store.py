"""Tests for the in-memory document store."""

import asyncio
from datetime import datetime

import pytest

from superlatives.core.memory_store import InMemoryDocumentStore
from superlatives.core.store import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    StoreError,
    WriteOperation,
)


@pytest.mark.asyncio
async def test_put_and_get_return_copies():
    store = InMemoryDocumentStore()
    document = {"id": "d1", "tags": ["a"]}
    await store.put("things", "d1", document)
    document["tags"].append("b")

    fetched = await store.get("things", "d1")
    assert fetched == {"id": "d1", "tags": ["a"]}
    fetched["tags"].append("c")
    assert (await store.get("things", "d1"))["tags"] == ["a"]


@pytest.mark.asyncio
async def test_get_missing_document_is_none():
    store = InMemoryDocumentStore()
    assert await store.get("things", "nope") is None


@pytest.mark.asyncio
async def test_patch_merges_and_deletes_fields():
    store = InMemoryDocumentStore()
    await store.put("things", "d1", {"id": "d1", "a": 1, "b": 2})
    await store.patch("things", "d1", {"a": 10, "b": DELETE_FIELD, "c": 3})
    assert await store.get("things", "d1") == {"id": "d1", "a": 10, "c": 3}


@pytest.mark.asyncio
async def test_patch_missing_document_raises():
    store = InMemoryDocumentStore()
    with pytest.raises(DocumentNotFoundError):
        await store.patch("things", "d1", {"a": 1})


@pytest.mark.asyncio
async def test_server_timestamps_strictly_increase():
    store = InMemoryDocumentStore()
    for index in range(5):
        await store.put("things", f"d{index}", {"id": f"d{index}", "at": SERVER_TIMESTAMP})
    stamps = [document["at"] for document in await store.query("things", order_by="at")]
    assert all(isinstance(stamp, datetime) for stamp in stamps)
    assert all(earlier < later for earlier, later in zip(stamps, stamps[1:]))
    assert [document["id"] for document in await store.query("things", order_by="at")] == [
        "d0", "d1", "d2", "d3", "d4",
    ]


@pytest.mark.asyncio
async def test_query_filters_and_orders_with_missing_values_last():
    store = InMemoryDocumentStore()
    await store.put("things", "a", {"id": "a", "kind": "x", "rank": 2})
    await store.put("things", "b", {"id": "b", "kind": "x", "rank": None})
    await store.put("things", "c", {"id": "c", "kind": "x", "rank": 1})
    await store.put("things", "d", {"id": "d", "kind": "y", "rank": 0})

    ascending = await store.query("things", where={"kind": "x"}, order_by="rank")
    assert [document["id"] for document in ascending] == ["c", "a", "b"]
    descending = await store.query("things", where={"kind": "x"}, order_by="rank", descending=True)
    assert [document["id"] for document in descending] == ["a", "c", "b"]


@pytest.mark.asyncio
async def test_batch_is_all_or_nothing():
    store = InMemoryDocumentStore()
    await store.put("things", "keep", {"id": "keep", "v": 1})

    with pytest.raises(StoreError):
        await store.batch(
            [
                WriteOperation.delete("things", "keep"),
                WriteOperation.put("things", "new", {"id": "new"}),
                WriteOperation.patch("things", "missing", {"v": 2}),
            ]
        )

    assert await store.get("things", "keep") == {"id": "keep", "v": 1}
    assert await store.get("things", "new") is None


@pytest.mark.asyncio
async def test_subscription_delivers_current_then_changes():
    store = InMemoryDocumentStore()
    await store.put("votes", "v1", {"id": "v1", "question_id": "q1"})
    subscription = await store.subscribe("votes", where={"question_id": "q1"})

    first = await asyncio.wait_for(subscription.next_snapshot(), timeout=1)
    assert [document["id"] for document in first] == ["v1"]

    await store.put("votes", "v2", {"id": "v2", "question_id": "q1"})
    second = await asyncio.wait_for(subscription.next_snapshot(), timeout=1)
    assert [document["id"] for document in second] == ["v1", "v2"]
    subscription.close()


@pytest.mark.asyncio
async def test_subscription_ignores_unrelated_changes():
    store = InMemoryDocumentStore()
    subscription = await store.subscribe("votes", where={"question_id": "q1"})
    assert await asyncio.wait_for(subscription.next_snapshot(), timeout=1) == []

    await store.put("votes", "v9", {"id": "v9", "question_id": "q2"})
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(subscription.next_snapshot(), timeout=0.05)
    subscription.close()


@pytest.mark.asyncio
async def test_single_document_subscription():
    store = InMemoryDocumentStore()
    subscription = await store.subscribe("app_state", doc_id="session")
    assert await asyncio.wait_for(subscription.next_snapshot(), timeout=1) == []

    await store.put("app_state", "session", {"session_started": True})
    snapshot = await asyncio.wait_for(subscription.next_snapshot(), timeout=1)
    assert snapshot == [{"session_started": True}]
    subscription.close()


@pytest.mark.asyncio
async def test_closed_subscription_stops_iteration():
    store = InMemoryDocumentStore()
    subscription = await store.subscribe("votes")
    received = []

    async def consume():
        async for snapshot in subscription:
            received.append(snapshot)

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    subscription.close()
    await asyncio.wait_for(task, timeout=1)

    await store.put("votes", "v1", {"id": "v1"})
    assert received == [[]]
    assert subscription.closed
