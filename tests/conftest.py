"""Shared test helpers."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from superlatives.constants.session_constants import ROLE_ADMIN, ROLE_GRADUATING, ROLE_GUEST
from superlatives.core.memory_store import InMemoryDocumentStore
from superlatives.core.models import Nominee, ParticipantIdentity, Superlative, Vote
from superlatives.core.store import StoreError, WriteOperation
from superlatives.core.superlatives_manager import SuperlativesManager

T0 = datetime(2025, 6, 1, 18, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    """Timestamp ``seconds`` after a fixed reference time."""
    return T0 + timedelta(seconds=seconds)


def make_superlative(
    title: str,
    names: list[str],
    order: int = 1,
    question_id: str = "",
) -> Superlative:
    """Build a Superlative whose nominee images are derived from their names."""
    return Superlative(
        id=question_id,
        title=title,
        order=order,
        nominees=[Nominee(name=name, image_ref=f"/images/{name.lower()}.png") for name in names],
    )


def make_vote(
    nominee: str,
    participant: str,
    cast_at: datetime | None,
    role: str = ROLE_GUEST,
    question_id: str = "q1",
) -> Vote:
    return Vote(
        question_id=question_id,
        nominee_name=nominee,
        participant_id=participant,
        participant_role=role,
        cast_at=cast_at,
    )


def two_questions() -> list[Superlative]:
    return [
        make_superlative("Most Likely to Become a Billionaire", ["A", "B"], order=1, question_id="q1"),
        make_superlative("Most Likely to Star in a Reality Show", ["A", "B"], order=2, question_id="q2"),
    ]


async def seed(
    manager: SuperlativesManager,
    questions: list[Superlative] | None = None,
    start: bool = True,
) -> list[Superlative]:
    """Load questions (two by default) and optionally start the session."""
    loaded = await manager.load_questions(questions if questions is not None else two_questions())
    if start:
        assert await manager.session.start_session()
    return loaded


async def settle(predicate: Callable[[], bool], rounds: int = 50) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not reached")


class FailingStore(InMemoryDocumentStore):
    """In-memory store whose writes can be switched off.

    ``fail_writes`` refuses every batch; ``fail_collections`` refuses any batch
    touching one of the named collections.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False
        self.fail_collections: set[str] = set()

    async def batch(self, operations: list[WriteOperation]) -> None:
        if self.fail_writes:
            raise StoreError("simulated write failure")
        if any(operation.collection in self.fail_collections for operation in operations):
            raise StoreError("simulated write failure")
        await super().batch(operations)


class GatedStore(InMemoryDocumentStore):
    """In-memory store whose reads of one collection wait for a gate."""

    def __init__(self, gated_collection: str) -> None:
        super().__init__()
        self.gated_collection = gated_collection
        self.gate = asyncio.Event()

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        if collection == self.gated_collection:
            await self.gate.wait()
        return await super().get(collection, doc_id)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def manager(store):
    return SuperlativesManager(store)


@pytest.fixture
def admin():
    return ParticipantIdentity(participant_id="admin-1", role=ROLE_ADMIN)


@pytest.fixture
def guest():
    return ParticipantIdentity(participant_id="guest-1", role=ROLE_GUEST)


@pytest.fixture
def graduate():
    return ParticipantIdentity(participant_id="grad-1", role=ROLE_GRADUATING)
