"""Per-client read model of the shared session.

Each connected device keeps its own view: it follows the session document and
the votes on the current superlative, recomputes the standing from every vote
snapshot, and runs the summary once when the session completes. There is no
central process computing tallies; every view converges because it derives
everything from the same stored documents.

The local selection is provisional. Whenever a vote snapshot arrives it is
replaced by whatever the store holds for this participant (possibly nothing),
except while this view's own vote is still being written.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from superlatives.constants.session_constants import REJECT_NO_ACTIVE_QUESTION
from superlatives.core.models import (
    CastResult,
    ParticipantIdentity,
    SessionState,
    Standing,
    Superlative,
    SummaryEntry,
    Vote,
)
from superlatives.core.store import StoreError, Subscription
from superlatives.core.summary import build_summary
from superlatives.core.superlatives_manager import SuperlativesManager
from superlatives.core.tally import compute_standing

logger = logging.getLogger(__name__)


class ParticipantView:
    """Subscribes to the session and keeps a locally computed standing."""

    def __init__(self, manager: SuperlativesManager, identity: ParticipantIdentity) -> None:
        self._manager = manager
        self.identity = identity

        self.state: SessionState | None = None
        self.question: Superlative | None = None
        self.votes: list[Vote] = []
        self.standing: Standing | None = None
        self.local_selection: str | None = None
        self.summary: dict[str, SummaryEntry] | None = None
        self.last_notice: str | None = None

        self._question_index: int | None = None
        self._pending_writes = 0
        self._changed = asyncio.Event()
        self._session_subscription: Subscription | None = None
        self._votes_subscription: Subscription | None = None
        self._session_task: asyncio.Task[None] | None = None
        self._votes_task: asyncio.Task[None] | None = None

    # --- Lifecycle ---

    async def start(self) -> None:
        self._session_subscription = await self._manager.session.subscribe()
        self._session_task = asyncio.create_task(self._follow_session(self._session_subscription))

    async def close(self) -> None:
        if self._session_subscription is not None:
            self._session_subscription.close()
            self._session_subscription = None
        if self._session_task is not None:
            self._session_task.cancel()
            await asyncio.gather(self._session_task, return_exceptions=True)
            self._session_task = None
        # The session task must be gone first; it opens vote subscriptions.
        await self._stop_votes()

    async def wait_for_change(self) -> None:
        """Block until the view has changed since the last call."""
        await self._changed.wait()
        self._changed.clear()

    # --- Participant actions ---

    async def select(self, nominee_name: str) -> CastResult:
        """Optimistically select a nominee and write the vote.

        A failed write leaves the selection in place and records a notice.
        """
        if self.question is None:
            self.last_notice = REJECT_NO_ACTIVE_QUESTION
            self._changed.set()
            return CastResult(False, REJECT_NO_ACTIVE_QUESTION)

        self.local_selection = nominee_name
        self._pending_writes += 1
        self._changed.set()
        try:
            result = await self._manager.cast_vote(self.identity, self.question.id, nominee_name)
        finally:
            self._pending_writes -= 1
        self.last_notice = None if result.accepted else result.reason
        self._changed.set()
        return result

    async def reveal(self) -> bool:
        return await self._manager.reveal_winner(self.identity, self.local_selection)

    # --- Snapshot handling ---

    async def apply_session_snapshot(self, snapshot: list[dict[str, Any]]) -> None:
        state = SessionState.from_document(snapshot[0]) if snapshot else SessionState()
        was_completed = self.state is not None and self.state.all_questions_completed
        self.state = state

        in_session = state.session_started and not state.all_questions_completed
        index = state.current_question_index if in_session else None
        try:
            question = (
                await self._manager.repository.get_at_index(index) if index is not None else None
            )
        except StoreError as exc:
            logger.warning("Could not load the current superlative: %s", exc)
            return

        question_changed = (
            index != self._question_index
            or (question.id if question else None) != (self.question.id if self.question else None)
        )
        self.question = question
        if question_changed:
            self._question_index = index
            self.local_selection = None
            self.votes = []
            self.standing = None
            await self._follow_votes(question)

        if state.all_questions_completed and not was_completed:
            await self._refresh_summary()
        elif not state.all_questions_completed:
            self.summary = None
        self._changed.set()

    def apply_vote_snapshot(self, snapshot: list[dict[str, Any]]) -> None:
        if self.question is None:
            return
        votes = [Vote.from_document(document) for document in snapshot]
        self.votes = [vote for vote in votes if vote.question_id == self.question.id]
        self.standing = compute_standing(self.question, self.votes)

        self._changed.set()
        if self._pending_writes:
            return
        own = next(
            (vote for vote in self.votes if vote.participant_id == self.identity.participant_id),
            None,
        )
        self.local_selection = own.nominee_name if own is not None else None

    # --- Internals ---

    async def _refresh_summary(self) -> None:
        try:
            self.summary = build_summary(await self._manager.repository.list_ordered())
        except StoreError as exc:
            logger.warning("Could not build the summary: %s", exc)

    async def _follow_session(self, subscription: Subscription) -> None:
        async for snapshot in subscription:
            await self.apply_session_snapshot(snapshot)

    async def _follow_votes(self, question: Superlative | None) -> None:
        await self._stop_votes()
        if question is None:
            return
        try:
            self._votes_subscription = await self._manager.ledger.subscribe(question.id)
        except StoreError as exc:
            logger.warning("Could not subscribe to votes for '%s': %s", question.title, exc)
            return
        self._votes_task = asyncio.create_task(self._consume_votes(self._votes_subscription))

    async def _consume_votes(self, subscription: Subscription) -> None:
        async for snapshot in subscription:
            self.apply_vote_snapshot(snapshot)

    async def _stop_votes(self) -> None:
        if self._votes_subscription is not None:
            self._votes_subscription.close()
            self._votes_subscription = None
        if self._votes_task is not None:
            task = self._votes_task
            self._votes_task = None
            if task is not asyncio.current_task():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
