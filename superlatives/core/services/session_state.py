"""Service for the shared session cursor and the admin transitions on it.

States::

    NotStarted -> InSession(index, Voting | Revealed) -> Completed

Every transition returns ``True`` when it was applied and ``False`` when the
current state does not allow it or the store refused the write. Rejections
are logged, never raised.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from superlatives.constants.store_constants import (
    APP_STATE_COLLECTION,
    SESSION_DOCUMENT_ID,
    SUPERLATIVES_COLLECTION,
    VOTES_COLLECTION,
)
from superlatives.core.models import SessionState
from superlatives.core.services.result_materializer import ResultMaterializer
from superlatives.core.services.superlative_repository import SuperlativeRepository
from superlatives.core.services.vote_ledger import VoteLedger
from superlatives.core.store import (
    DELETE_FIELD,
    DocumentStore,
    StoreError,
    Subscription,
    WriteOperation,
)

logger = logging.getLogger(__name__)


class SessionStateMachine:
    """Reads and advances the singleton session document."""

    def __init__(
        self,
        store: DocumentStore,
        repository: SuperlativeRepository,
        ledger: VoteLedger,
        materializer: ResultMaterializer,
    ) -> None:
        self._store = store
        self._repository = repository
        self._ledger = ledger
        self._materializer = materializer

    async def current(self) -> SessionState:
        """Return the session state, creating it with defaults on first access."""
        document = await self._store.get(APP_STATE_COLLECTION, SESSION_DOCUMENT_ID)
        if document is None:
            state = SessionState()
            await self._store.put(APP_STATE_COLLECTION, SESSION_DOCUMENT_ID, state.to_document())
            return state
        return SessionState.from_document(document)

    async def subscribe(self) -> Subscription:
        return await self._store.subscribe(APP_STATE_COLLECTION, doc_id=SESSION_DOCUMENT_ID)

    async def set_join_url(self, join_url: str) -> bool:
        async def apply() -> bool:
            await self.current()
            await self._patch({"join_url": join_url})
            return True

        return await self._transition("set_join_url", apply)

    # --- Transitions ---

    async def start_session(self) -> bool:
        async def apply() -> bool:
            state = await self.current()
            if state.session_started:
                return self._reject("start_session", "session already started")
            if await self._repository.count() == 0:
                return self._reject("start_session", "no superlatives loaded")
            await self._patch(
                {
                    "session_started": True,
                    "current_question_index": 0,
                    "result_revealed": False,
                    "all_questions_completed": False,
                }
            )
            return True

        return await self._transition("start_session", apply)

    async def reveal_winner(self, local_selection: str | None = None) -> bool:
        """Freeze the current standing and show it.

        Needs at least one stored vote on the current superlative, or a
        selection the caller has made locally that may not have landed yet.
        """

        async def apply() -> bool:
            state = await self.current()
            if not state.is_voting_open:
                return self._reject("reveal_winner", "voting is not open")
            question = await self._repository.get_at_index(state.current_question_index)
            if question is None:
                return self._reject("reveal_winner", "no active superlative")
            votes = await self._ledger.votes_for(question.id)
            if not votes and not local_selection:
                return self._reject("reveal_winner", "no votes cast")
            result = await self._materializer.compute(question)
            await self._store.batch(
                [
                    self._materializer.freeze_operation(question.id, result),
                    self._session_operation({"result_revealed": True}),
                ]
            )
            self._materializer.log_frozen(question, result)
            return True

        return await self._transition("reveal_winner", apply)

    async def next_question(self) -> bool:
        async def apply() -> bool:
            state = await self.current()
            if not self._in_session(state):
                return self._reject("next_question", "session not in progress")
            next_index = state.current_question_index + 1
            if next_index >= await self._repository.count():
                return self._reject("next_question", "already at the last superlative")
            await self._patch({"current_question_index": next_index, "result_revealed": False})
            return True

        return await self._transition("next_question", apply)

    async def previous_question(self) -> bool:
        async def apply() -> bool:
            state = await self.current()
            if state.session_started and state.all_questions_completed:
                count = await self._repository.count()
                if count == 0:
                    return self._reject("previous_question", "no superlatives loaded")
                await self._patch(
                    {
                        "current_question_index": count - 1,
                        "result_revealed": False,
                        "all_questions_completed": False,
                    }
                )
                return True
            if not self._in_session(state):
                return self._reject("previous_question", "session not in progress")
            if state.current_question_index <= 0:
                return self._reject("previous_question", "already at the first superlative")
            await self._patch(
                {"current_question_index": state.current_question_index - 1, "result_revealed": False}
            )
            return True

        return await self._transition("previous_question", apply)

    async def go_to_question(self, index: int) -> bool:
        async def apply() -> bool:
            state = await self.current()
            if not state.session_started:
                return self._reject("go_to_question", "session not started")
            if not 0 <= index < await self._repository.count():
                return self._reject("go_to_question", f"index {index} out of range")
            await self._patch(
                {
                    "current_question_index": index,
                    "result_revealed": False,
                    "all_questions_completed": False,
                }
            )
            return True

        return await self._transition("go_to_question", apply)

    async def reset_current_results(self) -> bool:
        async def apply() -> bool:
            state = await self.current()
            if not self._in_session(state) or not state.result_revealed:
                return self._reject("reset_current_results", "result not revealed")
            question = await self._repository.get_at_index(state.current_question_index)
            operations = [self._session_operation({"result_revealed": False})]
            if question is not None:
                operations.insert(0, self._materializer.clear_operation(question.id))
            await self._store.batch(operations)
            return True

        return await self._transition("reset_current_results", apply)

    async def proceed_to_final_summary(self) -> bool:
        async def apply() -> bool:
            state = await self.current()
            if not self._in_session(state):
                return self._reject("proceed_to_final_summary", "session not in progress")
            await self._patch({"all_questions_completed": True, "result_revealed": False})
            return True

        return await self._transition("proceed_to_final_summary", apply)

    async def full_reset(self, confirm: bool = False) -> bool:
        """Erase every vote and frozen result and return to NotStarted.

        Irreversible; does nothing unless ``confirm`` is ``True``.
        """

        async def apply() -> bool:
            if confirm is not True:
                return self._reject("full_reset", "confirmation required")
            state = await self.current()
            votes = await self._store.query(VOTES_COLLECTION)
            questions = await self._store.query(SUPERLATIVES_COLLECTION)
            operations = [WriteOperation.delete(VOTES_COLLECTION, vote["id"]) for vote in votes]
            operations.extend(
                WriteOperation.patch(SUPERLATIVES_COLLECTION, question["id"], {"frozen_result": DELETE_FIELD})
                for question in questions
            )
            operations.append(
                WriteOperation.put(
                    APP_STATE_COLLECTION,
                    SESSION_DOCUMENT_ID,
                    SessionState(join_url=state.join_url).to_document(),
                )
            )
            await self._store.batch(operations)
            logger.warning("Full reset: removed %d votes and cleared %d results", len(votes), len(questions))
            return True

        return await self._transition("full_reset", apply)

    # --- Helpers ---

    @staticmethod
    def _in_session(state: SessionState) -> bool:
        return state.session_started and not state.all_questions_completed

    @staticmethod
    def _reject(action: str, reason: str) -> bool:
        logger.info("Transition %s ignored: %s", action, reason)
        return False

    async def _patch(self, fields: dict[str, Any]) -> None:
        await self._store.patch(APP_STATE_COLLECTION, SESSION_DOCUMENT_ID, fields)

    @staticmethod
    def _session_operation(fields: dict[str, Any]) -> WriteOperation:
        return WriteOperation.patch(APP_STATE_COLLECTION, SESSION_DOCUMENT_ID, fields)

    async def _transition(self, action: str, apply: Callable[[], Awaitable[bool]]) -> bool:
        try:
            applied = await apply()
        except StoreError as exc:
            logger.warning("Transition %s failed: %s", action, exc)
            return False
        if applied:
            logger.info("Transition %s applied", action)
        return applied
