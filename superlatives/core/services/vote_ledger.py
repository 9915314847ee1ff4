"""Service for recording one vote per participant per superlative."""

from __future__ import annotations

import logging

from superlatives.constants.session_constants import (
    REJECT_COMPLETED,
    REJECT_NO_ACTIVE_QUESTION,
    REJECT_NOT_STARTED,
    REJECT_RESULT_REVEALED,
    REJECT_UNKNOWN_NOMINEE,
    REJECT_VOTE_IN_FLIGHT,
    REJECT_WRITE_FAILED,
)
from superlatives.constants.store_constants import (
    APP_STATE_COLLECTION,
    SESSION_DOCUMENT_ID,
    VOTES_COLLECTION,
)
from superlatives.core.models import CastResult, SessionState, Vote, vote_id_for
from superlatives.core.services.superlative_repository import SuperlativeRepository
from superlatives.core.store import SERVER_TIMESTAMP, DocumentStore, StoreError, Subscription

logger = logging.getLogger(__name__)


class VoteLedger:
    """Upserts votes keyed by (question, participant) and reads them back in cast order."""

    def __init__(self, store: DocumentStore, repository: SuperlativeRepository) -> None:
        self._store = store
        self._repository = repository
        self._in_flight: set[str] = set()

    def is_in_flight(self, participant_id: str) -> bool:
        return participant_id in self._in_flight

    async def cast_vote(
        self,
        question_id: str,
        participant_id: str,
        participant_role: str,
        nominee_name: str,
    ) -> CastResult:
        """Record or change a vote. Rejections are reported, never raised."""
        if participant_id in self._in_flight:
            logger.info("Vote from %s ignored: previous vote still in flight", participant_id)
            return CastResult(False, REJECT_VOTE_IN_FLIGHT)

        self._in_flight.add(participant_id)
        try:
            rejection = await self._check_voting_open(question_id, nominee_name)
            if rejection is not None:
                logger.info("Vote from %s on %s rejected: %s", participant_id, question_id, rejection)
                return CastResult(False, rejection)

            vote_id = vote_id_for(question_id, participant_id)
            existing = await self._store.get(VOTES_COLLECTION, vote_id)
            if existing is None:
                document = Vote(
                    question_id=question_id,
                    nominee_name=nominee_name,
                    participant_id=participant_id,
                    participant_role=participant_role,
                ).to_document()
                document["cast_at"] = SERVER_TIMESTAMP
                await self._store.put(VOTES_COLLECTION, vote_id, document)
            else:
                # Overwrite keeps the original cast_at so tie-break order is stable.
                await self._store.patch(
                    VOTES_COLLECTION,
                    vote_id,
                    {"nominee_name": nominee_name, "participant_role": participant_role},
                )
            logger.debug("Vote %s -> %s recorded", vote_id, nominee_name)
            return CastResult(True)
        except StoreError as exc:
            logger.warning("Vote from %s on %s could not be written: %s", participant_id, question_id, exc)
            return CastResult(False, REJECT_WRITE_FAILED)
        finally:
            self._in_flight.discard(participant_id)

    async def votes_for(self, question_id: str) -> list[Vote]:
        documents = await self._store.query(
            VOTES_COLLECTION, where={"question_id": question_id}, order_by="cast_at"
        )
        return [Vote.from_document(document) for document in documents]

    async def vote_of(self, question_id: str, participant_id: str) -> Vote | None:
        document = await self._store.get(VOTES_COLLECTION, vote_id_for(question_id, participant_id))
        return Vote.from_document(document) if document is not None else None

    async def subscribe(self, question_id: str) -> Subscription:
        return await self._store.subscribe(
            VOTES_COLLECTION, where={"question_id": question_id}, order_by="cast_at"
        )

    async def _check_voting_open(self, question_id: str, nominee_name: str) -> str | None:
        document = await self._store.get(APP_STATE_COLLECTION, SESSION_DOCUMENT_ID)
        state = SessionState.from_document(document or {})
        if not state.session_started:
            return REJECT_NOT_STARTED
        if state.all_questions_completed:
            return REJECT_COMPLETED

        question = await self._repository.get_at_index(state.current_question_index)
        if question is None or question.id != question_id:
            return REJECT_NO_ACTIVE_QUESTION
        if state.result_revealed:
            return REJECT_RESULT_REVEALED
        if question.find_nominee(nominee_name) is None:
            return REJECT_UNKNOWN_NOMINEE
        return None
