"""Business logic shared between the HTTP surface and in-process clients."""

from __future__ import annotations

import logging
from uuid import uuid4

from superlatives.constants.session_constants import PARTICIPANT_ROLES
from superlatives.core.memory_store import InMemoryDocumentStore
from superlatives.core.models import (
    CastResult,
    ParticipantIdentity,
    SessionSnapshot,
    SessionState,
    Standing,
    Superlative,
    SummaryEntry,
    Vote,
)
from superlatives.core.services.result_materializer import ResultMaterializer
from superlatives.core.services.session_state import SessionStateMachine
from superlatives.core.services.superlative_repository import SuperlativeRepository
from superlatives.core.services.vote_ledger import VoteLedger
from superlatives.core.store import DocumentStore
from superlatives.core.summary import build_summary
from superlatives.core.tally import compute_standing

logger = logging.getLogger(__name__)


class SuperlativesManager:
    """Facade for superlative services: Repository, Ledger, Materializer and SessionState.

    Admin transitions are offered only to identities carrying the admin role;
    calls from anyone else are ignored. The role is whatever the client
    declared.
    """

    def __init__(self, store: DocumentStore | None = None) -> None:
        self._store = store if store is not None else InMemoryDocumentStore()

        # Services
        self._repository = SuperlativeRepository(self._store)
        self._ledger = VoteLedger(self._store, self._repository)
        self._materializer = ResultMaterializer(self._repository, self._ledger)
        self._session = SessionStateMachine(
            self._store, self._repository, self._ledger, self._materializer
        )

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def repository(self) -> SuperlativeRepository:
        return self._repository

    @property
    def ledger(self) -> VoteLedger:
        return self._ledger

    @property
    def session(self) -> SessionStateMachine:
        return self._session

    # --- Identity ---

    @staticmethod
    def create_identity(role: str) -> ParticipantIdentity:
        normalized = role.strip().lower()
        if normalized not in PARTICIPANT_ROLES:
            raise ValueError(f"Unknown role '{role}'. Expected one of: {', '.join(PARTICIPANT_ROLES)}.")
        return ParticipantIdentity(participant_id=uuid4().hex, role=normalized)

    # --- Superlative Repository Delegation ---

    async def load_questions(self, questions: list[Superlative]) -> list[Superlative]:
        return await self._repository.load(questions)

    async def get_questions(self) -> list[Superlative]:
        return await self._repository.list_ordered()

    async def get_current_question(self) -> Superlative | None:
        state = await self._session.current()
        if not state.session_started or state.all_questions_completed:
            return None
        return await self._repository.get_at_index(state.current_question_index)

    # --- Vote Ledger Delegation ---

    async def cast_vote(
        self, identity: ParticipantIdentity, question_id: str, nominee_name: str
    ) -> CastResult:
        return await self._ledger.cast_vote(
            question_id, identity.participant_id, identity.role, nominee_name
        )

    async def get_own_vote(self, identity: ParticipantIdentity, question_id: str) -> Vote | None:
        return await self._ledger.vote_of(question_id, identity.participant_id)

    async def current_standing(self) -> Standing | None:
        question = await self.get_current_question()
        if question is None:
            return None
        return compute_standing(question, await self._ledger.votes_for(question.id))

    # --- Session State Delegation ---

    async def get_session_state(self) -> SessionState:
        return await self._session.current()

    async def snapshot(self) -> SessionSnapshot:
        """Session flags plus the current superlative and its live standing."""
        state = await self._session.current()
        questions = await self._repository.list_ordered()
        snapshot = SessionSnapshot(state=state, question_count=len(questions))
        if state.session_started and not state.all_questions_completed:
            if 0 <= state.current_question_index < len(questions):
                snapshot.question = questions[state.current_question_index]
        if snapshot.question is not None:
            votes = await self._ledger.votes_for(snapshot.question.id)
            snapshot.standing = compute_standing(snapshot.question, votes)
        return snapshot

    async def set_join_url(self, join_url: str) -> bool:
        return await self._session.set_join_url(join_url)

    async def start_session(self, identity: ParticipantIdentity) -> bool:
        if not self._is_admin(identity, "start_session"):
            return False
        return await self._session.start_session()

    async def reveal_winner(
        self, identity: ParticipantIdentity, local_selection: str | None = None
    ) -> bool:
        if not self._is_admin(identity, "reveal_winner"):
            return False
        return await self._session.reveal_winner(local_selection)

    async def next_question(self, identity: ParticipantIdentity) -> bool:
        if not self._is_admin(identity, "next_question"):
            return False
        return await self._session.next_question()

    async def previous_question(self, identity: ParticipantIdentity) -> bool:
        if not self._is_admin(identity, "previous_question"):
            return False
        return await self._session.previous_question()

    async def go_to_question(self, identity: ParticipantIdentity, index: int) -> bool:
        if not self._is_admin(identity, "go_to_question"):
            return False
        return await self._session.go_to_question(index)

    async def reset_current_results(self, identity: ParticipantIdentity) -> bool:
        if not self._is_admin(identity, "reset_current_results"):
            return False
        return await self._session.reset_current_results()

    async def proceed_to_final_summary(self, identity: ParticipantIdentity) -> bool:
        if not self._is_admin(identity, "proceed_to_final_summary"):
            return False
        return await self._session.proceed_to_final_summary()

    async def full_reset(self, identity: ParticipantIdentity, confirm: bool = False) -> bool:
        if not self._is_admin(identity, "full_reset"):
            return False
        return await self._session.full_reset(confirm)

    # --- Summary ---

    async def summary(self) -> dict[str, SummaryEntry]:
        return build_summary(await self._repository.list_ordered())

    @staticmethod
    def _is_admin(identity: ParticipantIdentity, action: str) -> bool:
        if identity.is_admin:
            return True
        logger.info("Transition %s ignored for non-admin participant %s", action, identity.participant_id)
        return False
