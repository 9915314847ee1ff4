"""Service for reading and writing superlative documents."""

from __future__ import annotations

import logging
from uuid import uuid4

from superlatives.constants.store_constants import SUPERLATIVES_COLLECTION
from superlatives.core.models import FrozenResult, Nominee, Superlative
from superlatives.core.store import DELETE_FIELD, DocumentStore, WriteOperation

logger = logging.getLogger(__name__)


class SuperlativeRepository:
    """Manages the ordered set of superlatives held in the store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def load(self, questions: list[Superlative]) -> list[Superlative]:
        """Replace every stored superlative with ``questions``."""
        if not questions:
            raise ValueError("At least one superlative is required.")

        prepared = [self._prepare_question(question) for question in questions]
        orders = [question.order for question in prepared]
        if len(set(orders)) != len(orders):
            raise ValueError("Superlative order values must be unique.")

        existing = await self._store.query(SUPERLATIVES_COLLECTION)
        operations = [
            WriteOperation.delete(SUPERLATIVES_COLLECTION, document["id"])
            for document in existing
        ]
        operations.extend(
            WriteOperation.put(SUPERLATIVES_COLLECTION, question.id, question.to_document())
            for question in prepared
        )
        await self._store.batch(operations)
        logger.info("Loaded %d superlatives", len(prepared))
        return sorted(prepared, key=lambda question: question.order)

    async def list_ordered(self) -> list[Superlative]:
        documents = await self._store.query(SUPERLATIVES_COLLECTION, order_by="order")
        return [Superlative.from_document(document) for document in documents]

    async def get(self, question_id: str) -> Superlative | None:
        document = await self._store.get(SUPERLATIVES_COLLECTION, question_id)
        return Superlative.from_document(document) if document is not None else None

    async def get_at_index(self, index: int) -> Superlative | None:
        questions = await self.list_ordered()
        if not 0 <= index < len(questions):
            return None
        return questions[index]

    async def count(self) -> int:
        return len(await self._store.query(SUPERLATIVES_COLLECTION))

    async def set_frozen_result(self, question_id: str, result: FrozenResult) -> None:
        await self._store.patch(
            SUPERLATIVES_COLLECTION, question_id, {"frozen_result": result.to_document()}
        )

    async def clear_frozen_result(self, question_id: str) -> None:
        await self._store.patch(SUPERLATIVES_COLLECTION, question_id, {"frozen_result": DELETE_FIELD})

    def _prepare_question(self, question: Superlative) -> Superlative:
        """Validate and normalize a superlative before storage."""
        cleaned_title = question.title.strip()
        if not cleaned_title:
            raise ValueError("Superlative title must not be empty.")
        if not isinstance(question.order, int):
            raise ValueError("Superlative order must be an integer.")

        return Superlative(
            id=question.id.strip() or uuid4().hex,
            title=cleaned_title,
            order=question.order,
            nominees=self._validate_nominees(question.nominees),
        )

    @staticmethod
    def _validate_nominees(nominees: list[Nominee]) -> list[Nominee]:
        cleaned = [Nominee(name=nominee.name.strip(), image_ref=nominee.image_ref.strip()) for nominee in nominees]
        if any(not nominee.name for nominee in cleaned):
            raise ValueError("Nominee name cannot be empty.")
        names = [nominee.name for nominee in cleaned]
        if len(set(names)) != len(names):
            raise ValueError("Nominee names must be unique within a superlative.")
        return cleaned
