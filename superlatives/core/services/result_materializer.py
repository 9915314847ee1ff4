"""Freezes the tally of a superlative onto its document when revealed."""

from __future__ import annotations

import logging

from superlatives.constants.store_constants import SUPERLATIVES_COLLECTION
from superlatives.core.models import FrozenResult, Superlative, WinnerEntry
from superlatives.core.services.superlative_repository import SuperlativeRepository
from superlatives.core.services.vote_ledger import VoteLedger
from superlatives.core.store import DELETE_FIELD, WriteOperation
from superlatives.core.tally import compute_standing

logger = logging.getLogger(__name__)


class ResultMaterializer:
    """Computes a standing once and stores the winners on the superlative."""

    def __init__(self, repository: SuperlativeRepository, ledger: VoteLedger) -> None:
        self._repository = repository
        self._ledger = ledger

    async def compute(self, question: Superlative) -> FrozenResult:
        """Tally the stored votes of ``question`` without writing anything."""
        votes = await self._ledger.votes_for(question.id)
        standing = compute_standing(question, votes)
        if standing is None:
            return FrozenResult()
        return FrozenResult(
            winners=[
                WinnerEntry(
                    nominee_name=row.nominee_name,
                    image_ref=row.image_ref,
                    score=row.score,
                    is_tie=standing.is_tie,
                )
                for row in standing.winners
            ]
        )

    @staticmethod
    def freeze_operation(question_id: str, result: FrozenResult) -> WriteOperation:
        return WriteOperation.patch(
            SUPERLATIVES_COLLECTION, question_id, {"frozen_result": result.to_document()}
        )

    @staticmethod
    def clear_operation(question_id: str) -> WriteOperation:
        return WriteOperation.patch(SUPERLATIVES_COLLECTION, question_id, {"frozen_result": DELETE_FIELD})

    async def freeze(self, question: Superlative) -> FrozenResult:
        result = await self.compute(question)
        await self._repository.set_frozen_result(question.id, result)
        self.log_frozen(question, result)
        return result

    async def clear(self, question_id: str) -> None:
        await self._repository.clear_frozen_result(question_id)

    @staticmethod
    def log_frozen(question: Superlative, result: FrozenResult) -> None:
        logger.info(
            "Froze result for '%s': %s",
            question.title,
            ", ".join(winner.nominee_name for winner in result.winners) or "no votes",
        )
