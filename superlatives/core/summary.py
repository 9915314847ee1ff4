"""End-of-session summary of who won which superlative."""

from __future__ import annotations

from typing import Iterable

from superlatives.core.models import Superlative, SummaryEntry


def build_summary(questions: Iterable[Superlative]) -> dict[str, SummaryEntry]:
    """Group frozen winners by nominee name, in question order.

    Every nominee in a tie is credited. Questions that were never revealed
    contribute nothing.
    """
    summary: dict[str, SummaryEntry] = {}
    for question in questions:
        if question.frozen_result is None:
            continue
        for winner in question.frozen_result.winners:
            entry = summary.get(winner.nominee_name)
            if entry is None:
                entry = SummaryEntry(image_ref=winner.image_ref)
                summary[winner.nominee_name] = entry
            entry.titles.append(question.title)
    return summary
