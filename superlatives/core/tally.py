"""Tally engine: collapses the votes on one superlative into a standing.

Scores are uniform (one point per vote, whatever the voter's role). Ties on
score are broken by the number of votes from graduating participants, then by
whichever nominee received its first vote earliest. Nominees still level on
all three keys share the win.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from superlatives.constants.session_constants import ROLE_GRADUATING
from superlatives.core.models import NomineeStanding, Standing, Superlative, Vote

_LATEST = datetime.max.replace(tzinfo=timezone.utc)


def _cast_order_key(vote: Vote) -> tuple[bool, datetime]:
    # Votes whose timestamp has not been resolved yet count as the most recent.
    if vote.cast_at is None:
        return (True, _LATEST)
    return (False, vote.cast_at)


def _rank_key(row: NomineeStanding) -> tuple[int, int, bool, datetime]:
    first = row.first_vote_at
    return (
        -row.score,
        -row.graduating_votes,
        first is None,
        first if first is not None else _LATEST,
    )


def compute_standing(question: Superlative, votes: Iterable[Vote]) -> Standing | None:
    """Rank the nominees of ``question`` by ``votes``.

    Returns ``None`` while no nominee has a vote. Votes for names that are not
    on the question are ignored.
    """
    rows: dict[str, NomineeStanding] = {
        nominee.name: NomineeStanding(nominee_name=nominee.name, image_ref=nominee.image_ref)
        for nominee in question.nominees
    }

    for vote in sorted(votes, key=_cast_order_key):
        row = rows.get(vote.nominee_name)
        if row is None:
            continue
        row.score += 1
        if vote.participant_role == ROLE_GRADUATING:
            row.graduating_votes += 1
        if row.first_vote_at is None:
            row.first_vote_at = vote.cast_at

    ranked = sorted((row for row in rows.values() if row.score > 0), key=_rank_key)
    if not ranked:
        return None

    leader_key = _rank_key(ranked[0])
    winners = [row for row in ranked if _rank_key(row) == leader_key]
    return Standing(ranked=ranked, winners=winners)
