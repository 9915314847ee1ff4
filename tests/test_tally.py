"""Tests for the tally engine."""

from tests.conftest import at, make_superlative, make_vote

from superlatives.constants.session_constants import ROLE_GRADUATING
from superlatives.core.tally import compute_standing


def winner_names(standing):
    return [row.nominee_name for row in standing.winners]


class TestComputeStanding:
    def setup_method(self):
        self.question = make_superlative("Best Laugh", ["A", "B", "C"], question_id="q1")

    def test_no_votes_is_none(self):
        assert compute_standing(self.question, []) is None

    def test_question_without_nominees_is_none(self):
        empty = make_superlative("Empty", [], question_id="q1")
        assert compute_standing(empty, [make_vote("A", "p1", at(1))]) is None

    def test_majority_wins(self):
        """A, A, B with no graduating votes → A with 2, no tie."""
        votes = [
            make_vote("A", "p1", at(1)),
            make_vote("A", "p2", at(2)),
            make_vote("B", "p3", at(3)),
        ]
        standing = compute_standing(self.question, votes)
        assert winner_names(standing) == ["A"]
        assert standing.winners[0].score == 2
        assert not standing.is_tie

    def test_zero_vote_nominees_excluded(self):
        votes = [make_vote("A", "p1", at(1)), make_vote("B", "p2", at(2))]
        standing = compute_standing(self.question, votes)
        assert [row.nominee_name for row in standing.ranked] == ["A", "B"]

    def test_graduating_vote_breaks_score_tie(self):
        """Level on score; the graduating voter's choice B wins."""
        votes = [
            make_vote("A", "p1", at(1)),
            make_vote("B", "p2", at(2), role=ROLE_GRADUATING),
        ]
        standing = compute_standing(self.question, votes)
        assert winner_names(standing) == ["B"]
        assert standing.winners[0].graduating_votes == 1
        assert not standing.is_tie

    def test_graduating_votes_carry_no_extra_weight(self):
        votes = [
            make_vote("B", "p1", at(1), role=ROLE_GRADUATING),
            make_vote("A", "p2", at(2)),
            make_vote("A", "p3", at(3)),
        ]
        standing = compute_standing(self.question, votes)
        assert winner_names(standing) == ["A"]
        assert [row.score for row in standing.ranked] == [2, 1]

    def test_earliest_first_vote_breaks_remaining_tie(self):
        votes = [make_vote("B", "p1", at(1)), make_vote("A", "p2", at(2))]
        standing = compute_standing(self.question, votes)
        assert winner_names(standing) == ["B"]
        assert standing.winners[0].first_vote_at == at(1)

    def test_first_vote_time_is_the_earliest_vote(self):
        votes = [make_vote("A", "p2", at(5)), make_vote("A", "p1", at(2))]
        standing = compute_standing(self.question, votes)
        assert standing.winners[0].first_vote_at == at(2)

    def test_identical_keys_produce_a_tie(self):
        votes = [make_vote("B", "p1", at(1)), make_vote("A", "p2", at(1))]
        standing = compute_standing(self.question, votes)
        assert standing.is_tie
        assert winner_names(standing) == ["A", "B"]

    def test_unresolved_timestamp_sorts_last(self):
        votes = [make_vote("A", "p1", None), make_vote("B", "p2", at(9))]
        standing = compute_standing(self.question, votes)
        assert winner_names(standing) == ["B"]
        assert standing.ranked[1].first_vote_at is None

    def test_votes_for_unknown_nominees_are_ignored(self):
        votes = [make_vote("Z", "p1", at(1)), make_vote("C", "p2", at(2))]
        standing = compute_standing(self.question, votes)
        assert winner_names(standing) == ["C"]
        assert len(standing.ranked) == 1

    def test_input_order_does_not_matter(self):
        votes = [
            make_vote("C", "p3", at(3)),
            make_vote("A", "p1", at(1)),
            make_vote("B", "p2", at(2), role=ROLE_GRADUATING),
            make_vote("C", "p4", at(4)),
        ]
        forward = compute_standing(self.question, votes)
        backward = compute_standing(self.question, list(reversed(votes)))
        assert forward == backward
        assert winner_names(forward) == ["C"]

    def test_repeatable(self):
        votes = [make_vote("A", "p1", at(1)), make_vote("B", "p2", at(1))]
        assert compute_standing(self.question, votes) == compute_standing(self.question, votes)

    def test_winners_hold_the_maximum_score(self):
        votes = [
            make_vote("A", "p1", at(1)),
            make_vote("B", "p2", at(2)),
            make_vote("B", "p3", at(3)),
            make_vote("C", "p4", at(4), role=ROLE_GRADUATING),
        ]
        standing = compute_standing(self.question, votes)
        top = max(row.score for row in standing.ranked)
        assert all(row.score == top for row in standing.winners)
        assert winner_names(standing) == ["B"]
