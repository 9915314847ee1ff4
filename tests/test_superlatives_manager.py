"""End-to-end checks of the manager facade and repository loading."""

import pytest

from tests.conftest import make_superlative, seed, two_questions

from superlatives.constants.session_constants import ROLE_ADMIN, ROLE_GUEST
from superlatives.core.superlatives_manager import SuperlativesManager


def test_create_identity():
    identity = SuperlativesManager.create_identity(" Admin ")
    assert identity.role == ROLE_ADMIN
    assert identity.is_admin
    assert len(identity.participant_id) == 32
    assert SuperlativesManager.create_identity("guest").participant_id != identity.participant_id


def test_create_identity_unknown_role():
    with pytest.raises(ValueError):
        SuperlativesManager.create_identity("teacher")


class TestLoadQuestions:
    @pytest.mark.asyncio
    async def test_loaded_in_order_with_ids(self, manager):
        questions = [
            make_superlative("Second", ["A"], order=2),
            make_superlative("First", ["B"], order=1),
        ]
        loaded = await manager.load_questions(questions)
        assert [question.title for question in loaded] == ["First", "Second"]
        assert all(question.id for question in loaded)
        assert [question.title for question in await manager.get_questions()] == ["First", "Second"]

    @pytest.mark.asyncio
    async def test_reload_replaces_previous_set(self, manager):
        await manager.load_questions(two_questions())
        await manager.load_questions([make_superlative("Only", ["A"], question_id="solo")])
        assert [question.id for question in await manager.get_questions()] == ["solo"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "questions",
        [
            [],
            [make_superlative("  ", ["A"])],
            [make_superlative("X", ["A"], order=1), make_superlative("Y", ["B"], order=1)],
            [make_superlative("X", ["A", "A"])],
            [make_superlative("X", [" "])],
        ],
    )
    async def test_invalid_sets_are_refused(self, manager, questions):
        with pytest.raises(ValueError):
            await manager.load_questions(questions)
        assert await manager.get_questions() == []


class TestSessionFlow:
    @pytest.mark.asyncio
    async def test_full_round(self, manager, admin, guest, graduate):
        await seed(manager, start=False)
        assert await manager.get_current_question() is None

        assert await manager.start_session(admin)
        question = await manager.get_current_question()
        assert question.id == "q1"

        assert (await manager.cast_vote(guest, "q1", "A")).accepted
        assert (await manager.cast_vote(graduate, "q1", "B")).accepted
        assert (await manager.get_own_vote(guest, "q1")).nominee_name == "A"
        assert await manager.get_own_vote(admin, "q1") is None

        standing = await manager.current_standing()
        assert [row.nominee_name for row in standing.winners] == ["B"]

        snapshot = await manager.snapshot()
        assert snapshot.question_count == 2
        assert snapshot.question.id == "q1"
        assert snapshot.standing == standing

        assert await manager.reveal_winner(admin)
        assert await manager.proceed_to_final_summary(admin)
        snapshot = await manager.snapshot()
        assert snapshot.question is None
        assert snapshot.standing is None
        assert list(await manager.summary()) == ["B"]

    @pytest.mark.asyncio
    async def test_join_url(self, manager):
        assert await manager.set_join_url("http://192.168.1.4:8000/")
        assert (await manager.get_session_state()).join_url == "http://192.168.1.4:8000/"

    @pytest.mark.asyncio
    async def test_guest_vote_counts_like_any_other(self, manager):
        await seed(manager)
        voter = SuperlativesManager.create_identity(ROLE_GUEST)
        assert (await manager.cast_vote(voter, "q1", "A")).accepted
        assert (await manager.current_standing()).winners[0].score == 1
