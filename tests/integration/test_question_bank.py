"""Integration tests for question selection and attempt statistics."""

import uuid

import pytest

from growora.engines.assessment.difficulty import Tier
from growora.engines.assessment.errors import InsufficientQuestions, NoQuestionsAvailable
from growora.engines.assessment.question_bank import QuestionBank, is_correct
from growora.kernel.models.question import Question


class TestSelection:
    @pytest.mark.asyncio
    async def test_pick_initial_prefers_newest(self, db_session, make_questions):
        older, newer = await make_questions("easy", count=2)
        bank = QuestionBank(db_session)

        picked = await bank.pick_initial(Tier.EASY)
        assert picked.id == newer.id

    @pytest.mark.asyncio
    async def test_pick_next_skips_excluded(self, db_session, make_questions):
        first, second, third = await make_questions("moderate", count=3)
        bank = QuestionBank(db_session)

        picked = await bank.pick_next(Tier.MODERATE, [third.id])
        assert picked.id == second.id

    @pytest.mark.asyncio
    async def test_inactive_and_other_tiers_are_ignored(self, db_session, make_questions):
        await make_questions("easy", count=2)
        await make_questions("very_easy", count=1, is_active=False)
        bank = QuestionBank(db_session)

        with pytest.raises(NoQuestionsAvailable) as exc_info:
            await bank.pick_initial(Tier.VERY_EASY)
        assert exc_info.value.difficulty == "very_easy"

    @pytest.mark.asyncio
    async def test_all_excluded_raises(self, db_session, make_questions):
        questions = await make_questions("difficult", count=2)
        bank = QuestionBank(db_session)

        with pytest.raises(NoQuestionsAvailable) as exc_info:
            await bank.pick_next(Tier.DIFFICULT, [q.id for q in questions])
        assert exc_info.value.excluded == 2

    @pytest.mark.asyncio
    async def test_tag_filter_is_substring_and_case_insensitive(self, db_session, make_questions):
        await make_questions("easy", count=1, tags="geometry")
        tagged, = await make_questions("easy", count=1, tags="Algebra,linear")
        await make_questions("easy", count=1, tags="")
        bank = QuestionBank(db_session)

        picked = await bank.pick_initial(Tier.EASY, tag="algebra")
        assert picked.id == tagged.id
        assert await bank.count_active(Tier.EASY, tag="algebra") == 1
        assert await bank.count_active(Tier.EASY) == 3

    @pytest.mark.asyncio
    async def test_pick_block_returns_exact_count_newest_first(self, db_session, make_questions):
        questions = await make_questions("moderate", count=12)
        bank = QuestionBank(db_session)

        block = await bank.pick_block(Tier.MODERATE, 10)
        assert [q.id for q in block] == [q.id for q in reversed(questions)][:10]

    @pytest.mark.asyncio
    async def test_pick_block_insufficient(self, db_session, make_questions):
        await make_questions("moderate", count=7)
        bank = QuestionBank(db_session)

        with pytest.raises(InsufficientQuestions) as exc_info:
            await bank.pick_block(Tier.MODERATE, 10)
        assert exc_info.value.found == 7
        assert exc_info.value.needed == 10


class TestCorrectness:
    @pytest.mark.asyncio
    async def test_comparison_ignores_case_and_whitespace(self, db_session, make_questions):
        question, = await make_questions("easy", answer="b")
        assert is_correct(question, "B") is True
        assert is_correct(question, "  b ") is True
        assert is_correct(question, "c") is False
        assert is_correct(question, None) is False


class TestRecordOutcome:
    @pytest.mark.asyncio
    async def test_counters_and_success_rate(self, db_session, make_questions):
        question, = await make_questions("easy")
        bank = QuestionBank(db_session)

        await bank.record_outcome(question.id, True)
        await bank.record_outcome(question.id, False)
        await bank.record_outcome(question.id, True)
        await db_session.commit()

        refreshed = await db_session.get(Question, question.id)
        await db_session.refresh(refreshed)
        assert refreshed.total_attempts == 3
        assert refreshed.correct_attempts == 2
        assert refreshed.success_rate == pytest.approx(200 / 3)

    @pytest.mark.asyncio
    async def test_unknown_question_is_a_no_op(self, db_session, make_questions):
        bank = QuestionBank(db_session)
        await bank.record_outcome(uuid.uuid4(), True)
        await db_session.commit()
