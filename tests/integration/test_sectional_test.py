"""Integration tests for the sectional test state machine."""

import logging
import uuid
from datetime import timedelta
from typing import List

import pytest
from sqlalchemy import func, select

from growora.engines.assessment.errors import (
    InsufficientQuestions,
    InvalidState,
    NoMoreQuestionsInSection,
    SessionExpired,
)
from growora.engines.assessment.sectional_test import SectionalTestMachine, section_key
from growora.engines.progression.ledger import ProgressionLedger
from growora.kernel.models.base import utcnow
from growora.kernel.models.practice import PracticeSession, SectionalTestSession
from growora.kernel.models.question import Question


async def _answer_section(machine, user_id, session_id, pattern: List[bool]):
    """Answer one question per entry; every seeded question's correct option is 'a'."""
    steps = []
    for correct in pattern:
        steps.append(await machine.submit_and_advance(user_id, session_id, "a" if correct else "b", 5.0))
    return steps


class TestSectionalStart:
    @pytest.mark.asyncio
    async def test_start_opens_first_section(self, db_session, make_questions, user_id):
        questions = await make_questions("moderate", count=12)
        machine = SectionalTestMachine(db_session)

        started = await machine.start(user_id, "algebra", "Moderate")

        assert started.section_id == "algebra"
        assert started.section.section_key == section_key("algebra", 0) == "algebra:0"
        assert started.section.difficulty == "moderate"
        assert started.question.id == questions[-1].id
        test = await db_session.get(SectionalTestSession, started.session_id)
        assert test.mode == "sectional"
        assert len(test.sections[0].question_ids) == 10

    @pytest.mark.asyncio
    async def test_start_with_short_bank_persists_nothing(self, db_session, make_questions, user_id):
        await make_questions("difficult", count=9)
        machine = SectionalTestMachine(db_session)

        with pytest.raises(InsufficientQuestions) as exc_info:
            await machine.start(user_id, "algebra", "difficult")
        assert exc_info.value.found == 9

        count = await db_session.execute(select(func.count(PracticeSession.id)))
        assert count.scalar() == 0

    @pytest.mark.asyncio
    async def test_unknown_difficulty_is_rejected(self, db_session, make_questions, user_id):
        machine = SectionalTestMachine(db_session)
        with pytest.raises(ValueError):
            await machine.start(user_id, "algebra", "brutal")


class TestSectionBoundary:
    @pytest.mark.asyncio
    async def test_section_completes_at_block_size_and_passes_at_forty_percent(
        self, db_session, make_questions, user_id
    ):
        await make_questions("easy", count=10)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "geometry", "easy")

        steps = await _answer_section(machine, user_id, started.session_id, [True] * 4 + [False] * 6)

        assert all(not s.section_completed and s.next_question is not None for s in steps[:9])
        final = steps[-1]
        assert final.section_completed is True
        assert final.next_question is None
        assert final.section.total == 10
        assert final.section.correct == 4
        assert final.section.passed is True

    @pytest.mark.asyncio
    async def test_three_of_ten_fails(self, db_session, make_questions, user_id):
        await make_questions("easy", count=10)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "geometry", "easy")

        steps = await _answer_section(machine, user_id, started.session_id, [True] * 3 + [False] * 7)

        assert steps[-1].section.passed is False

    @pytest.mark.asyncio
    async def test_questions_follow_the_prefetched_block(self, db_session, make_questions, user_id):
        questions = await make_questions("easy", count=10)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "geometry", "easy")

        steps = await _answer_section(machine, user_id, started.session_id, [False] * 3)

        served = [started.question.id] + [s.next_question.id for s in steps]
        assert served == [q.id for q in reversed(questions)][:4]

    @pytest.mark.asyncio
    async def test_submit_after_section_completed_is_invalid(self, db_session, make_questions, user_id):
        await make_questions("easy", count=10)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "geometry", "easy")
        await _answer_section(machine, user_id, started.session_id, [True] * 10)

        with pytest.raises(InvalidState):
            await machine.submit_and_advance(user_id, started.session_id, "a")


    @pytest.mark.asyncio
    async def test_truncated_block_raises_and_rolls_back(
        self, db_session, session_maker, make_questions, user_id, caplog
    ):
        await make_questions("easy", count=10)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "geometry", "easy")
        await _answer_section(machine, user_id, started.session_id, [True, True])
        test = await db_session.get(SectionalTestSession, started.session_id)
        test.sections[0].question_ids = test.sections[0].question_ids[:3]
        await db_session.commit()

        with caplog.at_level(logging.ERROR, logger="growora.engines.assessment.sectional_test"):
            with pytest.raises(NoMoreQuestionsInSection) as exc_info:
                await machine.submit_and_advance(user_id, started.session_id, "a", 5.0)

        error = exc_info.value
        assert error.answered == 3
        assert error.needed == 10
        assert error.context["section_index"] == 0
        assert any(r.levelno == logging.ERROR for r in caplog.records)

        async with session_maker() as check:
            stored = await check.get(SectionalTestSession, started.session_id)
            assert stored.total_questions == 2
            assert stored.sections[0].total == 2
            assert sum(1 for a in stored.attempts if a.answered) == 2
            attempts = await check.execute(select(func.sum(Question.total_attempts)))
            assert attempts.scalar() == 2

    @pytest.mark.asyncio
    async def test_missing_block_question_raises(self, db_session, make_questions, user_id):
        await make_questions("easy", count=10)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "geometry", "easy")
        test = await db_session.get(SectionalTestSession, started.session_id)
        ids = list(test.sections[0].question_ids)
        ids[1] = str(uuid.uuid4())
        test.sections[0].question_ids = ids
        await db_session.commit()

        with pytest.raises(NoMoreQuestionsInSection) as exc_info:
            await machine.submit_and_advance(user_id, started.session_id, "a", 5.0)

        assert exc_info.value.answered == 1
        assert exc_info.value.needed == 10

class TestNextSection:
    @pytest.mark.asyncio
    async def test_next_section_excludes_served_questions(self, db_session, make_questions, user_id):
        await make_questions("easy", count=10)
        await make_questions("moderate", count=20)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "mixed", "moderate")
        await _answer_section(machine, user_id, started.session_id, [True] * 10)

        second = await machine.start_next_section(user_id, started.session_id, "mixed", "moderate", 1)

        test = await db_session.get(SectionalTestSession, started.session_id)
        assert test.section_id == "mixed"
        first_block = set(test.sections[0].question_ids)
        second_block = set(test.sections[1].question_ids)
        assert second.section.section_key == "mixed:1"
        assert len(second_block) == 10
        assert first_block.isdisjoint(second_block)

    @pytest.mark.asyncio
    async def test_next_section_while_one_is_running_is_invalid(self, db_session, make_questions, user_id):
        await make_questions("easy", count=20)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "mixed", "easy")
        await _answer_section(machine, user_id, started.session_id, [True] * 3)

        with pytest.raises(InvalidState):
            await machine.start_next_section(user_id, started.session_id, "mixed", "easy", 1)

    @pytest.mark.asyncio
    async def test_reused_section_index_is_invalid(self, db_session, make_questions, user_id):
        await make_questions("easy", count=20)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "mixed", "easy")
        await _answer_section(machine, user_id, started.session_id, [True] * 10)

        with pytest.raises(InvalidState):
            await machine.start_next_section(user_id, started.session_id, "mixed", "easy", 0)


    @pytest.mark.asyncio
    async def test_next_section_keeps_the_opening_section_id(self, db_session, make_questions, user_id):
        await make_questions("easy", count=20)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "algebra", "easy")
        await _answer_section(machine, user_id, started.session_id, [True] * 10)

        second = await machine.start_next_section(user_id, started.session_id, "geometry", "easy", 1)
        results = await machine.get_results(user_id, started.session_id)

        assert second.section_id == "geometry"
        assert second.section.section_key == "geometry:1"
        assert results.section_id == "algebra"
        assert [s.section_key for s in results.sections] == ["algebra:0", "geometry:1"]

class TestSectionalEnd:
    @pytest.mark.asyncio
    async def test_end_awards_fifty_per_passed_section(self, db_session, make_questions, user_id):
        await make_questions("easy", count=30)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "mixed", "easy")
        await _answer_section(machine, user_id, started.session_id, [True] * 5 + [False] * 5)
        await machine.start_next_section(user_id, started.session_id, "mixed", "easy", 1)
        await _answer_section(machine, user_id, started.session_id, [False] * 10)
        await machine.start_next_section(user_id, started.session_id, "mixed", "easy", 2)
        await _answer_section(machine, user_id, started.session_id, [True] * 4)

        completion = await machine.end(user_id, started.session_id)

        assert completion.passed_sections == 1
        assert completion.xp_earned == 50
        assert completion.score == 9
        assert completion.total_questions == 24
        assert [s.completed for s in completion.sections] == [True, True, False]

        progress = await ProgressionLedger(db_session).find_progress(user_id)
        assert progress.sectional_tests_completed == 1
        assert progress.xp_from_sectional == 50
        assert progress.practice_sessions_completed == 0
        assert "practice-first" in {b.badge_id for b in progress.badges}

        with pytest.raises(InvalidState):
            await machine.end(user_id, started.session_id)

    @pytest.mark.asyncio
    async def test_results_report_sections(self, db_session, make_questions, user_id):
        await make_questions("easy", count=10)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "geometry", "easy")
        await _answer_section(machine, user_id, started.session_id, [True, False, True])

        results = await machine.get_results(user_id, started.session_id)

        assert results.section_id == "geometry"
        assert results.total_questions == 3
        assert results.correct_answers == 2
        assert results.passed_sections == 0
        assert results.sections[0].total == 3
        assert len(results.questions) == 4


class TestSectionalExpiry:
    @pytest.mark.asyncio
    async def test_submit_after_window(self, db_session, make_questions, user_id):
        await make_questions("easy", count=10)
        machine = SectionalTestMachine(db_session)
        started = await machine.start(user_id, "geometry", "easy")
        test = await db_session.get(SectionalTestSession, started.session_id)
        test.end_time = utcnow() - timedelta(minutes=1)
        await db_session.commit()

        with pytest.raises(SessionExpired):
            await machine.submit_and_advance(user_id, started.session_id, "a")

        assert test.status == "expired"
        assert await ProgressionLedger(db_session).find_progress(user_id) is None
