"""
Question Bank Accessor - active-question lookup by tier and exclusion set,
plus best-effort per-question attempt statistics.
"""

import uuid
from typing import Iterable, List, Optional

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from growora.engines.assessment.difficulty import Tier
from growora.engines.assessment.errors import InsufficientQuestions, NoQuestionsAvailable
from growora.kernel.models.question import Question
from growora.logging_config import get_logger

logger = get_logger(__name__)


def is_correct(question: Question, chosen: Optional[str]) -> bool:
    """Compare a chosen option label with the stored answer, ignoring case and whitespace."""
    if chosen is None:
        return False
    return chosen.strip().lower() == question.answer.strip().lower()


class QuestionBank:
    """
    Read access to the shared question store.

    Selection always prefers the most recently created question; statistics
    updates never fail the caller.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    is_correct = staticmethod(is_correct)

    def _active_at(self, tier: Tier, exclude_ids: Iterable[uuid.UUID] = (), tag: Optional[str] = None) -> Select:
        query = select(Question).where(
            Question.is_active.is_(True),
            Question.difficulty == Tier(tier).value,
        )
        excluded = list(exclude_ids)
        if excluded:
            query = query.where(Question.id.not_in(excluded))
        if tag:
            query = query.where(Question.tags.ilike(f"%{tag}%"))
        return query.order_by(Question.created_at.desc(), Question.id)

    async def pick_initial(self, tier: Tier, tag: Optional[str] = None) -> Question:
        """Newest active question at ``tier``."""
        return await self.pick_next(tier, (), tag=tag)

    async def pick_next(
        self,
        tier: Tier,
        exclude_ids: Iterable[uuid.UUID],
        tag: Optional[str] = None,
    ) -> Question:
        """Newest active question at ``tier`` not already served in the session."""
        excluded = list(exclude_ids)
        result = await self.session.execute(self._active_at(tier, excluded, tag).limit(1))
        question = result.scalar_one_or_none()
        if question is None:
            raise NoQuestionsAvailable(Tier(tier).value, tag=tag, excluded=len(excluded))
        return question

    async def pick_block(
        self,
        tier: Tier,
        count: int,
        exclude_ids: Iterable[uuid.UUID] = (),
        tag: Optional[str] = None,
    ) -> List[Question]:
        """Exactly ``count`` active questions at ``tier``, newest first."""
        result = await self.session.execute(self._active_at(tier, exclude_ids, tag).limit(count))
        questions = list(result.scalars().all())
        if len(questions) < count:
            raise InsufficientQuestions(Tier(tier).value, found=len(questions), needed=count)
        return questions

    async def get(self, question_id: uuid.UUID) -> Optional[Question]:
        return await self.session.get(Question, question_id)

    async def count_active(self, tier: Tier, tag: Optional[str] = None) -> int:
        query = select(func.count()).select_from(self._active_at(tier, (), tag).order_by(None).subquery())
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def record_outcome(self, question_id: uuid.UUID, correct: bool) -> None:
        """
        Increment attempt counters and recompute the success rate in one UPDATE.

        Runs inside a SAVEPOINT so a failure rolls back only this statement;
        the failure is logged and the session flow continues.
        """
        increment = 1 if correct else 0
        stmt = (
            update(Question)
            .where(Question.id == question_id)
            .values(
                total_attempts=Question.total_attempts + 1,
                correct_attempts=Question.correct_attempts + increment,
                success_rate=(Question.correct_attempts + increment) * 100.0 / (Question.total_attempts + 1),
            )
            .execution_options(synchronize_session="fetch")
        )
        # Pending session changes flush here so their errors are not swallowed below
        await self.session.flush()
        try:
            async with self.session.begin_nested():
                await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.warning(
                "Question statistics update failed for %s: %s",
                question_id,
                exc,
                extra={"question_id": str(question_id), "correct": correct},
            )
