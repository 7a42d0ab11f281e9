"""
Practice Session State Machine - free-running adaptive practice.

States: active -> completed, active -> expired. Each answer walks the
difficulty ladder one step; the session completes when the bank has no unseen
question left at the next tier, or when the user ends it.
"""

import uuid
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import select

from growora.config import Settings
from growora.engines.assessment.difficulty import Tier, next_tier
from growora.engines.assessment.errors import InvalidState, NoQuestionsAvailable
from growora.engines.assessment.question_bank import QuestionBank, is_correct
from growora.engines.assessment.scoring import practice_xp, validated_duration
from growora.engines.assessment.session_base import (
    ACTIVE,
    SessionStateMachine,
    is_past_window,
    remaining_seconds,
)
from growora.engines.progression.ledger import ProgressionLedger, SessionKind, SessionStats
from growora.kernel.models.base import utcnow
from growora.kernel.models.event_log import EventType
from growora.kernel.models.practice import FreePracticeSession, PracticeAttempt, PracticeSession
from growora.logging_config import get_logger
from growora.schemas.assessment import (
    AttemptDetail,
    CompletionSummary,
    PracticeResults,
    PracticeSessionSummary,
    PracticeStart,
    PracticeStep,
    QuestionPayload,
)

logger = get_logger(__name__)

ENTITY_TYPE = "practice_session"
EXPIRED = "expired"
COMPLETED = "completed"


class PracticeSessionMachine(SessionStateMachine):
    """
    Runs free practice sessions for one user at a time.

    Usage:
        machine = PracticeSessionMachine(session)
        started = await machine.start(user_id)
        step = await machine.submit_and_advance(user_id, started.session_id, "a", 12.5)
    """

    def __init__(
        self,
        session,
        settings: Optional[Settings] = None,
        ledger: Optional[ProgressionLedger] = None,
        question_bank: Optional[QuestionBank] = None,
    ):
        super().__init__(session, settings, ledger)
        self.question_bank = question_bank or QuestionBank(session)

    @property
    def initial_tier(self) -> Tier:
        return Tier.from_label(self.settings.practice_initial_tier)

    async def start(self, user_id: uuid.UUID, duration: Optional[int] = None) -> PracticeStart:
        """Create a session at the initial tier and serve its first question."""
        minutes = validated_duration(
            duration,
            self.settings.practice_default_duration,
            self.settings.practice_min_duration,
            self.settings.practice_max_duration,
        )
        tier = self.initial_tier

        async with self.unit_of_work():
            question = await self.question_bank.pick_initial(tier)
            now = utcnow()
            practice = FreePracticeSession(
                user_id=user_id,
                start_time=now,
                end_time=now + timedelta(minutes=minutes),
                duration=minutes,
                current_question_index=0,
                current_difficulty=tier.value,
                total_questions=0,
                correct_answers=0,
                status=ACTIVE,
                xp_earned=0,
                attempts=[PracticeAttempt(position=0, question_id=question.id, question=question)],
            )
            self.session.add(practice)
            await self.session.flush()
            await self.event_store.log(
                event_type=EventType.PRACTICE_STARTED,
                entity_type=ENTITY_TYPE,
                entity_id=practice.id,
                user_id=user_id,
                payload={"duration": minutes, "initial_tier": tier.value},
            )

        logger.info(
            "Practice session started",
            extra={"session_id": str(practice.id), "owner_id": str(user_id), "duration": minutes},
        )
        return PracticeStart(
            session_id=practice.id,
            question=QuestionPayload.from_model(question),
            time_remaining=minutes * 60,
            current_score=0,
            question_number=1,
            current_difficulty=tier.value,
        )

    async def submit_and_advance(
        self,
        user_id: uuid.UUID,
        session_id: uuid.UUID,
        answer: str,
        time_taken: Optional[float] = None,
    ) -> PracticeStep:
        """Record the answer to the outstanding question and serve the next one."""
        async with self.unit_of_work(session_id):
            practice = await self._load_owned(FreePracticeSession, user_id, session_id)
            await self._ensure_active(practice, EXPIRED, EventType.PRACTICE_EXPIRED, ENTITY_TYPE)

            attempt = practice.current_attempt
            if attempt is None or attempt.answered:
                raise InvalidState(session_id, practice.status, expected="question outstanding")

            question = attempt.question
            correct = is_correct(question, answer)
            now = utcnow()
            attempt.user_answer = (answer or "").strip().lower()
            attempt.is_correct = correct
            attempt.time_taken = time_taken
            attempt.answered_at = now
            practice.total_questions += 1
            if correct:
                practice.correct_answers += 1

            await self.question_bank.record_outcome(question.id, correct)

            tier = next_tier(Tier.from_label(practice.current_difficulty), correct)
            practice.current_difficulty = tier.value

            try:
                upcoming = await self.question_bank.pick_next(tier, practice.served_question_ids())
            except NoQuestionsAvailable:
                summary = await self._complete(practice, reason="exhausted")
                step = PracticeStep(
                    session_id=practice.id,
                    is_correct=correct,
                    correct_answer=question.answer,
                    completed=True,
                    time_remaining=0,
                    current_score=practice.correct_answers,
                    question_number=practice.total_questions,
                    current_difficulty=tier.value,
                    summary=summary,
                )
            else:
                practice.attempts.append(
                    PracticeAttempt(
                        position=len(practice.attempts),
                        question_id=upcoming.id,
                        question=upcoming,
                    )
                )
                practice.current_question_index = len(practice.attempts) - 1
                step = PracticeStep(
                    session_id=practice.id,
                    is_correct=correct,
                    correct_answer=question.answer,
                    completed=False,
                    next_question=QuestionPayload.from_model(upcoming),
                    time_remaining=remaining_seconds(practice.end_time, now),
                    current_score=practice.correct_answers,
                    question_number=practice.total_questions + 1,
                    current_difficulty=tier.value,
                )

        return step

    async def end(self, user_id: uuid.UUID, session_id: uuid.UUID) -> CompletionSummary:
        """Force completion regardless of remaining questions."""
        async with self.unit_of_work(session_id):
            practice = await self._load_owned(FreePracticeSession, user_id, session_id)
            await self._ensure_active(practice, EXPIRED, EventType.PRACTICE_EXPIRED, ENTITY_TYPE)
            summary = await self._complete(practice, reason="ended")
        return summary

    async def _complete(self, practice: FreePracticeSession, reason: str) -> CompletionSummary:
        """The only place practice XP is awarded."""
        practice.status = COMPLETED
        practice.completed_at = utcnow()
        practice.xp_earned = practice_xp(practice.correct_answers, self.settings.practice_xp_per_correct)

        outcome = await self.ledger.apply_completion(
            practice.user_id,
            practice.xp_earned,
            SessionKind.PRACTICE,
            SessionStats(
                session_id=practice.id,
                correct_answers=practice.correct_answers,
                total_questions=practice.total_questions,
                accuracy=practice.accuracy,
            ),
        )
        await self.event_store.log(
            event_type=EventType.PRACTICE_COMPLETED,
            entity_type=ENTITY_TYPE,
            entity_id=practice.id,
            user_id=practice.user_id,
            payload={
                "reason": reason,
                "correct_answers": practice.correct_answers,
                "total_questions": practice.total_questions,
                "xp_earned": practice.xp_earned,
            },
        )
        logger.info(
            "Practice session completed",
            extra={
                "session_id": str(practice.id),
                "reason": reason,
                "score": practice.correct_answers,
                "total": practice.total_questions,
                "xp_earned": practice.xp_earned,
            },
        )
        return CompletionSummary(
            session_id=practice.id,
            score=practice.correct_answers,
            total_questions=practice.total_questions,
            xp_earned=practice.xp_earned,
            accuracy=round(practice.accuracy, 2),
            new_badges=outcome.new_badges,
            total_xp=outcome.total_xp,
            level=outcome.level,
            level_up=outcome.level_up,
        )

    async def get_results(self, user_id: uuid.UUID, session_id: uuid.UUID) -> PracticeResults:
        """
        Read-only summary counted from answered attempts only. Never awards;
        an overdue active session is flipped to expired but no error is raised.
        """
        practice = await self._load_owned(FreePracticeSession, user_id, session_id)
        if practice.status == ACTIVE and is_past_window(practice.end_time):
            await self._flip_expired(practice, EXPIRED, EventType.PRACTICE_EXPIRED, ENTITY_TYPE)

        answered = [a for a in practice.attempts if a.answered]
        correct = sum(1 for a in answered if a.is_correct)
        total = len(answered)
        progress = await self.ledger.find_progress(user_id)

        return PracticeResults(
            session_id=practice.id,
            mode=practice.mode,
            status=practice.status,
            start_time=practice.start_time,
            end_time=practice.end_time,
            duration=practice.duration,
            correct_answers=correct,
            total_questions=total,
            accuracy=round(correct / total * 100, 2) if total else 0.0,
            xp_earned=practice.xp_earned,
            questions=[AttemptDetail.from_model(a) for a in practice.attempts],
            total_xp=progress.experience_points if progress else 0,
            level=progress.current_level if progress else 1,
        )

    async def list_sessions(self, user_id: uuid.UUID, limit: int = 10) -> List[PracticeSessionSummary]:
        """Newest first, both practice and sectional modes."""
        result = await self.session.execute(
            select(PracticeSession)
            .where(PracticeSession.user_id == user_id)
            .order_by(PracticeSession.created_at.desc())
            .limit(limit)
        )
        return [
            PracticeSessionSummary(
                session_id=s.id,
                mode=s.mode,
                status=s.status,
                start_time=s.start_time,
                duration=s.duration,
                total_questions=s.total_questions,
                correct_answers=s.correct_answers,
                accuracy=round(s.accuracy, 2),
                xp_earned=s.xp_earned,
            )
            for s in result.scalars().all()
        ]
