"""
Adaptive Exam Session Tracker - local bookkeeping around an external
ability-scoring oracle.

The oracle estimates ability and picks questions; this tracker owns the
session lifecycle (active -> completed | abandoned | time_expired), the
response log and the derived time and difficulty statistics. Exams are
addressed by the oracle's session id.
"""

import copy
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from growora.config import Settings
from growora.engines.assessment.difficulty import Tier, tier_from_numeric
from growora.engines.assessment.errors import (
    DuplicateActiveSession,
    SessionExpired,
    SessionNotFound,
)
from growora.engines.assessment.oracle_client import OracleClient
from growora.engines.assessment.scoring import adaptive_exam_xp, validated_duration
from growora.engines.assessment.session_base import ACTIVE, SessionStateMachine, remaining_seconds
from growora.engines.progression.ledger import (
    ProgressionLedger,
    SessionKind,
    SessionStats,
    badge_award,
)
from growora.kernel.models.adaptive_exam import (
    AdaptiveExamResponse,
    AdaptiveExamSession,
    empty_breakdown,
)
from growora.kernel.models.base import utcnow
from growora.kernel.models.event_log import EventType
from growora.logging_config import get_logger
from growora.schemas.adaptive_exam import (
    AbandonResult,
    ActiveExamInfo,
    AdaptiveAnswerResult,
    AdaptiveExamAnalytics,
    AdaptiveExamHistory,
    AdaptiveExamResults,
    AdaptiveExamStart,
    AdaptiveExamSummary,
    AdaptiveProgress,
    AdaptiveResponseDetail,
    AdaptiveUserStats,
    OracleQuestion,
    RecentExam,
    ResumeResult,
    TimeStats,
)

logger = get_logger(__name__)

ENTITY_TYPE = "adaptive_exam"
COMPLETED = "completed"
ABANDONED = "abandoned"
TIME_EXPIRED = "time_expired"
HISTORY_STATUSES = (ACTIVE, COMPLETED, ABANDONED, TIME_EXPIRED)
DEFAULT_HISTORY_STATUSES = (COMPLETED, TIME_EXPIRED)


def exam_deadline(exam: AdaptiveExamSession) -> datetime:
    return exam.start_time + timedelta(minutes=exam.duration)


def _bucket_for(response: AdaptiveExamResponse) -> Optional[str]:
    """Difficulty bucket from the numeric class, falling back to the label."""
    if response.difficulty_numeric is not None:
        return tier_from_numeric(response.difficulty_numeric).value
    if response.difficulty:
        try:
            return Tier.from_label(response.difficulty).value
        except ValueError:
            return None
    return None


def recompute_statistics(exam: AdaptiveExamSession, latest: AdaptiveExamResponse) -> None:
    """
    Recompute totals and time statistics over every response so far, and
    update the one difficulty bucket matching ``latest``.
    """
    responses = exam.responses
    total = len(responses)
    correct = sum(1 for r in responses if r.is_correct)
    exam.total_questions = total
    exam.correct_answers = correct
    exam.wrong_answers = total - correct
    exam.accuracy = correct / total * 100 if total else 0.0

    times = [r.time_spent for r in responses]
    exam.total_time_seconds = float(sum(times))
    exam.average_time_per_question = exam.total_time_seconds / total if total else 0.0
    exam.fastest_answer = min(times) if times else None
    exam.slowest_answer = max(times) if times else None

    bucket = _bucket_for(latest)
    if bucket is None:
        return
    # Reassign a copy so the JSON column is flushed
    breakdown = copy.deepcopy(exam.difficulty_breakdown or empty_breakdown())
    stats = breakdown.setdefault(bucket, {"attempted": 0, "correct": 0, "accuracy": 0.0})
    stats["attempted"] += 1
    if latest.is_correct:
        stats["correct"] += 1
    stats["accuracy"] = stats["correct"] / stats["attempted"] * 100
    exam.difficulty_breakdown = breakdown


class AdaptiveExamTracker(SessionStateMachine):
    """
    Tracks adaptive exams for users; at most one active exam per user.

    Usage:
        tracker = AdaptiveExamTracker(session, oracle=OracleClient())
        started = await tracker.start(user_id, duration=30)
        result = await tracker.submit_answer(
            user_id, started.session_id, started.question.id, "b", 12.0
        )
    """

    def __init__(
        self,
        session,
        settings: Optional[Settings] = None,
        ledger: Optional[ProgressionLedger] = None,
        oracle: Optional[OracleClient] = None,
    ):
        super().__init__(session, settings, ledger)
        self.oracle = oracle or OracleClient(settings=self.settings)

    async def _find(self, user_id: uuid.UUID, session_id: str) -> AdaptiveExamSession:
        result = await self.session.execute(
            select(AdaptiveExamSession).where(AdaptiveExamSession.session_id == session_id)
        )
        exam = result.scalar_one_or_none()
        if exam is None or exam.user_id != user_id:
            raise SessionNotFound(session_id)
        return exam

    async def _find_active(self, user_id: uuid.UUID, session_id: str) -> AdaptiveExamSession:
        exam = await self._find(user_id, session_id)
        if exam.status != ACTIVE:
            raise SessionNotFound(session_id)
        return exam

    async def _active_for(self, user_id: uuid.UUID) -> Optional[AdaptiveExamSession]:
        result = await self.session.execute(
            select(AdaptiveExamSession).where(
                AdaptiveExamSession.user_id == user_id,
                AdaptiveExamSession.status == ACTIVE,
            )
        )
        return result.scalars().first()

    async def _expire_if_overdue(self, exam: AdaptiveExamSession, now: Optional[datetime] = None) -> bool:
        """Flip an active exam past its time window to time_expired and commit. No XP."""
        now = now or utcnow()
        if exam.status != ACTIVE or now <= exam_deadline(exam):
            return False
        exam.end_time = now
        exam.current_question = None
        await self._flip_expired(exam, TIME_EXPIRED, EventType.ADAPTIVE_EXAM_TIME_EXPIRED, ENTITY_TYPE)
        return True

    async def _ensure_in_window(self, exam: AdaptiveExamSession) -> None:
        if await self._expire_if_overdue(exam):
            raise SessionExpired(exam.session_id, status=TIME_EXPIRED)

    async def _last_final_ability(self, user_id: uuid.UUID) -> float:
        result = await self.session.execute(
            select(AdaptiveExamSession.final_ability)
            .where(
                AdaptiveExamSession.user_id == user_id,
                AdaptiveExamSession.status == COMPLETED,
                AdaptiveExamSession.final_ability.is_not(None),
            )
            .order_by(AdaptiveExamSession.end_time.desc(), AdaptiveExamSession.created_at.desc())
            .limit(1)
        )
        ability = result.scalar_one_or_none()
        return ability if ability is not None else self.settings.adaptive_default_ability

    async def _completed_count(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(AdaptiveExamSession.id)).where(
                AdaptiveExamSession.user_id == user_id,
                AdaptiveExamSession.status == COMPLETED,
            )
        )
        return result.scalar() or 0

    async def start(self, user_id: uuid.UUID, duration: Optional[int] = None) -> AdaptiveExamStart:
        """Open a new exam with the oracle; rejects a second active exam."""
        minutes = validated_duration(
            duration,
            self.settings.adaptive_default_duration,
            self.settings.adaptive_min_duration,
            self.settings.adaptive_max_duration,
        )

        async with self.unit_of_work():
            existing = await self._active_for(user_id)
            if existing is not None and not await self._expire_if_overdue(existing):
                raise DuplicateActiveSession(existing.session_id)

            initial_ability = await self._last_final_ability(user_id)
            exam_number = await self._completed_count(user_id) + 1

            started = await self.oracle.start(user_id)
            current_ability = started.user_ability if started.user_ability is not None else initial_ability

            exam = AdaptiveExamSession(
                user_id=user_id,
                session_id=started.session_id,
                status=ACTIVE,
                duration=minutes,
                start_time=utcnow(),
                initial_ability=initial_ability,
                current_ability=current_ability,
                total_questions=0,
                correct_answers=0,
                wrong_answers=0,
                accuracy=0.0,
                total_time_seconds=0.0,
                average_time_per_question=0.0,
                difficulty_breakdown=empty_breakdown(),
                current_question=started.question.model_dump(),
                xp_earned=0,
                badges_earned=[],
                exam_number=exam_number,
                responses=[],
            )
            self.session.add(exam)
            try:
                await self.session.flush()
            except IntegrityError as exc:
                # A concurrent start won the partial unique index
                await self.session.rollback()
                winner = await self._active_for(user_id)
                raise DuplicateActiveSession(winner.session_id if winner else None) from exc

            await self.event_store.log(
                event_type=EventType.ADAPTIVE_EXAM_STARTED,
                entity_type=ENTITY_TYPE,
                entity_id=exam.id,
                user_id=user_id,
                payload={
                    "session_id": exam.session_id,
                    "exam_number": exam_number,
                    "duration": minutes,
                    "initial_ability": initial_ability,
                },
            )

        logger.info(
            "Adaptive exam started",
            extra={"session_id": exam.session_id, "owner_id": str(user_id), "exam_number": exam_number},
        )
        return AdaptiveExamStart(
            session_id=exam.session_id,
            exam_number=exam_number,
            duration=minutes,
            question=started.question,
            user_ability=current_ability,
            previous_ability=initial_ability,
        )

    def _question_snapshot(
        self,
        exam: AdaptiveExamSession,
        question_id: str,
        supplied: Optional[Union[OracleQuestion, Dict[str, Any]]],
    ) -> OracleQuestion:
        stored = exam.current_question
        if stored and str(stored.get("id")) == question_id:
            return OracleQuestion.model_validate(stored)
        if isinstance(supplied, OracleQuestion):
            return supplied
        if supplied:
            return OracleQuestion.model_validate({"id": question_id, **supplied})
        return OracleQuestion(id=question_id)

    async def submit_answer(
        self,
        user_id: uuid.UUID,
        session_id: str,
        question_id: Union[str, int],
        answer: str,
        time_spent: float,
        question: Optional[Union[OracleQuestion, Dict[str, Any]]] = None,
    ) -> AdaptiveAnswerResult:
        """Forward one answer to the oracle and log it; completes the exam when the oracle says so."""
        question_id = str(question_id)

        async with self.unit_of_work(session_id):
            exam = await self._find_active(user_id, session_id)
            await self._ensure_in_window(exam)

            ability_before = exam.current_ability
            scored = await self.oracle.submit(session_id, question_id, answer, time_spent)

            snapshot = self._question_snapshot(exam, question_id, question)
            response = AdaptiveExamResponse(
                position=len(exam.responses),
                question_id=question_id,
                question=snapshot.question,
                options=snapshot.options,
                difficulty=snapshot.difficulty,
                difficulty_numeric=snapshot.difficulty_numeric,
                user_answer=str(answer),
                correct_answer=scored.correct_answer,
                is_correct=scored.is_correct,
                time_spent=float(time_spent),
                ability_before=ability_before,
                ability_after=scored.user_ability,
                timestamp=utcnow(),
            )
            exam.responses.append(response)
            recompute_statistics(exam, response)
            exam.current_ability = scored.user_ability

            if scored.quiz_complete:
                exam.current_question = None
                results = await self._complete(exam, final_ability=scored.user_ability, reason="quiz_complete")
                answer_result = AdaptiveAnswerResult(
                    session_id=session_id,
                    is_correct=scored.is_correct,
                    correct_answer=scored.correct_answer,
                    user_ability=scored.user_ability,
                    quiz_complete=True,
                    results=results,
                )
            else:
                exam.current_question = scored.next_question.model_dump()
                answer_result = AdaptiveAnswerResult(
                    session_id=session_id,
                    is_correct=scored.is_correct,
                    correct_answer=scored.correct_answer,
                    user_ability=scored.user_ability,
                    quiz_complete=False,
                    next_question=scored.next_question,
                    progress=AdaptiveProgress(
                        questions_answered=exam.total_questions,
                        correct_answers=exam.correct_answers,
                        current_accuracy=round(exam.accuracy, 2),
                    ),
                )

        return answer_result

    async def _complete(self, exam: AdaptiveExamSession, final_ability: float, reason: str) -> AdaptiveExamResults:
        """The only place adaptive-exam XP and badges are awarded."""
        exam.status = COMPLETED
        exam.end_time = utcnow()
        exam.final_ability = final_ability
        if exam.total_questions:
            exam.accuracy = exam.correct_answers / exam.total_questions * 100
        exam.xp_earned = adaptive_exam_xp(
            correct_answers=exam.correct_answers,
            accuracy=exam.accuracy,
            difficulty_breakdown=exam.difficulty_breakdown,
            average_time_per_question=exam.average_time_per_question,
            final_ability=final_ability,
        )

        outcome = await self.ledger.apply_completion(
            exam.user_id,
            exam.xp_earned,
            SessionKind.ADAPTIVE_EXAM,
            SessionStats(
                session_id=exam.session_id,
                correct_answers=exam.correct_answers,
                total_questions=exam.total_questions,
                accuracy=exam.accuracy,
                final_ability=final_ability,
            ),
        )
        exam.badges_earned = [b.badge_id for b in outcome.new_badges]

        await self.event_store.log(
            event_type=EventType.ADAPTIVE_EXAM_COMPLETED,
            entity_type=ENTITY_TYPE,
            entity_id=exam.id,
            user_id=exam.user_id,
            payload={
                "session_id": exam.session_id,
                "reason": reason,
                "accuracy": exam.accuracy,
                "final_ability": final_ability,
                "xp_earned": exam.xp_earned,
                "badges": exam.badges_earned,
            },
        )
        logger.info(
            "Adaptive exam completed",
            extra={
                "session_id": exam.session_id,
                "reason": reason,
                "xp_earned": exam.xp_earned,
                "final_ability": final_ability,
            },
        )
        return AdaptiveExamResults(
            session_id=exam.session_id,
            total_questions=exam.total_questions,
            correct_answers=exam.correct_answers,
            accuracy=round(exam.accuracy, 2),
            final_ability=final_ability,
            xp_earned=exam.xp_earned,
            badges_earned=outcome.new_badges,
            time_spent=exam.total_time_seconds,
            total_xp=outcome.total_xp,
            level=outcome.level,
            level_up=outcome.level_up,
        )

    async def abandon(self, user_id: uuid.UUID, session_id: str, save_results: bool = False) -> AbandonResult:
        """
        End an active exam early. With ``save_results`` it completes on
        current partial progress; otherwise it is abandoned with no XP.
        """
        async with self.unit_of_work(session_id):
            exam = await self._find_active(user_id, session_id)
            await self._ensure_in_window(exam)
            exam.current_question = None

            if save_results:
                results = await self._complete(exam, final_ability=exam.current_ability, reason="saved")
                outcome = AbandonResult(
                    session_id=session_id,
                    status=COMPLETED,
                    message="Exam ended successfully",
                    results=results,
                )
            else:
                exam.status = ABANDONED
                exam.end_time = utcnow()
                await self.event_store.log(
                    event_type=EventType.ADAPTIVE_EXAM_ABANDONED,
                    entity_type=ENTITY_TYPE,
                    entity_id=exam.id,
                    user_id=user_id,
                    payload={"session_id": session_id, "total_questions": exam.total_questions},
                )
                logger.info("Adaptive exam abandoned", extra={"session_id": session_id})
                outcome = AbandonResult(
                    session_id=session_id,
                    status=ABANDONED,
                    message="Exam abandoned successfully",
                )

        return outcome

    async def resume(self, user_id: uuid.UUID, session_id: str) -> ResumeResult:
        """Return the oracle's in-flight question; CannotResume when the oracle can't."""
        async with self.unit_of_work(session_id):
            exam = await self._find_active(user_id, session_id)
            await self._ensure_in_window(exam)
            question = await self.oracle.resume(session_id)
            exam.current_question = question.model_dump()

        return ResumeResult(
            session_id=session_id,
            exam_number=exam.exam_number,
            question=question,
            user_ability=exam.current_ability,
            previous_ability=exam.initial_ability,
        )

    async def get_analytics(self, user_id: uuid.UUID, session_id: str) -> AdaptiveExamAnalytics:
        exam = await self._find(user_id, session_id)
        await self._expire_if_overdue(exam)

        earned_badges = []
        if exam.badges_earned:
            progress = await self.ledger.find_progress(user_id)
            if progress is not None:
                earned_badges = [badge_award(b) for b in progress.badges if b.badge_id in exam.badges_earned]

        final = exam.final_ability if exam.final_ability is not None else exam.current_ability
        return AdaptiveExamAnalytics(
            session_id=exam.session_id,
            status=exam.status,
            exam_number=exam.exam_number,
            total_questions=exam.total_questions,
            correct_answers=exam.correct_answers,
            wrong_answers=exam.wrong_answers,
            accuracy=round(exam.accuracy, 2),
            total_time_spent=exam.total_time_seconds,
            average_time_per_question=exam.average_time_per_question,
            time_stats=TimeStats(
                fastest=exam.fastest_answer or 0.0,
                average=exam.average_time_per_question or 0.0,
                slowest=exam.slowest_answer or 0.0,
            ),
            initial_ability=exam.initial_ability,
            final_ability=final,
            ability_change=exam.ability_change,
            difficulty_breakdown=exam.difficulty_breakdown,
            xp_earned=exam.xp_earned,
            badges_earned=list(exam.badges_earned or []),
            earned_badges=earned_badges,
            responses=[
                AdaptiveResponseDetail(
                    question_id=r.question_id,
                    question=r.question,
                    options=r.options or {},
                    difficulty=r.difficulty,
                    difficulty_numeric=r.difficulty_numeric,
                    user_answer=r.user_answer,
                    correct_answer=r.correct_answer,
                    is_correct=r.is_correct,
                    time_spent=r.time_spent,
                    ability_before=r.ability_before,
                    ability_after=r.ability_after,
                    timestamp=r.timestamp,
                )
                for r in exam.responses
            ],
            start_time=exam.start_time,
            end_time=exam.end_time,
        )

    async def get_history(
        self,
        user_id: uuid.UUID,
        status: Optional[str] = None,
        limit: int = 10,
        skip: int = 0,
    ) -> AdaptiveExamHistory:
        """Newest first; completed and time-expired exams unless a known status is given."""
        statuses = (status,) if status in HISTORY_STATUSES else DEFAULT_HISTORY_STATUSES
        condition = (
            AdaptiveExamSession.user_id == user_id,
            AdaptiveExamSession.status.in_(statuses),
        )

        total_result = await self.session.execute(
            select(func.count(AdaptiveExamSession.id)).where(*condition)
        )
        total = total_result.scalar() or 0

        result = await self.session.execute(
            select(AdaptiveExamSession)
            .where(*condition)
            .order_by(AdaptiveExamSession.created_at.desc())
            .limit(limit)
            .offset(skip)
        )
        exams = list(result.scalars().all())
        return AdaptiveExamHistory(
            exams=[
                AdaptiveExamSummary(
                    session_id=e.session_id,
                    status=e.status,
                    exam_number=e.exam_number,
                    total_questions=e.total_questions,
                    correct_answers=e.correct_answers,
                    accuracy=round(e.accuracy, 2),
                    initial_ability=e.initial_ability,
                    final_ability=e.final_ability,
                    xp_earned=e.xp_earned,
                    start_time=e.start_time,
                    end_time=e.end_time,
                )
                for e in exams
            ],
            total_exams=total,
            has_more=skip + len(exams) < total,
        )

    async def get_user_stats(self, user_id: uuid.UUID) -> AdaptiveUserStats:
        """Aggregates over the user's completed exams."""
        result = await self.session.execute(
            select(AdaptiveExamSession)
            .where(
                AdaptiveExamSession.user_id == user_id,
                AdaptiveExamSession.status == COMPLETED,
            )
            .order_by(AdaptiveExamSession.created_at.desc())
        )
        exams: List[AdaptiveExamSession] = list(result.scalars().all())
        if not exams:
            return AdaptiveUserStats()

        count = len(exams)
        abilities = [e.final_ability or 0.0 for e in exams]
        badge_ids = {b for e in exams for b in (e.badges_earned or [])}
        return AdaptiveUserStats(
            total_exams=count,
            average_accuracy=round(sum(e.accuracy for e in exams) / count, 2),
            average_ability=round(sum(abilities) / count, 3),
            highest_ability=max(abilities),
            total_questions=sum(e.total_questions for e in exams),
            total_correct_answers=sum(e.correct_answers for e in exams),
            total_xp=sum(e.xp_earned for e in exams),
            badges_earned=len(badge_ids),
            recent_exams=[
                RecentExam(
                    session_id=e.session_id,
                    exam_number=e.exam_number,
                    accuracy=round(e.accuracy, 2),
                    final_ability=e.final_ability,
                    xp_earned=e.xp_earned,
                    completed_at=e.end_time,
                )
                for e in exams[:5]
            ],
        )

    async def get_active_session(self, user_id: uuid.UUID) -> Optional[ActiveExamInfo]:
        """The user's active exam, or None. An overdue one is flipped to time_expired."""
        exam = await self._active_for(user_id)
        if exam is None or await self._expire_if_overdue(exam):
            return None
        return ActiveExamInfo(
            session_id=exam.session_id,
            exam_number=exam.exam_number,
            total_questions=exam.total_questions,
            correct_answers=exam.correct_answers,
            accuracy=round(exam.accuracy, 2),
            current_ability=exam.current_ability,
            start_time=exam.start_time,
            time_remaining=remaining_seconds(exam_deadline(exam)),
        )
