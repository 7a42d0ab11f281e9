"""
Shared plumbing for the session state machines: ownership-checked loads,
lazy expiry, remaining-time arithmetic and the single-commit unit of work.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from growora.config import Settings, get_settings
from growora.database import is_write_conflict
from growora.engines.assessment.errors import (
    ConcurrentUpdate,
    InvalidState,
    SessionExpired,
    SessionNotFound,
)
from growora.engines.progression.ledger import ProgressionLedger
from growora.kernel.events.event_store import EventStore
from growora.kernel.models.base import utcnow
from growora.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

ACTIVE = "active"


def remaining_seconds(end_time: Optional[datetime], now: Optional[datetime] = None) -> int:
    """Whole seconds left before ``end_time``, never negative."""
    if end_time is None:
        return 0
    now = now or utcnow()
    return max(0, int((end_time - now).total_seconds()))


def is_past_window(end_time: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if end_time is None:
        return False
    return (now or utcnow()) > end_time


class SessionStateMachine:
    """
    Base for the practice, sectional and adaptive-exam state machines.

    Every public operation runs inside ``unit_of_work()``: one commit on
    success, rollback on any error. Expiry detected mid-operation is committed
    on its own before the error propagates.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        ledger: Optional[ProgressionLedger] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.event_store = EventStore(session)
        self.ledger = ledger or ProgressionLedger(session, self.settings, self.event_store)

    async def _load_owned(self, model: Type[T], user_id: uuid.UUID, session_id: uuid.UUID) -> T:
        """Load ``model`` by primary key; another user's session is reported as missing."""
        result = await self.session.execute(select(model).where(model.id == session_id))
        record = result.scalar_one_or_none()
        if record is None or record.user_id != user_id:
            raise SessionNotFound(session_id)
        return record

    async def _flip_expired(self, record: Any, status: str, event_type, entity_type: str) -> None:
        """Persist the lazy expiry transition immediately."""
        record.status = status
        await self.event_store.log(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=record.id,
            user_id=record.user_id,
            payload={"end_time": record.end_time},
        )
        await self._commit(record.id)
        logger.info(
            "Session expired",
            extra={"session_id": str(record.id), "status": status, "entity_type": entity_type},
        )

    async def _ensure_active(self, record: Any, expired_status: str, event_type, entity_type: str) -> None:
        """Lazy expiry first, then the status check."""
        if record.status == ACTIVE and is_past_window(record.end_time):
            await self._flip_expired(record, expired_status, event_type, entity_type)
            raise SessionExpired(record.id, status=expired_status)
        if record.status != ACTIVE:
            raise InvalidState(record.id, record.status)

    async def _commit(self, session_ref: Any) -> None:
        try:
            await self.session.commit()
        except StaleDataError as exc:
            await self.session.rollback()
            raise ConcurrentUpdate(session_ref) from exc
        except DBAPIError as exc:
            await self.session.rollback()
            if is_write_conflict(exc):
                raise ConcurrentUpdate(session_ref) from exc
            raise

    @asynccontextmanager
    async def unit_of_work(self, session_ref: Any = None) -> AsyncIterator[None]:
        """
        Commit once when the block succeeds. On failure roll back whatever is
        still pending and re-raise; a version conflict or a write rejected by
        the database's locking surfaces as ConcurrentUpdate.
        """
        try:
            yield
            await self._commit(session_ref)
        except StaleDataError as exc:
            await self.session.rollback()
            raise ConcurrentUpdate(session_ref) from exc
        except DBAPIError as exc:
            if self.session.in_transaction():
                await self.session.rollback()
            if is_write_conflict(exc):
                logger.warning("Write conflict", extra={"session_id": str(session_ref)})
                raise ConcurrentUpdate(session_ref) from exc
            raise
        except Exception:
            if self.session.in_transaction():
                await self.session.rollback()
            raise
