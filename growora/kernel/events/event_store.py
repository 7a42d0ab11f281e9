"""
Event Store service for append-only audit logging.

Every session transition and progression change is logged here BEFORE the
owning unit of work commits.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from growora.kernel.models.event_log import EventLog, EventType


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.PRACTICE_COMPLETED,
            entity_type="practice_session",
            entity_id=practice.id,
            user_id=practice.user_id,
            payload={"xp_earned": practice.xp_earned},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> EventLog:
        """
        Log an event to the immutable audit log.

        The row is only added to the session; the caller's commit persists it
        together with the state change it records.
        """
        if payload:
            payload = self._serialize_payload(payload)

        event = EventLog(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=payload or {},
        )
        self.session.add(event)
        return event

    async def count_events(
        self,
        event_type: Optional[EventType] = None,
        user_id: Optional[uuid.UUID] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Count events matching the given criteria."""
        query = select(func.count(EventLog.id))
        if event_type:
            query = query.where(EventLog.event_type == event_type.value)
        if user_id:
            query = query.where(EventLog.user_id == user_id)
        if entity_id:
            query = query.where(EventLog.entity_id == entity_id)

        result = await self.session.execute(query)
        return result.scalar() or 0

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convert payload values to JSON-serializable types."""
        result = {}
        for key, value in payload.items():
            if isinstance(value, uuid.UUID):
                result[key] = str(value)
            elif isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, dict):
                result[key] = self._serialize_payload(value)
            elif isinstance(value, list):
                result[key] = [
                    self._serialize_payload(v) if isinstance(v, dict)
                    else str(v) if isinstance(v, uuid.UUID)
                    else v.isoformat() if isinstance(v, datetime)
                    else v
                    for v in value
                ]
            else:
                result[key] = value
        return result
