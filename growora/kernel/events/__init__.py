from growora.kernel.events.event_store import EventStore
from growora.kernel.models.event_log import EventLog, EventType

__all__ = ["EventStore", "EventLog", "EventType"]
