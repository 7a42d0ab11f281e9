"""
Typed failures raised by the assessment engines.

Every error carries enough structured context (session id, counts) for a
routing layer to render a user-facing message.
"""

import uuid
from typing import Any, Dict, Optional, Union

SessionRef = Union[uuid.UUID, str, None]


class AssessmentError(Exception):
    """Base class for all assessment engine failures."""

    def __init__(self, message: str, session_id: SessionRef = None, **context: Any):
        super().__init__(message)
        self.message = message
        self.session_id = session_id
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": type(self).__name__, "message": self.message}
        if self.session_id is not None:
            data["session_id"] = str(self.session_id)
        data.update(self.context)
        return data


class NoQuestionsAvailable(AssessmentError):
    """No active question matches the requested tier and exclusions."""

    def __init__(self, difficulty: str, tag: Optional[str] = None, excluded: int = 0):
        super().__init__(
            f"No active questions available at difficulty '{difficulty}'",
            difficulty=difficulty,
            tag=tag,
            excluded=excluded,
        )
        self.difficulty = difficulty
        self.tag = tag
        self.excluded = excluded


class InsufficientQuestions(AssessmentError):
    """Fewer active questions than a fixed block requires."""

    def __init__(self, difficulty: str, found: int, needed: int):
        super().__init__(
            f"Only {found} questions available at difficulty '{difficulty}', {needed} needed",
            difficulty=difficulty,
            found=found,
            needed=needed,
        )
        self.difficulty = difficulty
        self.found = found
        self.needed = needed


class SessionNotFound(AssessmentError):
    def __init__(self, session_id: SessionRef):
        super().__init__(f"Session {session_id} not found", session_id=session_id)


class InvalidState(AssessmentError):
    """Operation attempted against a session that is not in the required status."""

    def __init__(self, session_id: SessionRef, status: str, expected: str = "active"):
        super().__init__(
            f"Session {session_id} is '{status}', expected '{expected}'",
            session_id=session_id,
            status=status,
            expected=expected,
        )
        self.status = status
        self.expected = expected


class SessionExpired(AssessmentError):
    def __init__(self, session_id: SessionRef, status: str = "expired"):
        super().__init__(
            f"Session {session_id} has expired",
            session_id=session_id,
            status=status,
        )
        self.status = status


class DuplicateActiveSession(AssessmentError):
    """The user already has an active adaptive exam."""

    def __init__(self, existing_session_id: SessionRef):
        super().__init__(
            "An active adaptive exam already exists for this user",
            session_id=existing_session_id,
        )
        self.existing_session_id = existing_session_id


class OracleUnavailable(AssessmentError):
    """The remote ability-scoring service failed or answered malformed data."""

    def __init__(self, operation: str, detail: str, session_id: SessionRef = None):
        super().__init__(
            f"Ability-scoring service unavailable during {operation}: {detail}",
            session_id=session_id,
            operation=operation,
            detail=detail,
        )
        self.operation = operation
        self.detail = detail


class CannotResume(AssessmentError):
    """The oracle cannot return the in-flight question; abandon and restart instead."""

    def __init__(self, session_id: SessionRef, detail: str = ""):
        super().__init__(
            "Cannot resume this exam; abandon it and start a new one",
            session_id=session_id,
            detail=detail,
        )
        self.detail = detail


class NoMoreQuestionsInSection(AssessmentError):
    """A section's block ran out before reaching its full size. Indicates a defect."""

    def __init__(self, session_id: SessionRef, section_index: int, answered: int, needed: int):
        super().__init__(
            f"Section {section_index} exhausted after {answered} of {needed} answers",
            session_id=session_id,
            section_index=section_index,
            answered=answered,
            needed=needed,
        )
        self.section_index = section_index
        self.answered = answered
        self.needed = needed


class ConcurrentUpdate(AssessmentError):
    """Another writer advanced the same session first."""

    def __init__(self, session_id: SessionRef):
        super().__init__(
            f"Session {session_id} was modified concurrently; retry the operation",
            session_id=session_id,
        )
