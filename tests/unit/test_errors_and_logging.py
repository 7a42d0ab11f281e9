"""Unit tests for the typed error taxonomy and structured logging."""

import json
import logging
import uuid

from growora.engines.assessment.errors import (
    AssessmentError,
    DuplicateActiveSession,
    InsufficientQuestions,
    InvalidState,
    NoQuestionsAvailable,
    SessionNotFound,
)
from growora.logging_config import CorrelationFilter, JsonFormatter, log_context


class TestAssessmentErrors:
    def test_all_errors_share_a_base(self):
        assert issubclass(NoQuestionsAvailable, AssessmentError)
        assert issubclass(DuplicateActiveSession, AssessmentError)

    def test_to_dict_carries_context(self):
        error = InsufficientQuestions("moderate", found=3, needed=10)
        data = error.to_dict()
        assert data["error"] == "InsufficientQuestions"
        assert data["found"] == 3
        assert data["needed"] == 10
        assert "session_id" not in data

    def test_session_id_is_stringified(self):
        sid = uuid.uuid4()
        data = InvalidState(sid, "completed").to_dict()
        assert data["session_id"] == str(sid)
        assert data["status"] == "completed"
        assert data["expected"] == "active"

    def test_duplicate_exposes_existing_session(self):
        error = DuplicateActiveSession("oracle-7")
        assert error.existing_session_id == "oracle-7"
        assert "oracle-7" in str(error.to_dict())

    def test_message_is_str(self):
        assert "not found" in str(SessionNotFound("x"))


class TestStructuredLogging:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("growora.test", logging.INFO, __file__, 1, "Badge awarded", (), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_correlation_ids_are_bound(self):
        record = self._record()
        with log_context(request_id="req-1", user_id="user-9"):
            CorrelationFilter().filter(record)
        assert record.request_id == "req-1"
        assert record.user_id == "user-9"

    def test_unbound_context_uses_placeholders(self):
        record = self._record()
        CorrelationFilter().filter(record)
        assert record.request_id == "-"
        assert record.user_id == "-"

    def test_json_formatter_includes_extra_fields(self):
        record = self._record(badge_id="noobie", session_id=uuid.UUID(int=1))
        CorrelationFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))
        assert payload["message"] == "Badge awarded"
        assert payload["badge_id"] == "noobie"
        assert payload["session_id"] == str(uuid.UUID(int=1))
        assert "request_id" not in payload
