"""Unit tests for the ability-scoring oracle HTTP client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from growora.engines.assessment.errors import CannotResume, OracleUnavailable
from growora.engines.assessment.oracle_client import OracleClient

BASE_URL = "http://oracle.test/api"

QUESTION = {
    "id": "q1",
    "question": "What is 2 + 2?",
    "options": {"a": "3", "b": "4", "c": "5", "d": "6"},
    "difficulty": "Easy",
    "difficulty_numeric": 1,
}


def _client(handler) -> OracleClient:
    return OracleClient(base_url=BASE_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def _respond(status: int = 200, body=None):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, json=body)

    return handler, seen


class TestOracleStart:
    @pytest.mark.asyncio
    async def test_start_success(self):
        """A successful start returns the oracle session id and first question."""
        handler, seen = _respond(body={
            "success": True,
            "session_id": "abc-123",
            "question": QUESTION,
            "user_ability": 0.42,
        })
        started = await _client(handler).start("user-1")

        assert started.session_id == "abc-123"
        assert started.question.id == "q1"
        assert started.question.difficulty_numeric == 1
        assert started.user_ability == 0.42
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/adaptive/start"
        assert json.loads(seen[0].content) == {"user_id": "user-1"}

    @pytest.mark.asyncio
    async def test_start_numeric_question_id_is_accepted_as_text(self):
        handler, _ = _respond(body={"success": True, "session_id": "s", "question": {**QUESTION, "id": 17}})
        started = await _client(handler).start("user-1")
        assert started.question.id == "17"

    @pytest.mark.asyncio
    async def test_start_server_error(self):
        handler, _ = _respond(status=503, body={"detail": "down"})
        with pytest.raises(OracleUnavailable) as exc_info:
            await _client(handler).start("user-1")
        assert exc_info.value.operation == "start"
        assert "503" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_start_reported_failure(self):
        handler, _ = _respond(body={"success": False, "message": "no questions"})
        with pytest.raises(OracleUnavailable):
            await _client(handler).start("user-1")

    @pytest.mark.asyncio
    async def test_start_malformed_body(self):
        handler, _ = _respond(body={"success": True, "question": QUESTION})
        with pytest.raises(OracleUnavailable, match="malformed"):
            await _client(handler).start("user-1")

    @pytest.mark.asyncio
    async def test_start_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>gateway</html>")

        with pytest.raises(OracleUnavailable, match="not JSON"):
            await _client(handler).start("user-1")

    @pytest.mark.asyncio
    async def test_start_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(OracleUnavailable, match="request failed"):
            await _client(handler).start("user-1")

    @pytest.mark.asyncio
    async def test_short_lived_client_when_none_injected(self):
        """Without an injected client a per-call httpx.AsyncClient is opened."""
        mock_response = MagicMock()
        mock_response.is_success = True
        mock_response.json.return_value = {"success": True, "session_id": "s-9", "question": QUESTION}
        with patch("growora.engines.assessment.oracle_client.httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(
                return_value=AsyncMock(request=AsyncMock(return_value=mock_response))
            )
            mock_client.return_value.__aexit__ = AsyncMock(return_value=None)
            started = await OracleClient(base_url=BASE_URL, timeout=3.0).start("user-1")

        assert started.session_id == "s-9"
        mock_client.assert_called_once_with(timeout=3.0)


class TestOracleSubmit:
    @pytest.mark.asyncio
    async def test_submit_with_next_question(self):
        handler, seen = _respond(body={
            "success": True,
            "is_correct": True,
            "correct_answer": "b",
            "user_ability": 0.71,
            "next_question": {**QUESTION, "id": "q2", "difficulty_numeric": 2},
            "quiz_complete": False,
        })
        result = await _client(handler).submit("abc-123", "q1", "b", 8.5)

        assert result.is_correct is True
        assert result.next_question.id == "q2"
        assert result.quiz_complete is False
        assert json.loads(seen[0].content) == {
            "session_id": "abc-123",
            "question_id": "q1",
            "answer": "b",
            "time_spent": 8.5,
        }

    @pytest.mark.asyncio
    async def test_submit_final_answer(self):
        handler, _ = _respond(body={
            "success": True,
            "is_correct": False,
            "correct_answer": "c",
            "user_ability": 1.2,
            "quiz_complete": True,
        })
        result = await _client(handler).submit("abc-123", "q9", "a", 4)
        assert result.quiz_complete is True
        assert result.next_question is None

    @pytest.mark.asyncio
    async def test_submit_without_next_question_is_unavailable(self):
        handler, _ = _respond(body={
            "success": True,
            "is_correct": True,
            "user_ability": 0.6,
            "quiz_complete": False,
        })
        with pytest.raises(OracleUnavailable) as exc_info:
            await _client(handler).submit("abc-123", "q1", "a", 3)
        assert exc_info.value.session_id == "abc-123"


class TestOracleResume:
    @pytest.mark.asyncio
    async def test_resume_returns_question(self):
        handler, seen = _respond(body={"success": True, "question": QUESTION})
        question = await _client(handler).resume("abc-123")
        assert question.id == "q1"
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/api/adaptive/resume/abc-123"

    @pytest.mark.asyncio
    async def test_resume_not_supported(self):
        handler, _ = _respond(status=404, body={"detail": "Not Found"})
        with pytest.raises(CannotResume) as exc_info:
            await _client(handler).resume("abc-123")
        assert exc_info.value.session_id == "abc-123"

    @pytest.mark.asyncio
    async def test_resume_without_question(self):
        handler, _ = _respond(body={"success": True})
        with pytest.raises(CannotResume):
            await _client(handler).resume("abc-123")
