"""
HTTP client for the remote ability-scoring oracle.

Endpoints (relative to the configured base URL):
- POST /adaptive/start        {user_id}
- POST /adaptive/submit       {session_id, question_id, answer, time_spent}
- GET  /adaptive/resume/{id}

Every response body carries ``success``. Transport errors, non-2xx statuses,
``success: false`` and malformed bodies all surface as OracleUnavailable;
resume failures surface as CannotResume.
"""

import uuid
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from growora.config import Settings, get_settings
from growora.engines.assessment.errors import CannotResume, OracleUnavailable
from growora.logging_config import get_logger
from growora.schemas.adaptive_exam import (
    OracleQuestion,
    OracleResume,
    OracleStart,
    OracleSubmission,
)

logger = get_logger(__name__)


class OracleClient:
    """
    Thin async wrapper over the oracle's HTTP API.

    Pass ``client`` to reuse a pooled httpx.AsyncClient (or a MockTransport in
    tests); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.base_url = (base_url or settings.oracle_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.oracle_timeout_seconds
        self._client = client

    async def _send(self, method: str, url: str, body: Optional[Dict[str, Any]]) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, json=body, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, url, json=body)

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        body: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = await self._send(method, url, body)
        except httpx.HTTPError as e:
            logger.warning("Oracle %s request failed: %s", operation, e, extra={"oracle_session": session_id})
            raise OracleUnavailable(operation, f"request failed: {e}", session_id=session_id) from e

        if not response.is_success:
            logger.warning(
                "Oracle %s returned %s",
                operation,
                response.status_code,
                extra={"oracle_session": session_id},
            )
            raise OracleUnavailable(operation, f"HTTP {response.status_code}", session_id=session_id)

        try:
            data = response.json()
        except ValueError as e:
            raise OracleUnavailable(operation, "response body is not JSON", session_id=session_id) from e

        if not isinstance(data, dict) or not data.get("success"):
            raise OracleUnavailable(operation, "oracle reported failure", session_id=session_id)
        return data

    async def start(self, user_id: uuid.UUID) -> OracleStart:
        data = await self._request("POST", "/adaptive/start", "start", {"user_id": str(user_id)})
        try:
            return OracleStart.model_validate(data)
        except ValidationError as e:
            raise OracleUnavailable("start", f"malformed response: {e.error_count()} errors") from e

    async def submit(
        self,
        session_id: str,
        question_id: str,
        answer: str,
        time_spent: float,
    ) -> OracleSubmission:
        body = {
            "session_id": session_id,
            "question_id": question_id,
            "answer": answer,
            "time_spent": float(time_spent),
        }
        data = await self._request("POST", "/adaptive/submit", "submit", body, session_id=session_id)
        try:
            submission = OracleSubmission.model_validate(data)
        except ValidationError as e:
            raise OracleUnavailable(
                "submit", f"malformed response: {e.error_count()} errors", session_id=session_id
            ) from e
        if not submission.quiz_complete and submission.next_question is None:
            raise OracleUnavailable("submit", "no next question and quiz not complete", session_id=session_id)
        return submission

    async def resume(self, session_id: str) -> OracleQuestion:
        """In-flight question for ``session_id``; not every oracle deployment supports it."""
        try:
            data = await self._request("GET", f"/adaptive/resume/{session_id}", "resume", session_id=session_id)
            payload = OracleResume.model_validate(data)
        except (OracleUnavailable, ValidationError) as e:
            logger.info("Oracle cannot resume session", extra={"oracle_session": session_id})
            raise CannotResume(session_id, detail=str(e)) from e
        if payload.question is None:
            raise CannotResume(session_id, detail="oracle returned no question")
        return payload.question
