"""
Pytest fixtures for Growora engine tests.
"""

import json
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict, List, Optional

# Keep module import from building a PostgreSQL engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from growora.database import build_engine, build_session_maker, init_db
from growora.engines.assessment.oracle_client import OracleClient
from growora.kernel.models.question import Question

ORACLE_URL = "http://oracle.test/api"
ORACLE_LABELS = ("Very easy", "Easy", "Moderate", "Difficult")


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """File-backed SQLite engine per test so separate sessions see each other's commits."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'growora_test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return build_session_maker(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_questions(db_session: AsyncSession):
    """
    Factory seeding active questions. Every question's correct option is
    ``answer``; created_at increases with each call so the newest is the
    last one created.
    """
    clock = {"t": datetime(2026, 1, 1, tzinfo=timezone.utc)}

    async def _make(
        difficulty: str = "very_easy",
        count: int = 1,
        answer: str = "a",
        tags: str = "",
        is_active: bool = True,
    ) -> List[Question]:
        created = []
        for _ in range(count):
            clock["t"] += timedelta(seconds=1)
            question = Question(
                question_text=f"{difficulty} question at {clock['t'].isoformat()}",
                option_a="Option A",
                option_b="Option B",
                option_c="Option C",
                option_d="Option D",
                answer=answer,
                difficulty=difficulty,
                blooms_taxonomy="Understand",
                tags=tags,
                is_active=is_active,
                total_attempts=0,
                correct_attempts=0,
                success_rate=0.0,
                created_at=clock["t"],
                updated_at=clock["t"],
            )
            db_session.add(question)
            created.append(question)
        await db_session.commit()
        return created

    return _make


def oracle_question(number: int, difficulty_numeric: int = 1) -> Dict:
    return {
        "id": f"q{number}",
        "question": f"Oracle question {number}?",
        "options": {"a": "one", "b": "two", "c": "three", "d": "four"},
        "difficulty": ORACLE_LABELS[difficulty_numeric],
        "difficulty_numeric": difficulty_numeric,
    }


class ScriptedOracle:
    """
    In-process ability-scoring service behind httpx.MockTransport.

    ``script`` holds one dict per upcoming submit:
    {"is_correct": bool, "ability": float, "complete": bool, "next_numeric": int}.
    """

    def __init__(self):
        self.requests: List[Dict] = []
        self.script: List[Dict] = []
        self.starts = 0
        self.questions_served = 0
        self.failure_status: Optional[int] = None
        self.resume_supported = True
        self._http = httpx.AsyncClient(transport=httpx.MockTransport(self.handle))
        self.client = OracleClient(base_url=ORACLE_URL, client=self._http)

    def _next_question(self, difficulty_numeric: int) -> Dict:
        self.questions_served += 1
        return oracle_question(self.questions_served, difficulty_numeric)

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append({"method": request.method, "path": request.url.path, "body": body})
        if self.failure_status is not None:
            return httpx.Response(self.failure_status, json={"success": False})

        path = request.url.path
        if path.endswith("/adaptive/start"):
            self.starts += 1
            return httpx.Response(200, json={
                "success": True,
                "session_id": f"oracle-{self.starts}",
                "question": self._next_question(1),
                "user_ability": 0.5,
            })
        if path.endswith("/adaptive/submit"):
            step = self.script.pop(0) if self.script else {}
            payload = {
                "success": True,
                "is_correct": step.get("is_correct", True),
                "correct_answer": "a",
                "user_ability": step.get("ability", 0.6),
                "quiz_complete": step.get("complete", False),
            }
            if not payload["quiz_complete"]:
                payload["next_question"] = self._next_question(step.get("next_numeric", 1))
            return httpx.Response(200, json=payload)
        if "/adaptive/resume/" in path:
            if not self.resume_supported:
                return httpx.Response(404, json={"success": False, "message": "Session not found"})
            return httpx.Response(200, json={"success": True, "question": oracle_question(999, 2)})
        return httpx.Response(404)

    def calls_to(self, suffix: str) -> int:
        return sum(1 for r in self.requests if suffix in r["path"])

    async def aclose(self) -> None:
        await self._http.aclose()


@pytest_asyncio.fixture
async def oracle() -> AsyncGenerator[ScriptedOracle, None]:
    stub = ScriptedOracle()
    yield stub
    await stub.aclose()
