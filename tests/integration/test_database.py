"""Integration tests for the database session helpers."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from growora.database import close_db, get_db, is_write_conflict


class TestGetDb:
    @pytest.mark.asyncio
    async def test_yields_working_session(self):
        """get_db yields one session and closes it when the generator finishes."""
        sessions = []
        async for session in get_db():
            assert isinstance(session, AsyncSession)
            result = await session.execute(text("SELECT 1"))
            assert result.scalar() == 1
            sessions.append(session)
        assert len(sessions) == 1
        await close_db()


class TestSavepoints:
    @pytest.mark.asyncio
    async def test_nested_rollback_keeps_outer_transaction(self, db_session):
        await db_session.execute(text("CREATE TABLE scratch (n INTEGER)"))
        await db_session.execute(text("INSERT INTO scratch VALUES (1)"))
        nested = await db_session.begin_nested()
        await db_session.execute(text("INSERT INTO scratch VALUES (2)"))
        await nested.rollback()
        await db_session.commit()

        result = await db_session.execute(text("SELECT n FROM scratch"))
        assert [row[0] for row in result] == [1]


class _DriverError(Exception):
    def __init__(self, message, sqlite_errorcode=None, sqlstate=None):
        super().__init__(message)
        if sqlite_errorcode is not None:
            self.sqlite_errorcode = sqlite_errorcode
        if sqlstate is not None:
            self.sqlstate = sqlstate


class TestIsWriteConflict:
    def test_sqlite_busy_snapshot(self):
        exc = OperationalError("UPDATE", {}, _DriverError("database is locked", sqlite_errorcode=517))
        assert is_write_conflict(exc) is True

    def test_sqlite_constraint_is_not_a_conflict(self):
        exc = IntegrityError("INSERT", {}, _DriverError("UNIQUE constraint failed", sqlite_errorcode=2067))
        assert is_write_conflict(exc) is False

    def test_postgres_serialization_failure(self):
        exc = OperationalError("UPDATE", {}, _DriverError("could not serialize", sqlstate="40001"))
        assert is_write_conflict(exc) is True

    def test_postgres_unique_violation_is_not_a_conflict(self):
        exc = IntegrityError("INSERT", {}, _DriverError("duplicate key", sqlstate="23505"))
        assert is_write_conflict(exc) is False

    def test_message_fallback(self):
        exc = OperationalError("UPDATE", {}, _DriverError("database is locked"))
        assert is_write_conflict(exc) is True
