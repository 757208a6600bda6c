"""Tests for engine construction and the request session dependency."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.pool import QueuePool

from bhamail.db import async_session, engine, get_db
from bhamail.db.session import build_engine


class TestEngine:
    def test_module_engine_is_async(self):
        assert isinstance(engine, AsyncEngine)
        assert async_session.kw["expire_on_commit"] is False

    def test_sqlite_engine_has_no_pool_sizing(self):
        sqlite_engine = build_engine("sqlite+aiosqlite:///:memory:")
        assert not isinstance(sqlite_engine.sync_engine.pool, QueuePool)

    def test_server_engine_uses_pool_settings(self):
        pg_engine = build_engine("postgresql+asyncpg://u:p@localhost/bhamail")

        pool = pg_engine.sync_engine.pool
        assert pool._pre_ping is True
        assert pool.size() == 20


class TestGetDb:
    async def test_yields_session(self):
        generator = get_db()
        session = await generator.__anext__()

        assert isinstance(session, AsyncSession)
        await generator.aclose()
