"""Integration-test fixtures (requires a migrated PostgreSQL and a Redis).

Pre-condition: alembic upgrade head, then RUN_INTEGRATION=1 pytest tests/integration

All integration tests share a single event loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.
"""

import os
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from config.settings import settings
from src.container import build_container
from src.fx_bootstrap.seed import seed_if_empty
from src.fx_common.database import async_session_factory
from src.fx_common.redis_client import get_redis
from src.fx_exchange.domain.transfer import SimulatedTransferExecutor
from src.main import app

if os.environ.get("RUN_INTEGRATION") != "1":
    collect_ignore_glob = ["test_*.py"]


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client wired to the real store and cache."""
    redis = await get_redis()
    await seed_if_empty(async_session_factory, Path(settings.SEED_DIR))
    app.state.container = build_container(
        async_session_factory, redis, SimulatedTransferExecutor(min_delay_ms=0, max_delay_ms=5)
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.state.container
