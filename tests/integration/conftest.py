import asyncpg
import httpx
import pytest

from shared.database import get_db, init_db


@pytest.fixture
async def real_db(settings):
    """Database at DATABASE_URL with the schema created; skips when unreachable"""
    try:
        db = await init_db(settings)
    except (OSError, asyncpg.PostgresError) as e:
        pytest.skip(f"PostgreSQL not available: {e}")
    yield db
    await db.close()


@pytest.fixture
async def db_client(app, real_db):
    app.dependency_overrides[get_db] = lambda: real_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
