import os

# must be set before anything under app/ is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-characters")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import config
from app.database import Base, get_async_session
from app.limiter import limiter
from app.main import app
from tests.factories import Factory

# write endpoints are rate limited per client address; every test shares one
limiter.enabled = False


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def make_token(user_id: str, role: str = None) -> str:
    claims = {"sub": user_id}
    if role is not None:
        claims["role"] = role
    return jwt.encode(claims, config.SECRET_KEY, algorithm=config.ALGORITHM)


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "user_1", role: str = None) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}
    return _headers
