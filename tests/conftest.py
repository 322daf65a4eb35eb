import os
import uuid

import pytest
from httpx import ASGITransport, AsyncClient

# IMPORTANT:
# Set env vars BEFORE importing studyhub.core.config/studyhub.main (pydantic settings load at import time)
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./studyhub_test.db")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:5173")
os.environ.setdefault("API_PREFIX", "/api")

from studyhub.main import app as fastapi_app  # noqa: E402
from studyhub.db.base_class import Base  # noqa: E402
import studyhub.db.base  # noqa: F401,E402  (register models)
from studyhub.db.session import engine, AsyncSessionLocal  # noqa: E402
from studyhub.api.deps import get_db  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def _test_schema(anyio_backend):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session(_test_schema):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def client(db_session):
    """
    Routes and tests share one session, so state written through the API is
    visible to direct service calls in the same test.
    """

    async def _override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    fastapi_app.dependency_overrides.pop(get_db, None)


# --- Small helpers ---

def _unique(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


@pytest.fixture
def unique_str():
    return _unique


@pytest.fixture
def profile_factory(unique_str):
    async def _create(
        client: AsyncClient,
        *,
        name: str | None = None,
        email: str | None = None,
        faculty: str | None = "Science",
        course: str | None = "BSc Computer Science",
    ) -> str:
        name = name or unique_str("student")
        email = email or f"{unique_str('student')}@uni.example.com"
        r = await client.post(
            "/api/profiles",
            json={"name": name, "email": email, "faculty": faculty, "course": course},
        )
        assert r.status_code == 201, r.text
        return r.json()["id"]

    return _create


@pytest.fixture
def group_factory():
    async def _create(client: AsyncClient, *, creator_id: str, **overrides) -> dict:
        body = {"name": "Algo Study", "subject": "CS", "creator_id": creator_id}
        body.update(overrides)
        r = await client.post("/api/groups", json=body)
        assert r.status_code == 201, r.text
        return r.json()["group"]

    return _create
