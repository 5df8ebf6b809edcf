"""Shared test fixtures with in-memory SQLite."""
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles

from token_vault.config import settings
from token_vault.dependencies import get_db, get_key_provider
from token_vault.main import app
from token_vault.models.base import Base
from token_vault.utils.encryption import DualTokenCodec

from tests.factories import INTERNAL_SECRET, KEY_V1, KEY_V2, make_codec

# --- SQLite compatibility: compile PostgreSQL types for SQLite ---

@compiles(UUID, "sqlite")
def _compile_uuid_sqlite(type_, compiler, **kw):
    return "VARCHAR(36)"


# In-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
test_session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
async def setup_db():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db():
    async with test_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session():
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def codec_v1() -> DualTokenCodec:
    return make_codec(v1=KEY_V1)


@pytest.fixture
def codec_v2() -> DualTokenCodec:
    """Keyring after adding v2: v2 encrypts, v1 is retiring."""
    return make_codec(v1=KEY_V1, v2=KEY_V2)


@pytest.fixture
def use_codec():
    """Serve the API from the given codec's keyring instead of settings."""
    def _install(codec: DualTokenCodec) -> None:
        app.dependency_overrides[get_key_provider] = lambda: codec.key_provider

    yield _install
    app.dependency_overrides.pop(get_key_provider, None)


@pytest.fixture
def admin_headers(monkeypatch) -> dict:
    monkeypatch.setattr(settings, "INTERNAL_CRON_SECRET", INTERNAL_SECRET)
    return {"X-Internal-Secret": INTERNAL_SECRET}
