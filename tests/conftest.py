from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from georise.core.config import settings

# Override settings for tests (before the engine and app are imported)
settings.database_url = "sqlite+aiosqlite://"
settings.jwt_secret_key = "test-secret-key-that-is-at-least-32-bytes-long"
settings.service_role_key = "test-service-role-key"
settings.perplexity_api_key = "pplx-test-fake-key"
settings.lovable_api_key = "lovable-test-fake-key"
settings.analysis_batch_delay_ms = 0
settings.app_env = "development"

import georise.models  # noqa: E402, F401
from georise.core.rate_limit import limiter  # noqa: E402
from georise.core.security import create_access_token, hash_password  # noqa: E402
from georise.db.base import Base  # noqa: E402
from georise.db.postgres import get_db  # noqa: E402
from georise.main import app  # noqa: E402
from georise.models.brand import Brand  # noqa: E402
from georise.models.user import User  # noqa: E402

limiter.enabled = False


@pytest.fixture
async def test_engine():
    """In-memory SQLite shared by every session of one test; tables created fresh each time."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def test_session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def client(test_session_factory, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    # Coach usage tracking and the health check open their own sessions
    monkeypatch.setattr("georise.api.v1.coach.async_session_factory", test_session_factory)
    monkeypatch.setattr("georise.main.async_session_factory", test_session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.pop(get_db, None)


async def _create_user(db: AsyncSession, email: str, plan: str = "free", role: str = "user") -> User:
    user = User(
        email=email,
        password_hash=hash_password("testpassword123"),
        display_name=email.split("@")[0],
        plan=plan,
        role=role,
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def user(db: AsyncSession) -> User:
    """A pro-plan user."""
    return await _create_user(db, "test@example.com", plan="pro")


@pytest.fixture
async def free_user(db: AsyncSession) -> User:
    return await _create_user(db, "free@example.com", plan="free")


@pytest.fixture
async def admin_user(db: AsyncSession) -> User:
    return await _create_user(db, "admin@example.com", plan="business", role="admin")


@pytest.fixture
async def brand(db: AsyncSession, user: User) -> Brand:
    brand = Brand(user_id=user.id, name="Acme", topic="project management software")
    db.add(brand)
    await db.commit()
    return brand


def _headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """Build auth headers for any user created in a test."""
    return _headers


@pytest.fixture
def auth_headers(user: User) -> dict[str, str]:
    """Get auth headers with a valid access token."""
    return _headers(user)


@pytest.fixture
def service_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {settings.service_role_key}"}
