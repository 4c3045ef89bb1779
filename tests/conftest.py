import os
from typing import AsyncGenerator, Awaitable, Callable, Dict

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lms.main import app
from lms.auth.models import User
from lms.auth.security import access_token_for, hash_password
from lms.core.ids import generate_public_user_id_candidate
from lms.db.session import Base, get_db


TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "StrongPass123"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; the app's get_db yields the same session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Insert a user straight into the store. Defaults to an active account."""
    counter = {"n": 0}

    async def _make_user(role: str = "Student", status: str = "active", **overrides) -> User:
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            user_id=generate_public_user_id_candidate(),
            username=f"{role.lower()}{n}",
            email=f"{role.lower()}{n}@school.test",
            password_hash=hash_password(TEST_PASSWORD),
            first_name=f"{role}{n}",
            last_name="Tester",
            phone_number="555-0100",
            address="1 School Lane",
            sex="Other",
            role=role,
            status=status,
        )
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {access_token_for(user)}"}


@pytest.fixture()
def headers_for() -> Callable[[User], Dict[str, str]]:
    return auth_headers


@pytest.fixture()
async def admin(make_user) -> User:
    return await make_user("Admin")


@pytest.fixture()
async def teacher(make_user) -> User:
    return await make_user("Teacher")


@pytest.fixture()
async def student(make_user) -> User:
    return await make_user("Student")


@pytest.fixture()
def admin_headers(admin: User) -> Dict[str, str]:
    return auth_headers(admin)
