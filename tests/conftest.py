import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_messaging.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config import settings
from app.core.security import create_access_token
from app.database import Base, get_db
from app.main import app
from app.models import Ad, User

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", settings.DATABASE_URL)

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
test_async_session_maker = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_async_session_maker() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_user(
    db: AsyncSession,
    name: str,
    status: str = "active",
) -> User:
    """Insert a user directly; login is covered by test_auth."""
    user = User(
        id=uuid4(),
        name=name,
        email=f"{name.lower().replace(' ', '.')}@example.com",
        password_hash="not-a-real-hash",
        avatar=f"https://cdn.example.com/avatars/{name.lower()}.png",
        status=status,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_ad(
    db: AsyncSession,
    seller_id: UUID,
    title: str = "Toyota Axio 2015",
    status: str = "approved",
    is_active: bool = True,
) -> Ad:
    ad = Ad(
        id=uuid4(),
        seller_id=seller_id,
        title=title,
        images=["https://cdn.example.com/ads/axio-front.jpg", "https://cdn.example.com/ads/axio-back.jpg"],
        status=status,
        is_active=is_active,
    )
    db.add(ad)
    await db.commit()
    await db.refresh(ad)
    return ad


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest_asyncio.fixture
async def buyer(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Amina")


@pytest_asyncio.fixture
async def seller(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Brian")


@pytest_asyncio.fixture
async def ad(db_session: AsyncSession, seller: User) -> Ad:
    return await create_ad(db_session, seller.id)


@pytest_asyncio.fixture
async def registered_user(client: AsyncClient) -> dict:
    user_data = {
        "name": "Wanjiru Kamau",
        "email": "wanjiru@example.com",
        "password": "testpassword123",
        "phone": "+254712345678",
    }
    response = await client.post("/api/v1/auth/register", json=user_data)
    return {**user_data, "response": response.json()}


@pytest_asyncio.fixture
async def auth_token(client: AsyncClient, registered_user: dict) -> str:
    response = await client.post(
        "/api/v1/auth/login",
        data={
            "username": registered_user["email"],
            "password": registered_user["password"],
        },
    )
    return response.json()["access_token"]
