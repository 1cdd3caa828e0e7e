from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AccountRestrictedError
from app.core.security import hash_password, verify_password
from app.models.user import RESTRICTED_STATUSES, User
from app.schemas.user import UserCreate


async def get_user_by_id(db: AsyncSession, user_id: UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_phone(db: AsyncSession, phone: str) -> User | None:
    result = await db.execute(select(User).where(User.phone == phone))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, data: UserCreate) -> User:
    user = User(
        name=data.name.strip(),
        email=data.email.lower(),
        phone=data.phone,
        avatar=data.avatar,
        password_hash=hash_password(data.password),
        status="active",
        role="user",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User | None:
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def ensure_can_message(user) -> None:
    """Suspended and banned accounts keep reading but may not send."""
    if user.status in RESTRICTED_STATUSES:
        raise AccountRestrictedError()
