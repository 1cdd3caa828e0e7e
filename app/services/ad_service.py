from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.ad import Ad


async def get_ad_by_id(db: AsyncSession, ad_id: UUID) -> Ad | None:
    """Get an ad by ID. Messaging never mutates ads."""
    result = await db.execute(select(Ad).where(Ad.id == ad_id))
    return result.scalar_one_or_none()
