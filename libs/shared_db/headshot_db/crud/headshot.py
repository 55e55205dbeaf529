from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from headshot_common.ids import HeadshotId, UserId
from headshot_db.models.headshot import Headshot
from headshot_db.schemas.headshot import HeadshotCreate, HeadshotResponse


class HeadshotDAO:
    async def create_many(self, db: AsyncSession, objs_in: list[HeadshotCreate]) -> list[HeadshotResponse]:
        headshots = [Headshot(**obj.model_dump()) for obj in objs_in]
        db.add_all(headshots)
        await db.flush()
        for headshot in headshots:
            await db.refresh(headshot)
        return [HeadshotResponse.model_validate(h) for h in headshots]

    async def list_for_user(self, db: AsyncSession, user_id: UserId, *, favorites_only: bool = False, limit: int = 200) -> list[HeadshotResponse]:
        """Newest first."""
        query = select(Headshot).where(Headshot.user_id == user_id)
        if favorites_only:
            query = query.where(Headshot.is_favorite.is_(True))
        result = await db.execute(query.order_by(Headshot.created_at.desc(), Headshot.id.desc()).limit(limit))
        return [HeadshotResponse.model_validate(h) for h in result.scalars().all()]

    async def toggle_favorite(self, db: AsyncSession, user_id: UserId, id: HeadshotId) -> HeadshotResponse | None:
        result = await db.execute(
            update(Headshot)
            .where(Headshot.id == id, Headshot.user_id == user_id)
            .values(is_favorite=~Headshot.is_favorite)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:  # type: ignore[attr-defined]
            return None
        row = (await db.execute(select(Headshot).where(Headshot.id == id))).scalar_one()
        await db.refresh(row)
        return HeadshotResponse.model_validate(row)
