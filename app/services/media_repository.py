"""Data access for media records."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.media import MediaRecord
from app.schemas.media import MediaAsset

logger = logging.getLogger(__name__)


class MediaRepository:
    """Thin query layer over ``media_assets``.

    Args:
        session: Async session; the caller owns commit and rollback.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, media_id: str) -> Optional[MediaRecord]:
        return await self.session.get(MediaRecord, media_id)

    async def get_by_hash(self, content_hash: str) -> Optional[MediaRecord]:
        result = await self.session.execute(
            select(MediaRecord).where(MediaRecord.content_hash == content_hash).limit(1)
        )
        return result.scalar_one_or_none()

    async def add(
        self,
        asset: MediaAsset,
        title: Optional[str] = None,
        alt: Optional[str] = None,
        visibility: str = "public",
    ) -> MediaRecord:
        """Insert a record for ``asset`` and flush it.

        Raises:
            sqlalchemy.exc.IntegrityError: If the content hash or
                provider/object key pair already exists.
        """
        record = MediaRecord.from_asset(asset, title=title, alt=alt, visibility=visibility)
        self.session.add(record)
        await self.session.flush()
        logger.debug(f"Inserted media record {record.id}")
        return record

    async def delete(self, record: MediaRecord) -> None:
        await self.session.delete(record)
        await self.session.flush()
