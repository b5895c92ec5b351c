"""
Content Service

Persistence for mirrored content, keyed by the cloud id.
"""

import logging
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy import Row, select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from edge_hub.models.content import LocalContent
from edge_hub.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


class ContentService:
    """Store for LocalContent rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_cloud_id(self, cloud_id: str) -> Optional[LocalContent]:
        result = await self.db.execute(
            select(LocalContent).where(LocalContent.cloud_id == cloud_id)
        )
        return result.scalar_one_or_none()

    async def list_sync_index(self) -> List[Row]:
        """Lightweight view of every row (no HTML bodies), used to plan cleanup."""
        result = await self.db.execute(
            select(
                LocalContent.id,
                LocalContent.cloud_id,
                LocalContent.title,
                LocalContent.updated_at,
                LocalContent.cached_at
            )
        )
        return list(result.all())

    async def delete_by_ids(self, content_ids: List[int]) -> int:
        if not content_ids:
            return 0
        result = await self.db.execute(
            delete(LocalContent).where(LocalContent.id.in_(content_ids))
        )
        await self.db.commit()
        return result.rowcount

    async def count(self) -> int:
        result = await self.db.execute(select(func.count(LocalContent.id)))
        return result.scalar_one()

    async def count_missing_cloud_id(self) -> int:
        result = await self.db.execute(
            select(func.count(LocalContent.id)).where(
                or_(LocalContent.cloud_id.is_(None), LocalContent.cloud_id == "")
            )
        )
        return result.scalar_one()

    async def count_invalid(self) -> int:
        """Rows missing a title or HTML body."""
        result = await self.db.execute(
            select(func.count(LocalContent.id)).where(
                or_(
                    LocalContent.title.is_(None),
                    LocalContent.title == "",
                    LocalContent.html_content.is_(None),
                    LocalContent.html_content == ""
                )
            )
        )
        return result.scalar_one()

    async def find_duplicate_cloud_ids(self) -> List[str]:
        result = await self.db.execute(
            select(LocalContent.cloud_id)
            .where(LocalContent.cloud_id.is_not(None))
            .group_by(LocalContent.cloud_id)
            .having(func.count(LocalContent.id) > 1)
        )
        return list(result.scalars().all())

    async def get_storage_stats(self) -> Dict[str, int]:
        total = await self.count()

        result = await self.db.execute(
            select(func.count(LocalContent.id)).where(
                LocalContent.cached_at >= utcnow() - timedelta(days=7)
            )
        )
        recent = result.scalar_one()

        result = await self.db.execute(
            select(func.coalesce(func.sum(func.length(LocalContent.html_content)), 0))
        )
        storage_used = int(result.scalar_one() or 0)

        return {
            'total_content': total,
            'recent_content': recent,
            'storage_used': storage_used,
        }
