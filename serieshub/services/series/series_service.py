"""
SeriesHub Series Service — catalog reads, view counting and admin status.
"""
from __future__ import annotations

import hmac
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from serieshub.core.config import get_settings
from serieshub.core.errors import NotFound, Unauthorized, ValidationFailed
from serieshub.core.metrics import SERIES_VIEWS
from serieshub.models.models import Episode, Series, SeriesStatus

logger = logging.getLogger(__name__)
settings = get_settings()

series_table = Series.__table__


class SeriesService:
    """Series and episode reads plus the two series mutations."""

    def __init__(self, admin_code: Optional[str] = None):
        self._admin_code = admin_code

    @property
    def admin_code(self) -> str:
        return self._admin_code if self._admin_code is not None else settings.admin_code

    # ── Reads ────────────────────────────────────────────────────────────

    async def list_series(
        self,
        db: AsyncSession,
        status: Optional[SeriesStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Series]:
        query = select(Series).order_by(Series.title.asc(), Series.id.asc())
        if status is not None:
            query = query.where(Series.status == status)
        result = await db.execute(query.limit(limit).offset(offset))
        return list(result.scalars().all())

    async def get_series(self, series_id: uuid.UUID, db: AsyncSession) -> Series:
        series = await db.get(Series, series_id)
        if series is None:
            raise NotFound("Series not found")
        return series

    async def list_episodes(self, series_id: uuid.UUID, db: AsyncSession) -> List[Episode]:
        """Episodes in season/episode order, unnumbered ones first."""
        await self.get_series(series_id, db)
        result = await db.execute(
            select(Episode)
            .where(Episode.series_id == series_id)
            .order_by(
                Episode.season_number.asc().nulls_first(),
                Episode.episode_number.asc().nulls_first(),
                Episode.created_at.asc(),
            )
        )
        return list(result.scalars().all())

    # ── Mutations ────────────────────────────────────────────────────────

    async def increment_series_view(self, series_id: uuid.UUID, db: AsyncSession) -> int:
        """Bump the view counter by one and return the new value."""
        result = await db.execute(
            update(series_table)
            .where(series_table.c.id == series_id)
            .values(views_count=series_table.c.views_count + 1)
            .returning(series_table.c.views_count)
        )
        views_count = result.scalar_one_or_none()
        if views_count is None:
            await db.rollback()
            raise NotFound("Series not found")
        await db.commit()
        SERIES_VIEWS.inc()
        return views_count

    async def admin_update_series_status(
        self,
        admin_code: str,
        series_id: uuid.UUID,
        status: Union[SeriesStatus, str],
        db: AsyncSession,
    ) -> None:
        if not hmac.compare_digest((admin_code or "").encode("utf-8"), self.admin_code.encode("utf-8")):
            logger.warning(f"Rejected status update for series {series_id}: bad admin code")
            raise Unauthorized("Unauthorized")

        try:
            status = SeriesStatus(status)
        except ValueError:
            raise ValidationFailed(f"Invalid series status: {status}")

        result = await db.execute(
            update(series_table)
            .where(series_table.c.id == series_id)
            .values(status=status, updated_at=datetime.now(timezone.utc))
            .returning(series_table.c.id)
        )
        if result.scalar_one_or_none() is None:
            await db.rollback()
            raise NotFound("Series not found")
        await db.commit()
        logger.info(f"Series {series_id} status set to {status.value}")


series_service = SeriesService()
