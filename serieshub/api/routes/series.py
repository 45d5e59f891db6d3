"""
SeriesHub API — Series routes.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from serieshub.core.database import get_db
from serieshub.models.models import SeriesStatus
from serieshub.schemas.schemas import EpisodeSchema, PlaybackSelection, SeriesSchema, ViewCountResult
from serieshub.services.playback.players import select_playback
from serieshub.services.series.series_service import series_service

router = APIRouter(prefix="/series", tags=["Series"])


@router.get("", response_model=List[SeriesSchema])
async def list_series(
    status: Optional[SeriesStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Browse series alphabetically, optionally by status."""
    rows = await series_service.list_series(db, status=status, limit=limit, offset=offset)
    return [SeriesSchema.model_validate(s) for s in rows]


@router.get("/{series_id}", response_model=SeriesSchema)
async def get_series(series_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    series = await series_service.get_series(series_id, db)
    return SeriesSchema.model_validate(series)


@router.get("/{series_id}/episodes", response_model=List[EpisodeSchema])
async def list_episodes(series_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    episodes = await series_service.list_episodes(series_id, db)
    return [EpisodeSchema.model_validate(e) for e in episodes]


@router.get("/{series_id}/playback", response_model=PlaybackSelection)
async def get_playback(
    series_id: uuid.UUID,
    origin: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Which provider and video/playlist the series page should embed first."""
    series = await series_service.get_series(series_id, db)
    episodes = await series_service.list_episodes(series_id, db)
    return select_playback(series, episodes, page_origin=origin)


@router.post("/{series_id}/views", response_model=ViewCountResult)
async def increment_series_view(series_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    views_count = await series_service.increment_series_view(series_id, db)
    return ViewCountResult(series_id=series_id, views_count=views_count)
