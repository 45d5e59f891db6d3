"""
SeriesHub API — Admin routes.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from serieshub.core.database import get_db
from serieshub.schemas.schemas import AdminStatusUpdate
from serieshub.services.series.series_service import series_service

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/series/{series_id}/status", status_code=204)
async def update_series_status(
    series_id: uuid.UUID,
    update: AdminStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Mark a series ongoing or completed (shared admin code required)."""
    await series_service.admin_update_series_status(update.admin_code, series_id, update.status, db)
    return Response(status_code=204)
