"""
SeriesHub API — Comment Routes

Endpoints for posting comments and replies, paginated browsing with reply
counts, thread expansion and like toggling.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from serieshub.core.database import get_db
from serieshub.schemas.schemas import (
    CommentCreate,
    CommentSchema,
    CommentWithStats,
    LikeToggleRequest,
    LikeToggleResult,
)
from serieshub.services.comments.comment_service import comment_service

router = APIRouter(prefix="/comments", tags=["Comments"])


@router.post("", response_model=CommentSchema, status_code=201)
async def create_comment(data: CommentCreate, db: AsyncSession = Depends(get_db)):
    """Post a top-level comment, or a reply when ``parent_id`` is set."""
    comment = await comment_service.create_comment(data, db)
    return CommentSchema.model_validate(comment)


@router.get("", response_model=List[CommentWithStats])
async def list_comments(
    series_id: uuid.UUID,
    episode_id: Optional[uuid.UUID] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Top-level comments for a series (or one episode), newest first."""
    return await comment_service.get_comments_with_stats(
        series_id, db, episode_id=episode_id, limit=limit, offset=offset,
    )


@router.get("/{comment_id}/replies", response_model=List[CommentSchema])
async def list_replies(comment_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    replies = await comment_service.list_replies(comment_id, db)
    return [CommentSchema.model_validate(r) for r in replies]


@router.post("/{comment_id}/like", response_model=LikeToggleResult)
async def toggle_like(
    comment_id: uuid.UUID,
    request: LikeToggleRequest,
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.toggle_comment_like(comment_id, request.user_identifier, db)
