"""
SeriesHub API Schemas — Pydantic v2 models for request/response validation.

Every procedure result is an explicit model; no loose JSON payloads.
"""
from __future__ import annotations

import hashlib
import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from serieshub.models.models import SeriesStatus

GRAVATAR_URL = "https://www.gravatar.com/avatar/{digest}?d=identicon&s=32"


def gravatar_url(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    digest = hashlib.md5(email.strip().lower().encode("utf-8")).hexdigest()
    return GRAVATAR_URL.format(digest=digest)


# ═══════════════════════════════════════════════════════════════════════
# Series & Episodes
# ═══════════════════════════════════════════════════════════════════════

class SeriesSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: Optional[str] = None
    dailymotion_playlist_id: Optional[str] = None
    youtube_playlist_id: Optional[str] = None
    cover_image_url: Optional[str] = None
    views_count: int = 0
    rating_sum: int = 0
    rating_count: int = 0
    rating_average: float = 0.0
    status: SeriesStatus = SeriesStatus.ONGOING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EpisodeSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    series_id: uuid.UUID
    title: str
    dailymotion_video_id: Optional[str] = None
    youtube_video_id: Optional[str] = None
    season_number: Optional[int] = None
    episode_number: Optional[int] = None


class ViewCountResult(BaseModel):
    series_id: uuid.UUID
    views_count: int


class PlaybackSelection(BaseModel):
    """What the series page should embed first."""
    provider: Optional[Literal["dailymotion", "youtube"]] = None
    video_id: Optional[str] = None
    playlist_id: Optional[str] = None
    embed_url: Optional[str] = None


class AdminStatusUpdate(BaseModel):
    admin_code: str
    status: SeriesStatus


# ═══════════════════════════════════════════════════════════════════════
# Comments
# ═══════════════════════════════════════════════════════════════════════

class CommentCreate(BaseModel):
    content: str
    author_name: str
    author_email: Optional[str] = None
    series_id: uuid.UUID
    episode_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None


class CommentSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    content: str
    author_name: str
    author_email: Optional[str] = None
    series_id: uuid.UUID
    episode_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None
    likes_count: int = 0
    created_at: datetime
    updated_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def avatar_url(self) -> Optional[str]:
        return gravatar_url(self.author_email)


class CommentWithStats(CommentSchema):
    reply_count: int = 0


class LikeToggleRequest(BaseModel):
    user_identifier: str = Field(..., max_length=256)


class LikeToggleResult(BaseModel):
    action: Literal["liked", "unliked"]
    likes_count: int
    user_liked: bool
