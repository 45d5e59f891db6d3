"""
SeriesHub ORM Models.

Series and episodes are curated elsewhere and only read (or counter-bumped)
here; comments and comment likes are written by the comment service.
"""
from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint, DateTime, Enum, ForeignKey, Index,
    Integer, String, Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from serieshub.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════

class SeriesStatus(str, enum.Enum):
    ONGOING = "ongoing"
    COMPLETED = "completed"


# ═══════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════

class Series(Base):
    __tablename__ = "series"
    __table_args__ = (
        Index("ix_series_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(512))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dailymotion_playlist_id: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    youtube_playlist_id: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    cover_image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    views_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_sum: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[SeriesStatus] = mapped_column(
        Enum(SeriesStatus, name="series_status", values_callable=lambda e: [m.value for m in e]),
        default=SeriesStatus.ONGOING,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    episodes: Mapped[List["Episode"]] = relationship(
        "Episode", back_populates="series", cascade="all, delete-orphan",
    )

    @property
    def rating_average(self) -> float:
        if not self.rating_count:
            return 0.0
        return round(self.rating_sum / self.rating_count, 1)


class Episode(Base):
    __tablename__ = "episodes"
    __table_args__ = (
        Index("ix_episodes_series_order", "series_id", "season_number", "episode_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    series_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("series.id", ondelete="CASCADE"))
    title: Mapped[str] = mapped_column(String(512))
    dailymotion_video_id: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    youtube_video_id: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    season_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    episode_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    series: Mapped["Series"] = relationship("Series", back_populates="episodes")


# ═══════════════════════════════════════════════════════════════════════
# Comments
# ═══════════════════════════════════════════════════════════════════════

class Comment(Base):
    """
    Series/episode comment. Top-level comments have no parent; replies point
    at a comment of the same series.
    """
    __tablename__ = "comments"
    __table_args__ = (
        CheckConstraint(
            "length(trim(content)) > 0 AND length(content) <= 2000", name="content_length",
        ),
        CheckConstraint(
            "length(trim(author_name)) > 0 AND length(author_name) <= 100", name="author_name_length",
        ),
        Index("ix_comments_series_id", "series_id"),
        Index("ix_comments_episode_id", "episode_id"),
        Index("ix_comments_parent_id", "parent_id"),
        Index("ix_comments_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    content: Mapped[str] = mapped_column(Text)
    author_name: Mapped[str] = mapped_column(String(100))
    author_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    series_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("series.id", ondelete="CASCADE"))
    episode_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("episodes.id", ondelete="CASCADE"), nullable=True,
    )
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("comments.id", ondelete="CASCADE"), nullable=True,
    )
    likes_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class CommentLike(Base):
    """One row per (comment, user identifier); the toggle's idempotency guard."""
    __tablename__ = "comment_likes"
    __table_args__ = (
        UniqueConstraint("comment_id", "user_identifier", name="uq_comment_likes_comment_user"),
        CheckConstraint("length(trim(user_identifier)) > 0", name="user_identifier_present"),
        Index("ix_comment_likes_comment_id", "comment_id"),
        Index("ix_comment_likes_user", "user_identifier"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    comment_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("comments.id", ondelete="CASCADE"))
    user_identifier: Mapped[str] = mapped_column(String(256))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
