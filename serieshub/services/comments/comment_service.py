"""
SeriesHub Comment Service

Responsibilities:
  - Validate and create comments and replies
  - Toggle likes atomically (insert-or-delete guarded by the unique constraint)
  - Paginated top-level comments with reply counts
  - Reply listing for expanded threads
  - Publish change-feed events after each committed write
"""
from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from serieshub.core.config import get_settings
from serieshub.core.errors import NotFound, SeriesHubError, ValidationFailed
from serieshub.core.events import ChangeEventType, change_feed
from serieshub.core.metrics import COMMENTS_CREATED, LIKE_TOGGLES
from serieshub.models.models import Comment, CommentLike, Episode, Series
from serieshub.schemas.schemas import CommentCreate, CommentWithStats, LikeToggleResult

logger = logging.getLogger(__name__)
settings = get_settings()

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$", re.IGNORECASE)

# A lost insert race flips the toggle to the delete branch, so two rounds suffice
MAX_TOGGLE_ATTEMPTS = 3

comments_table = Comment.__table__
likes_table = CommentLike.__table__


def _insert_ignoring_duplicates(db: AsyncSession, table, values: dict):
    """INSERT ... ON CONFLICT DO NOTHING for the session's dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Unsupported database dialect for like toggling: {dialect}")
    return insert(table).values(**values).on_conflict_do_nothing(
        index_elements=["comment_id", "user_identifier"],
    )


class CommentService:
    """Comment creation, like toggling and retrieval."""

    def __init__(self, max_content_length: int = None, max_author_length: int = None):
        self.max_content_length = max_content_length or settings.comment_max_length
        self.max_author_length = max_author_length or settings.author_name_max_length

    # ── Creation ─────────────────────────────────────────────────────────

    def _clean_fields(self, data: CommentCreate):
        content = (data.content or "").strip()
        author_name = (data.author_name or "").strip()
        author_email = (data.author_email or "").strip() or None

        if not content:
            raise ValidationFailed("Comment content is required")
        if len(content) > self.max_content_length:
            raise ValidationFailed(
                f"Comment content must be at most {self.max_content_length} characters"
            )
        if not author_name:
            raise ValidationFailed("Author name is required")
        if len(author_name) > self.max_author_length:
            raise ValidationFailed(
                f"Author name must be at most {self.max_author_length} characters"
            )
        if author_email is not None and not EMAIL_PATTERN.match(author_email):
            raise ValidationFailed("Author email is not a valid email address")
        return content, author_name, author_email

    async def create_comment(self, data: CommentCreate, db: AsyncSession) -> Comment:
        """Validate references and insert one comment or reply."""
        content, author_name, author_email = self._clean_fields(data)

        if await db.get(Series, data.series_id) is None:
            raise NotFound("Series not found")

        if data.episode_id is not None:
            episode_id = await db.scalar(
                select(Episode.id).where(
                    Episode.id == data.episode_id, Episode.series_id == data.series_id,
                )
            )
            if episode_id is None:
                raise NotFound("Episode not found or does not belong to the specified series")

        if data.parent_id is not None:
            parent_id = await db.scalar(
                select(Comment.id).where(
                    Comment.id == data.parent_id, Comment.series_id == data.series_id,
                )
            )
            if parent_id is None:
                raise NotFound("Parent comment not found or does not belong to the specified series")

        comment = Comment(
            content=content,
            author_name=author_name,
            author_email=author_email,
            series_id=data.series_id,
            episode_id=data.episode_id,
            parent_id=data.parent_id,
            likes_count=0,
        )
        db.add(comment)
        await db.commit()

        COMMENTS_CREATED.labels(kind="reply" if comment.parent_id else "top_level").inc()
        logger.info(f"Comment {comment.id} created on series {comment.series_id}")

        await change_feed.publish_row_change(
            ChangeEventType.INSERT, "comments", comment.id,
            comment.series_id, comment.episode_id,
            data={"parent_id": str(comment.parent_id) if comment.parent_id else None},
        )
        return comment

    # ── Likes ────────────────────────────────────────────────────────────

    async def _bump_likes(self, db: AsyncSession, comment_id: uuid.UUID, delta: int) -> int:
        result = await db.execute(
            update(comments_table)
            .where(comments_table.c.id == comment_id)
            .values(
                likes_count=comments_table.c.likes_count + delta,
                updated_at=datetime.now(timezone.utc),
            )
            .returning(comments_table.c.likes_count)
        )
        return result.scalar_one()

    async def toggle_comment_like(
        self, comment_id: uuid.UUID, user_identifier: str, db: AsyncSession,
    ) -> LikeToggleResult:
        """
        Flip the caller's like on a comment within a single transaction.

        The delete is attempted first; only when nothing was deleted is a row
        inserted, and the insert is a no-op if a concurrent toggle already
        created it. The counter moves in the same transaction as the row.
        """
        if not user_identifier or not user_identifier.strip():
            raise ValidationFailed("Invalid parameters")

        comment = await db.get(Comment, comment_id)
        if comment is None:
            raise NotFound("Comment not found")
        series_id, episode_id = comment.series_id, comment.episode_id

        action: Optional[str] = None
        likes_count = 0
        try:
            for _ in range(MAX_TOGGLE_ATTEMPTS):
                deleted = await db.execute(
                    delete(likes_table).where(
                        likes_table.c.comment_id == comment_id,
                        likes_table.c.user_identifier == user_identifier,
                    )
                )
                if deleted.rowcount:
                    likes_count = await self._bump_likes(db, comment_id, -1)
                    action = "unliked"
                    break

                inserted = await db.execute(
                    _insert_ignoring_duplicates(db, likes_table, {
                        "id": uuid.uuid4(),
                        "comment_id": comment_id,
                        "user_identifier": user_identifier,
                        "created_at": datetime.now(timezone.utc),
                    })
                )
                if inserted.rowcount:
                    likes_count = await self._bump_likes(db, comment_id, 1)
                    action = "liked"
                    break

            if action is None:
                raise SeriesHubError("Like could not be updated, please try again")
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        LIKE_TOGGLES.labels(action=action).inc()
        logger.info(f"Comment {comment_id} {action} (likes={likes_count})")

        await change_feed.publish_row_change(
            ChangeEventType.INSERT if action == "liked" else ChangeEventType.DELETE,
            "comment_likes", comment_id, series_id, episode_id,
        )
        await change_feed.publish_row_change(
            ChangeEventType.UPDATE, "comments", comment_id, series_id, episode_id,
            data={"likes_count": likes_count},
        )

        return LikeToggleResult(
            action=action,
            likes_count=likes_count,
            user_liked=action == "liked",
        )

    # ── Retrieval ────────────────────────────────────────────────────────

    async def get_comments_with_stats(
        self,
        series_id: uuid.UUID,
        db: AsyncSession,
        episode_id: Optional[uuid.UUID] = None,
        limit: int = None,
        offset: int = 0,
    ) -> List[CommentWithStats]:
        """Top-level comments, newest first, each with its reply count."""
        limit = settings.comments_default_limit if limit is None else limit
        if limit < 1 or limit > settings.comments_max_limit:
            raise ValidationFailed(f"limit must be between 1 and {settings.comments_max_limit}")
        if offset < 0:
            raise ValidationFailed("offset must not be negative")

        reply = aliased(Comment)
        reply_counts = (
            select(reply.parent_id.label("parent_id"), func.count(reply.id).label("reply_count"))
            .where(reply.parent_id.is_not(None))
            .group_by(reply.parent_id)
            .subquery()
        )

        query = (
            select(Comment, func.coalesce(reply_counts.c.reply_count, 0))
            .outerjoin(reply_counts, reply_counts.c.parent_id == Comment.id)
            .where(Comment.series_id == series_id, Comment.parent_id.is_(None))
        )
        if episode_id is not None:
            query = query.where(Comment.episode_id == episode_id)

        query = (
            query.order_by(Comment.created_at.desc(), Comment.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(query)

        items = []
        for comment, reply_count in result.all():
            item = CommentWithStats.model_validate(comment)
            item.reply_count = int(reply_count or 0)
            items.append(item)
        return items

    async def list_replies(self, comment_id: uuid.UUID, db: AsyncSession) -> List[Comment]:
        """Replies to a comment, oldest first."""
        if await db.get(Comment, comment_id) is None:
            raise NotFound("Comment not found")
        result = await db.execute(
            select(Comment)
            .where(Comment.parent_id == comment_id)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        return list(result.scalars().all())


comment_service = CommentService()
