"""
Paginated comment list for one series (or episode).

Keeps the pages loaded so far, grows with ``load_more`` and re-fetches
everything on ``refresh``, which is what a change-feed event triggers.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from serieshub.client.api_client import ClientError, IdLike, SeriesHubClient
from serieshub.core.config import get_settings
from serieshub.schemas.schemas import CommentSchema, CommentWithStats

logger = logging.getLogger(__name__)
settings = get_settings()


class CommentsPager:

    def __init__(
        self,
        client: SeriesHubClient,
        series_id: IdLike,
        episode_id: Optional[IdLike] = None,
        page_size: Optional[int] = None,
    ):
        self.client = client
        self.series_id = series_id
        self.episode_id = episode_id
        self.page_size = page_size or settings.comments_page_size
        self.page = 0
        self.comments: List[CommentWithStats] = []
        self.has_more = False
        self.error: Optional[str] = None
        self._replies: dict = {}

    @property
    def total(self) -> int:
        return len(self.comments)

    def _fetch(self, limit: int, offset: int) -> Optional[List[CommentWithStats]]:
        try:
            items = self.client.list_comments(
                self.series_id, episode_id=self.episode_id, limit=limit, offset=offset,
            )
        except ClientError as e:
            logger.warning(f"Failed to load comments for series {self.series_id}: {e.message}")
            self.error = e.message
            return None
        self.error = None
        return items

    def load_first(self) -> List[CommentWithStats]:
        """Load (or retry loading) the first page, discarding later pages."""
        items = self._fetch(self.page_size, 0)
        if items is not None:
            self.page = 0
            self.comments = items
            self.has_more = len(items) == self.page_size
        return self.comments

    def load_more(self) -> List[CommentWithStats]:
        if not self.has_more:
            return []
        next_page = self.page + 1
        items = self._fetch(self.page_size, next_page * self.page_size)
        if items is None:
            return []
        self.page = next_page
        self.comments.extend(items)
        self.has_more = len(items) == self.page_size
        return items

    def refresh(self) -> List[CommentWithStats]:
        """Re-fetch every loaded page in one call."""
        limit = min((self.page + 1) * self.page_size, settings.comments_max_limit)
        items = self._fetch(limit, 0)
        if items is not None:
            self.comments = items
            self.has_more = len(items) == limit
            self._replies.clear()
        return self.comments

    def on_comment_added(self) -> List[CommentWithStats]:
        return self.load_first()

    # ── Threads ──────────────────────────────────────────────────────────

    def replies(self, comment_id: IdLike) -> List[CommentSchema]:
        """
        Replies of an expanded thread, fetched on first expansion.

        A failed fetch sets ``error`` and returns an empty list without caching,
        so expanding again retries.
        """
        key = str(comment_id)
        if key not in self._replies:
            try:
                self._replies[key] = self.client.list_replies(comment_id)
            except ClientError as e:
                logger.warning(f"Failed to load replies for comment {comment_id}: {e.message}")
                self.error = e.message
                return []
            self.error = None
        return self._replies[key]
