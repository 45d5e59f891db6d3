"""
SeriesHub API client — the data layer a front end talks through.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Union

import requests

from serieshub.client.preferences import PreferenceStore
from serieshub.core.config import get_settings
from serieshub.schemas.schemas import (
    CommentSchema,
    CommentWithStats,
    EpisodeSchema,
    LikeToggleResult,
    PlaybackSelection,
    SeriesSchema,
)

logger = logging.getLogger(__name__)
settings = get_settings()

RETRY_MESSAGE = "Something went wrong, please try again"

IdLike = Union[str, uuid.UUID]

_DEFAULT_TIMEOUT = object()


class ClientError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ApiError(ClientError):
    """The server rejected the call (validation, authorization, not found)."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class TransientError(ClientError):
    """The request never completed; the user may retry."""


def _error_detail(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, list):
        return "; ".join(str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in detail)
    return str(detail or f"HTTP {response.status_code}")


class SeriesHubClient:
    """
    HTTP client for the SeriesHub API.

    ``session`` may be any object with a requests-style ``request`` method
    (a ``requests.Session`` by default).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        preferences: Optional[PreferenceStore] = None,
        session: Any = None,
        timeout: Any = _DEFAULT_TIMEOUT,
    ):
        self.base_url = (settings.api_base_url if base_url is None else base_url).rstrip("/")
        self.preferences = preferences or PreferenceStore()
        self.session = session or requests.Session()
        self.timeout = settings.request_timeout_seconds if timeout is _DEFAULT_TIMEOUT else timeout

    # ── Transport ────────────────────────────────────────────────────────

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, **kwargs) -> Any:
        if self.timeout is not None:
            kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, self._url(path), **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransientError(RETRY_MESSAGE) from e

        if response.status_code >= 400:
            raise ApiError(response.status_code, _error_detail(response))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @contextmanager
    def stream(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
        """Open a streaming GET (used for the SSE change feed)."""
        try:
            response = self.session.get(self._url(path), params=params, stream=True)
        except requests.RequestException as e:
            logger.error(f"GET {path} stream failed: {e}")
            raise TransientError(RETRY_MESSAGE) from e
        try:
            if response.status_code >= 400:
                raise ApiError(response.status_code, _error_detail(response))
            yield response
        finally:
            response.close()

    # ── Series ───────────────────────────────────────────────────────────

    def list_series(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[SeriesSchema]:
        params = {"limit": limit, "offset": offset}
        if status:
            params["status"] = status
        return [SeriesSchema.model_validate(s) for s in self._request("GET", "/series", params=params)]

    def get_series(self, series_id: IdLike) -> SeriesSchema:
        return SeriesSchema.model_validate(self._request("GET", f"/series/{series_id}"))

    def list_episodes(self, series_id: IdLike) -> List[EpisodeSchema]:
        return [EpisodeSchema.model_validate(e) for e in self._request("GET", f"/series/{series_id}/episodes")]

    def get_playback(self, series_id: IdLike, origin: Optional[str] = None) -> PlaybackSelection:
        params = {"origin": origin} if origin else None
        return PlaybackSelection.model_validate(
            self._request("GET", f"/series/{series_id}/playback", params=params)
        )

    def increment_view(self, series_id: IdLike) -> int:
        return self._request("POST", f"/series/{series_id}/views")["views_count"]

    def update_series_status(self, admin_code: str, series_id: IdLike, status: str) -> None:
        self._request(
            "POST", f"/admin/series/{series_id}/status",
            json={"admin_code": admin_code, "status": status},
        )

    # ── Comments ─────────────────────────────────────────────────────────

    def create_comment(
        self,
        series_id: IdLike,
        content: str,
        author_name: Optional[str] = None,
        author_email: Optional[str] = None,
        episode_id: Optional[IdLike] = None,
        parent_id: Optional[IdLike] = None,
    ) -> CommentSchema:
        """Post a comment; on success the author is remembered for next time."""
        author_name = author_name if author_name is not None else (self.preferences.author_name or "")
        if author_email is None:
            author_email = self.preferences.author_email
        payload = {
            "content": content.strip(),
            "author_name": author_name.strip(),
            "author_email": (author_email or "").strip() or None,
            "series_id": str(series_id),
            "episode_id": str(episode_id) if episode_id else None,
            "parent_id": str(parent_id) if parent_id else None,
        }
        comment = CommentSchema.model_validate(self._request("POST", "/comments", json=payload))
        self.preferences.remember_author(payload["author_name"], payload["author_email"])
        return comment

    def list_comments(
        self,
        series_id: IdLike,
        episode_id: Optional[IdLike] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[CommentWithStats]:
        params = {"series_id": str(series_id), "limit": limit, "offset": offset}
        if episode_id:
            params["episode_id"] = str(episode_id)
        return [CommentWithStats.model_validate(c) for c in self._request("GET", "/comments", params=params)]

    def list_replies(self, comment_id: IdLike) -> List[CommentSchema]:
        return [CommentSchema.model_validate(c) for c in self._request("GET", f"/comments/{comment_id}/replies")]

    def toggle_like(self, comment_id: IdLike) -> LikeToggleResult:
        result = LikeToggleResult.model_validate(self._request(
            "POST", f"/comments/{comment_id}/like",
            json={"user_identifier": self.preferences.user_identifier},
        ))
        self.preferences.set_liked(comment_id, result.user_liked)
        return result

    def is_liked(self, comment_id: IdLike) -> bool:
        return self.preferences.is_liked(comment_id)
