"""
Local preference store for SeriesHub clients.

Holds what a browser would keep in local storage: the remembered comment
author, the client-generated like identifier, and the ids of comments this
client has liked. The liked set drives optimistic UI state only; the server
never trusts it.
"""
from __future__ import annotations

import json
import logging
import random
import string
import threading
import time
from pathlib import Path
from typing import Optional, Set, Union

from pydantic import BaseModel, Field, ValidationError

from serieshub.core.config import get_settings

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def generate_user_identifier() -> str:
    """``user_<epoch ms>_<9 base36 chars>``"""
    suffix = "".join(random.choice(_BASE36) for _ in range(9))
    return f"user_{int(time.time() * 1000)}_{suffix}"


class LocalPreferences(BaseModel):
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    user_identifier: Optional[str] = None
    liked_comment_ids: Set[str] = Field(default_factory=set)


class PreferenceStore:
    """JSON-file backed preferences; ``path=None`` keeps them in memory only."""

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path).expanduser() if path else None
        self._lock = threading.Lock()
        self.data = self._load()

    @classmethod
    def from_settings(cls) -> "PreferenceStore":
        """Store at the configured ``preferences_path``."""
        return cls(get_settings().preferences_path)

    def _load(self) -> LocalPreferences:
        if self.path is None or not self.path.exists():
            return LocalPreferences()
        try:
            return LocalPreferences.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable preferences at {self.path}: {e}")
            return LocalPreferences()

    def save(self):
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = self.data.model_dump(mode="json")
        payload["liked_comment_ids"] = sorted(self.data.liked_comment_ids)
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # ── Author ───────────────────────────────────────────────────────────

    @property
    def author_name(self) -> Optional[str]:
        return self.data.author_name

    @property
    def author_email(self) -> Optional[str]:
        return self.data.author_email

    def remember_author(self, name: str, email: Optional[str] = None):
        """Keep the name; keep the email only when one was given."""
        with self._lock:
            self.data.author_name = name.strip()
            if email and email.strip():
                self.data.author_email = email.strip()
            self.save()

    # ── Likes ────────────────────────────────────────────────────────────

    @property
    def user_identifier(self) -> str:
        with self._lock:
            if not self.data.user_identifier:
                self.data.user_identifier = generate_user_identifier()
                self.save()
            return self.data.user_identifier

    def is_liked(self, comment_id) -> bool:
        return str(comment_id) in self.data.liked_comment_ids

    def set_liked(self, comment_id, liked: bool):
        with self._lock:
            if liked:
                self.data.liked_comment_ids.add(str(comment_id))
            else:
                self.data.liked_comment_ids.discard(str(comment_id))
            self.save()
