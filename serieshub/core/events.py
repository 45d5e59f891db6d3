"""
SeriesHub Change Feed — row-level change notifications via WebSocket + SSE.

Services publish an event after committing a write to ``comments`` or
``comment_likes``. Subscribers filter by series (and optionally episode) and
treat every event as an invalidation signal: they re-fetch, they never apply
the event as a diff.

Events:  INSERT, UPDATE, DELETE (+ HEARTBEAT on idle SSE streams)
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from fastapi import WebSocket

from serieshub.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


# ═══════════════════════════════════════════════════════════════════════════
# Event Types
# ═══════════════════════════════════════════════════════════════════════════

class ChangeEventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    HEARTBEAT = "HEARTBEAT"


@dataclass
class ChangeEvent:
    event_type: str
    table: Optional[str] = None            # comments | comment_likes
    record_id: Optional[str] = None
    series_id: Optional[str] = None
    episode_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    data: Optional[Dict[str, Any]] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)


@dataclass(frozen=True)
class ChangeFilter:
    """Series/episode filter; an unset field matches everything."""
    series_id: Optional[str] = None
    episode_id: Optional[str] = None

    def matches(self, event: ChangeEvent) -> bool:
        if event.event_type == ChangeEventType.HEARTBEAT.value:
            return True
        if self.series_id and event.series_id != self.series_id:
            return False
        if self.episode_id and event.episode_id != self.episode_id:
            return False
        return True


class Subscription:
    """In-process listener (used by the SSE stream and by tests)."""

    def __init__(self, change_filter: ChangeFilter, maxsize: int = 1000):
        self.filter = change_filter
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=maxsize)

    async def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None


# ═══════════════════════════════════════════════════════════════════════════
# Connection Manager
# ═══════════════════════════════════════════════════════════════════════════

class ChangeFeedHub:
    """
    Central hub for change-feed broadcasting.

    - Maintains active WebSocket connections with their filters
    - Maintains in-process subscriptions (SSE streams)
    - Keeps a bounded event buffer for replay (last N events)
    """

    def __init__(self, buffer_size: int = 1000):
        self._connections: Dict[WebSocket, ChangeFilter] = {}
        self._subscriptions: Set[Subscription] = set()
        self._buffer: deque[ChangeEvent] = deque(maxlen=buffer_size)
        self._lock = asyncio.Lock()
        self._stats = {
            "total_events_published": 0,
            "events_dropped": 0,
            "active_connections": 0,
            "active_subscriptions": 0,
        }

    # ── Connection Lifecycle ─────────────────────────────────────────────

    async def connect(self, ws: WebSocket, change_filter: ChangeFilter):
        await ws.accept()
        async with self._lock:
            self._connections[ws] = change_filter
            self._stats["active_connections"] = len(self._connections)
        logger.info(f"Change feed WS connected (total={len(self._connections)})")

    async def disconnect(self, ws: WebSocket):
        async with self._lock:
            self._connections.pop(ws, None)
            self._stats["active_connections"] = len(self._connections)
        logger.info(f"Change feed WS disconnected (total={len(self._connections)})")

    def subscribe(self, change_filter: ChangeFilter) -> Subscription:
        sub = Subscription(change_filter, maxsize=self._buffer.maxlen or 1000)
        self._subscriptions.add(sub)
        self._stats["active_subscriptions"] = len(self._subscriptions)
        return sub

    def unsubscribe(self, sub: Subscription):
        self._subscriptions.discard(sub)
        self._stats["active_subscriptions"] = len(self._subscriptions)

    # ── Publishing ───────────────────────────────────────────────────────

    async def publish(self, event: ChangeEvent):
        """Buffer an event and fan it out to every matching subscriber."""
        self._buffer.append(event)
        self._stats["total_events_published"] += 1

        for sub in list(self._subscriptions):
            if not sub.filter.matches(event):
                continue
            try:
                sub.queue.put_nowait(event)
            except asyncio.QueueFull:
                self._stats["events_dropped"] += 1
                logger.warning("Change feed subscriber queue full, event dropped")

        if not self._connections:
            return

        payload = event.to_json()
        dead: List[WebSocket] = []

        for ws, change_filter in list(self._connections.items()):
            if not change_filter.matches(event):
                continue
            try:
                await ws.send_text(payload)
            except Exception:
                dead.append(ws)

        if dead:
            async with self._lock:
                for ws in dead:
                    self._connections.pop(ws, None)
                self._stats["active_connections"] = len(self._connections)

    async def publish_row_change(
        self,
        event_type: ChangeEventType,
        table: str,
        record_id: Any,
        series_id: Any,
        episode_id: Any = None,
        data: Optional[Dict] = None,
    ):
        await self.publish(ChangeEvent(
            event_type=event_type.value,
            table=table,
            record_id=str(record_id),
            series_id=str(series_id) if series_id else None,
            episode_id=str(episode_id) if episode_id else None,
            data=data,
        ))

    # ── Replay ───────────────────────────────────────────────────────────

    def recent_events(
        self,
        change_filter: Optional[ChangeFilter] = None,
        since: Optional[float] = None,
        limit: int = 500,
    ) -> List[ChangeEvent]:
        events = list(self._buffer)
        if since:
            events = [e for e in events if e.timestamp >= since]
        if change_filter:
            events = [e for e in events if change_filter.matches(e)]
        return events[-limit:]

    async def replay(
        self,
        ws: WebSocket,
        change_filter: ChangeFilter,
        since: Optional[float] = None,
        limit: int = 500,
    ):
        """Send buffered events to a newly connected client for catchup."""
        for event in self.recent_events(change_filter, since=since, limit=limit):
            try:
                await ws.send_text(event.to_json())
            except Exception:
                break

    # ── SSE Fallback Generator ───────────────────────────────────────────

    async def sse_stream(
        self,
        change_filter: ChangeFilter,
        since: Optional[float] = None,
        heartbeat_seconds: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Async generator for Server-Sent Events fallback."""
        heartbeat_seconds = heartbeat_seconds or settings.sse_heartbeat_seconds
        sub = self.subscribe(change_filter)
        try:
            if since:
                for event in self.recent_events(change_filter, since=since, limit=200):
                    yield f"data: {event.to_json()}\n\n"

            while True:
                event = await sub.get(timeout=heartbeat_seconds)
                if event is None:
                    event = ChangeEvent(event_type=ChangeEventType.HEARTBEAT.value)
                yield f"data: {event.to_json()}\n\n"
        finally:
            self.unsubscribe(sub)

    # ── Stats ────────────────────────────────────────────────────────────

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "buffer_size": len(self._buffer),
            "buffer_capacity": self._buffer.maxlen,
        }

    def reset(self):
        self._buffer.clear()
        self._subscriptions.clear()
        self._stats["total_events_published"] = 0
        self._stats["events_dropped"] = 0
        self._stats["active_subscriptions"] = 0


# Module-level singleton
change_feed = ChangeFeedHub(buffer_size=settings.change_feed_buffer_size)
