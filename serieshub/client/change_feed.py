"""
Client side of the change feed: read the SSE stream and refetch on events.
"""
from __future__ import annotations

import json
import logging
from typing import Iterable, Iterator, Optional

from serieshub.client.api_client import ClientError, IdLike, SeriesHubClient
from serieshub.client.comments_pager import CommentsPager
from serieshub.core.events import ChangeEvent, ChangeEventType

logger = logging.getLogger(__name__)


def parse_sse_lines(lines: Iterable) -> Iterator[ChangeEvent]:
    """Decode ``data:`` lines into events, skipping heartbeats and junk."""
    for line in lines:
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        if not line or not line.startswith("data:"):
            continue
        try:
            payload = json.loads(line[len("data:"):].strip())
            event = ChangeEvent(**payload)
        except (ValueError, TypeError) as e:
            logger.debug(f"Skipping malformed change event: {e}")
            continue
        if event.event_type == ChangeEventType.HEARTBEAT.value:
            continue
        yield event


class ChangeFeedReader:
    """Iterates change events for one series (optionally one episode)."""

    def __init__(self, client: SeriesHubClient, series_id: IdLike, episode_id: Optional[IdLike] = None):
        self.client = client
        self.series_id = series_id
        self.episode_id = episode_id

    def events(self) -> Iterator[ChangeEvent]:
        params = {"series_id": str(self.series_id)}
        if self.episode_id:
            params["episode_id"] = str(self.episode_id)
        with self.client.stream("/sse/changes", params=params) as response:
            yield from parse_sse_lines(response.iter_lines())


def refresh_on_changes(
    events: Iterable[ChangeEvent],
    pager: CommentsPager,
    max_events: Optional[int] = None,
) -> int:
    """
    Treat each event as an invalidation signal and refetch the pager.

    Returns the number of refreshes performed. Feed failures end the loop;
    callers reconnect.
    """
    refreshes = 0
    try:
        for _ in events:
            pager.refresh()
            refreshes += 1
            if max_events is not None and refreshes >= max_events:
                break
    except ClientError as e:
        logger.warning(f"Change feed closed: {e.message}")
    return refreshes
