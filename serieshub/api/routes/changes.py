"""
SeriesHub API — WebSocket & SSE Routes for the comment change feed

WebSocket primary, SSE fallback. Supports:
  - Filtering by series and episode
  - Replay from timestamp
  - Ping/pong keepalive
"""
from __future__ import annotations

import json
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from serieshub.core.events import ChangeFilter, change_feed

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Change Feed"])


def _filter(series_id: Optional[uuid.UUID], episode_id: Optional[uuid.UUID]) -> ChangeFilter:
    # Events carry str(uuid), so filters use the same canonical form
    return ChangeFilter(
        series_id=str(series_id) if series_id else None,
        episode_id=str(episode_id) if episode_id else None,
    )


@router.websocket("/ws/changes")
async def changes_websocket(
    ws: WebSocket,
    series_id: Optional[uuid.UUID] = Query(None),
    episode_id: Optional[uuid.UUID] = Query(None),
    replay_since: Optional[float] = Query(None),
):
    """
    WebSocket endpoint for comment/like change notifications.

    Query params:
      series_id / episode_id: only receive events for this series (episode)
      replay_since: Unix timestamp to replay buffered events from
    """
    change_filter = _filter(series_id, episode_id)
    await change_feed.connect(ws, change_filter)

    try:
        if replay_since:
            await change_feed.replay(ws, change_filter, since=replay_since)

        while True:
            try:
                msg = json.loads(await ws.receive_text())
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            if msg.get("type") == "ping":
                await ws.send_text(json.dumps({"type": "pong"}))
            elif msg.get("type") == "replay":
                await change_feed.replay(ws, change_filter, since=msg.get("since"))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"Change feed WebSocket error: {e}")
    finally:
        await change_feed.disconnect(ws)


@router.get("/sse/changes")
async def changes_sse(
    series_id: Optional[uuid.UUID] = Query(None),
    episode_id: Optional[uuid.UUID] = Query(None),
    replay_since: Optional[float] = Query(None),
):
    """SSE fallback endpoint for clients without WebSocket support."""
    change_filter = _filter(series_id, episode_id)
    return StreamingResponse(
        change_feed.sse_stream(change_filter, since=replay_since),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/ws/stats")
async def change_feed_stats():
    """Change feed connection statistics."""
    return change_feed.get_stats()
