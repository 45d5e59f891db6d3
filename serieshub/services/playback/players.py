"""
SeriesHub Players — provider capability interface and id resolution.

Both embedded players are reduced to the same surface: normalize a video or
playlist reference, build an embed URL, and translate the provider's
postMessage payload into play / pause / ended callbacks.
"""
from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence
from urllib.parse import parse_qs, urlencode, urlparse

from serieshub.schemas.schemas import PlaybackSelection


class PlaybackEvent(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    ENDED = "ended"


class PlayerListener(Protocol):
    def on_play(self) -> None: ...

    def on_pause(self) -> None: ...

    def on_ended(self) -> None: ...


def _decode_message(data: Any) -> Optional[Dict[str, Any]]:
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            return None
    return data if isinstance(data, dict) else None


class VideoProvider:
    name: str = ""
    origin: str = ""

    def normalize_video_id(self, value: Optional[str]) -> Optional[str]:
        raise NotImplementedError

    def normalize_playlist_id(self, value: Optional[str]) -> Optional[str]:
        raise NotImplementedError

    def embed_url(self, video_id: Optional[str] = None, playlist_id: Optional[str] = None,
                  page_origin: Optional[str] = None) -> str:
        raise NotImplementedError

    def parse_event(self, payload: Dict[str, Any]) -> Optional[PlaybackEvent]:
        raise NotImplementedError

    def translate_message(self, origin: str, data: Any) -> Optional[PlaybackEvent]:
        """Map a raw window message to a playback event; foreign or malformed messages yield None."""
        if origin != self.origin:
            return None
        payload = _decode_message(data)
        if payload is None:
            return None
        return self.parse_event(payload)

    def dispatch(self, origin: str, data: Any, listener: PlayerListener) -> Optional[PlaybackEvent]:
        event = self.translate_message(origin, data)
        if event is PlaybackEvent.PLAY:
            listener.on_play()
        elif event is PlaybackEvent.PAUSE:
            listener.on_pause()
        elif event is PlaybackEvent.ENDED:
            listener.on_ended()
        return event


class DailymotionProvider(VideoProvider):
    name = "dailymotion"
    origin = "https://www.dailymotion.com"

    _SHORT_RE = re.compile(r"dai\.ly/([A-Za-z0-9]+)", re.IGNORECASE)
    _FULL_RE = re.compile(r"dailymotion\.com/video/([A-Za-z0-9]+)", re.IGNORECASE)
    _PLAYLIST_RE = re.compile(r"playlist/([A-Za-z0-9]+)", re.IGNORECASE)
    _EMBED_PARAMS = {
        "queue-enable": "false",
        "sharing-enable": "false",
        "ui-start-screen-info": "false",
        "autoplay": "0",
        "mute": "0",
        "queue-autoplay-next": "false",
    }
    _EVENTS = {
        "video-play": PlaybackEvent.PLAY,
        "video-pause": PlaybackEvent.PAUSE,
        "video-end": PlaybackEvent.ENDED,
    }

    def normalize_video_id(self, value):
        if not value:
            return None
        clean = value.split("?")[0]
        for pattern in (self._SHORT_RE, self._FULL_RE):
            match = pattern.search(clean)
            if match:
                return match.group(1)
        return value

    def normalize_playlist_id(self, value):
        if not value:
            return None
        match = self._PLAYLIST_RE.search(value.split("?")[0])
        return match.group(1) if match else value

    def embed_url(self, video_id=None, playlist_id=None, page_origin=None):
        playlist_id = self.normalize_playlist_id(playlist_id)
        if playlist_id:
            path = f"playlist/{playlist_id}"
        else:
            path = f"video/{self.normalize_video_id(video_id)}"
        return f"{self.origin}/embed/{path}?{urlencode(self._EMBED_PARAMS)}"

    def parse_event(self, payload):
        return self._EVENTS.get(payload.get("event"))


class YouTubeProvider(VideoProvider):
    name = "youtube"
    origin = "https://www.youtube.com"

    _EMBED_RE = re.compile(r"/embed/([A-Za-z0-9_-]{6,})", re.IGNORECASE)
    # YT.PlayerState values carried in "video-progress" messages
    _STATES = {
        1: PlaybackEvent.PLAY,
        2: PlaybackEvent.PAUSE,
        0: PlaybackEvent.ENDED,
    }

    def normalize_video_id(self, value):
        if not value:
            return None
        url = urlparse(value if "//" in value else f"//{value}")
        host = (url.hostname or "").lower()
        if "youtube.com" in host:
            v = parse_qs(url.query).get("v")
            if v and v[0]:
                return v[0]
            match = self._EMBED_RE.search(url.path)
            if match:
                return match.group(1)
        if "youtu.be" in host:
            short = url.path.lstrip("/")
            if short:
                return short
        return value

    def normalize_playlist_id(self, value):
        if not value:
            return None
        url = urlparse(value if "//" in value else f"//{value}")
        if "youtube.com" in (url.hostname or "").lower():
            listing = parse_qs(url.query).get("list")
            if listing and listing[0]:
                return listing[0]
        return value

    def embed_url(self, video_id=None, playlist_id=None, page_origin=None):
        params = {"enablejsapi": "1"}
        if page_origin:
            params["origin"] = page_origin
        playlist_id = self.normalize_playlist_id(playlist_id)
        if playlist_id:
            return f"{self.origin}/embed/videoseries?{urlencode({'list': playlist_id, **params})}"
        return f"{self.origin}/embed/{self.normalize_video_id(video_id)}?{urlencode(params)}"

    def parse_event(self, payload):
        if payload.get("event") != "video-progress":
            return None
        info = payload.get("info")
        if not isinstance(info, dict):
            return None
        return self._STATES.get(info.get("playerState"))


PROVIDERS: Dict[str, VideoProvider] = {
    DailymotionProvider.name: DailymotionProvider(),
    YouTubeProvider.name: YouTubeProvider(),
}


def get_provider(name: str) -> VideoProvider:
    try:
        return PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unknown video provider: {name}")


def episode_source(episode: Any) -> Optional[tuple]:
    """(provider, video id) for an episode, preferring Dailymotion."""
    if getattr(episode, "dailymotion_video_id", None):
        return DailymotionProvider.name, episode.dailymotion_video_id
    if getattr(episode, "youtube_video_id", None):
        return YouTubeProvider.name, episode.youtube_video_id
    return None


def select_playback(series: Any, episodes: Sequence[Any],
                    page_origin: Optional[str] = None) -> PlaybackSelection:
    """
    Pick what a series page embeds first: a Dailymotion playlist, then a
    YouTube playlist, then the first episode's video.
    """
    if getattr(series, "dailymotion_playlist_id", None):
        provider = PROVIDERS[DailymotionProvider.name]
        playlist_id = provider.normalize_playlist_id(series.dailymotion_playlist_id)
        return PlaybackSelection(
            provider=provider.name, playlist_id=playlist_id,
            embed_url=provider.embed_url(playlist_id=playlist_id, page_origin=page_origin),
        )
    if getattr(series, "youtube_playlist_id", None):
        provider = PROVIDERS[YouTubeProvider.name]
        playlist_id = provider.normalize_playlist_id(series.youtube_playlist_id)
        return PlaybackSelection(
            provider=provider.name, playlist_id=playlist_id,
            embed_url=provider.embed_url(playlist_id=playlist_id, page_origin=page_origin),
        )

    episodes: List[Any] = list(episodes)
    source = episode_source(episodes[0]) if episodes else None
    if source is None:
        return PlaybackSelection()

    provider = PROVIDERS[source[0]]
    video_id = provider.normalize_video_id(source[1])
    return PlaybackSelection(
        provider=provider.name, video_id=video_id,
        embed_url=provider.embed_url(video_id=video_id, page_origin=page_origin),
    )
