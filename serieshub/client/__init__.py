"""SeriesHub client data layer."""

from .api_client import ApiError, ClientError, SeriesHubClient, TransientError
from .change_feed import ChangeFeedReader, refresh_on_changes
from .comments_pager import CommentsPager
from .preferences import LocalPreferences, PreferenceStore
from .view_tracker import ViewTracker, WatchSummary

__all__ = [
    "ApiError",
    "ChangeFeedReader",
    "ClientError",
    "CommentsPager",
    "LocalPreferences",
    "PreferenceStore",
    "SeriesHubClient",
    "TransientError",
    "ViewTracker",
    "WatchSummary",
    "refresh_on_changes",
]
