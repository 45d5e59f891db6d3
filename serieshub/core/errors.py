"""
SeriesHub error taxonomy.

Service functions raise these; the API renders every one of them with the same
``{"detail": message}`` body, differing only in status code.
"""
from __future__ import annotations


class SeriesHubError(Exception):
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(SeriesHubError):
    """Blank, oversized or malformed input."""
    status_code = 400


class Unauthorized(SeriesHubError):
    status_code = 403


class NotFound(SeriesHubError):
    """A referenced series, episode or comment does not exist."""
    status_code = 404
