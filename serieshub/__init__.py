"""SeriesHub — video-series streaming backend."""

__version__ = "1.0.0"
