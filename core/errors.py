"""
Error kinds raised by the feed pipeline.

Only NetworkError is retried; every other kind aborts the run.
"""
from typing import Optional


class HotFeedError(Exception):
    """Base exception for the hot articles feed builder."""
    pass


class NetworkError(HotFeedError):
    """Transport failure or non-2xx HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class ExtractionError(HotFeedError):
    """The page no longer carries the embedded __NUXT__ expression."""
    pass


class SandboxError(HotFeedError):
    """Evaluating the embedded expression failed, timed out or produced nothing."""
    pass


class StructureError(HotFeedError):
    """The recovered state does not hold data[0].hotArticlesList."""
    pass


class FilesystemError(HotFeedError):
    """The output file could not be written."""
    pass
