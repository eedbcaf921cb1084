"""Exceptions raised while talking to the Steam upstreams."""

from __future__ import annotations


class UpstreamError(Exception):
    """Base class for failures reaching the Steam API or store."""


class NetworkError(UpstreamError):
    """Connection-level failure before a response was received."""


class UpstreamTimeout(UpstreamError, TimeoutError):
    """The configured per-call deadline elapsed."""


class UpstreamStatusError(UpstreamError):
    """Upstream answered with an unexpected HTTP status."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        super().__init__(message or f"Upstream returned HTTP {status_code}")


class RateLimitError(UpstreamStatusError):
    """Upstream signalled throttling (HTTP 429)."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(429, message or "Upstream rate limit reached")


class OperationCancelled(Exception):
    """A cancellation token was observed cancelled at a suspension point."""

    def __init__(self, session: int) -> None:
        self.session = session
        super().__init__(f"Load session {session} was cancelled")
