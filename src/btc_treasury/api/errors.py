"""Upstream failure taxonomy shared by every HTTP client."""
from __future__ import annotations

from typing import Optional


class UpstreamError(RuntimeError):
    """Raised when an upstream API cannot deliver a usable payload."""


class UpstreamTransportError(UpstreamError):
    """Network failure, timeout or a non-2xx HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamShapeError(UpstreamError):
    """The response arrived but is not the JSON structure we expect, or reports ``success: false``."""

    def __init__(self, message: str, upstream_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.upstream_message = upstream_message
