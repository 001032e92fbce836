"""
Error taxonomy for upstream data acquisition.

Every failure raised while talking to an upstream service derives from
UpstreamError so that cascade and combinator layers can convert it into a
"no result" signal with a single except clause. FetchCancelled is the one
exception to that rule: a caller-requested cancellation must propagate.
"""


class UpstreamError(Exception):
    """Base class for failures of an upstream geospatial or hydrologic service."""


class FetchError(UpstreamError):
    """Raised when a request could not be completed with a success status."""

    def __init__(self, message: str, url: str = "", status: int | None = None, preview: str = "") -> None:
        """
        Initialize a fetch error.

        Args:
            message: Human-readable error message
            url: URL of the last attempted request
            status: HTTP status of the last response, None for network errors
            preview: Truncated, whitespace-collapsed body of the last response
        """
        self.url = url
        self.status = status
        self.preview = preview
        super().__init__(message)


class FetchCancelled(FetchError):
    """Raised when the caller's cancellation token fired before a response arrived."""


class ShapeError(UpstreamError, ValueError):
    """Raised when a success response does not carry the expected structure."""


class SnapError(UpstreamError):
    """Raised when no stream reach with an identifier could be found near a point."""
