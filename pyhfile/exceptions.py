"""Exception hierarchy for hfile client operations."""

from typing import Any, Optional


class HfileAPIError(Exception):
    """Base exception for all hfile client errors."""


class HfileConfigError(HfileAPIError):
    """Configuration is missing or invalid (no token, unreadable config file)."""


class HfileRepositoryNotFoundError(HfileConfigError):
    """No directory containing the repository metadata marker was found."""


class HfileAuthenticationError(HfileAPIError):
    """The server rejected the token (missing, invalid or expired)."""


class HfileNetworkError(HfileAPIError):
    """Transport-level failure: connection refused, DNS error, timeout."""


class HfileInvalidResponseError(HfileAPIError):
    """The server answered with a malformed or unexpected response shape."""


class HfileServerError(HfileAPIError):
    """A well-formed response signalling an application-level rejection."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        details: Optional[list[Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.details = details or []


class HfileUploadError(HfileServerError):
    """Upload (single-shot or chunked) was rejected by the server."""


class HfileDownloadError(HfileServerError):
    """Download was rejected by the server."""
