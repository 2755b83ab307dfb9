"""Errors raised while fetching and interpreting a pipeline's feed.

Every error carries the user-visible description as its message. The feed
readers catch them and store ``str(error)`` as the pipeline's connection error.
"""

from datetime import datetime
from http import HTTPStatus


def http_status_description(status_code: int) -> str:
    """Describe an HTTP status code, e.g. 'The server responded: not found'."""
    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        phrase = f"status {status_code}"
    return f"The server responded: {phrase.lower()}"


class FeedReaderError(Exception):
    """Base class for all feed errors."""

    pass


class InvalidURLError(FeedReaderError):
    """Raised when a feed or request URL cannot be used."""

    def __init__(self, url: str):
        self.url = url
        super().__init__("The URL is invalid.")


class TransportError(FeedReaderError):
    """Raised when no HTTP response was received (connection failure, timeout)."""

    def __init__(self, description: str):
        self.description = description
        super().__init__(description)


class HTTPStatusError(FeedReaderError):
    """Raised for a non-200 response that is not a rate limit."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(http_status_description(status_code))


class RateLimitError(FeedReaderError):
    """Raised for a 403/429 response whose rate-limit headers show no remaining requests."""

    def __init__(self, reset_epoch: int):
        self.reset_epoch = reset_epoch
        try:
            next_update = datetime.fromtimestamp(reset_epoch).strftime("%H:%M")
        except (OverflowError, OSError, ValueError):
            super().__init__("Rate limit exceeded.")
        else:
            super().__init__(f"Rate limit exceeded. Next update at {next_update}.")


class MalformedDocumentError(FeedReaderError):
    """Raised when a response body is not a well-formed document for its format."""

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__("The feed is not a valid document.")


class TargetNotFoundError(FeedReaderError):
    """Raised when a well-formed document has no entry for the pipeline."""

    def __init__(self) -> None:
        super().__init__("The server did not provide a status for this pipeline.")


class AuthorizationError(FeedReaderError):
    """Raised when the GitHub device flow ends without an access token."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Authorization failed: {reason}")
