"""Errors raised by the GitHub content client."""

from __future__ import annotations


class ContentError(Exception):
    """Base exception for remote content failures."""


class ConfigurationInvalid(ContentError):
    """Raised when a repository configuration is missing owner or repo."""


class NotFound(ContentError):
    """Raised when a requested file does not exist."""


class Unauthorized(ContentError):
    """Raised when the token is missing or rejected for a private resource."""


class RateLimited(ContentError):
    """Raised when GitHub enforces its API rate limit."""

    def __init__(self, message: str, retry_after_minutes: int | None = None):
        super().__init__(message)
        self.retry_after_minutes = retry_after_minutes


class RequestFailed(ContentError):
    """Raised for any other unsuccessful response."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class DecodeFailed(ContentError):
    """Raised when fetched content cannot be decoded (e.g. malformed notebook)."""


def describe_error(exc: BaseException) -> str:
    """Return the message shown to a user for a failed fetch."""
    if isinstance(exc, RateLimited):
        if exc.retry_after_minutes is None:
            return (
                "API rate limit exceeded. Add a GitHub token in settings "
                "for higher limits."
            )
        return f"API rate limit exceeded. Try again in {exc.retry_after_minutes} minutes."
    if isinstance(exc, Unauthorized):
        return "Unauthorized or private repository. Check the token in settings."
    if isinstance(exc, ConfigurationInvalid):
        return "Repository configuration is missing or invalid. Update it in settings."
    if isinstance(exc, NotFound):
        return f"File not found: {exc}"
    if isinstance(exc, RequestFailed):
        return f"Request failed (HTTP {exc.status})."
    if isinstance(exc, DecodeFailed):
        return f"Failed to decode file: {exc}"
    return str(exc) or "Failed to load content"
