"""Domain errors raised by services and adapters.

Routes and the global handlers pick the HTTP status from the error class and
never parse messages; ``code`` is the stable value clients can branch on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Optional context attached to an error and echoed to clients."""

    hint: str
    http_status: int
    retry_after: float
    max_bytes: int
    actual_bytes: int
    image_type: str
    model: str
    context: dict[str, Any]


@dataclass
class AppError(Exception):
    """Base class for expected failures.

    Attributes:
        code: Machine-readable identifier, e.g. ``image_too_large``.
        message: Text safe to show to the caller.
        details: Extra context for clients and logs.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Keep str(exc) and tracebacks showing the message
        super().__init__(self.message)


class ValidationAppError(AppError):
    """The request (or configuration) is unusable as given."""


class LLMAppError(AppError):
    """The vision provider failed or answered with something unusable."""


class UpstreamRateLimitAppError(LLMAppError):
    """The vision provider rejected the call with HTTP 429."""

    @property
    def retry_after(self) -> float | None:
        """Seconds the provider asked us to wait, when it said."""
        if not self.details:
            return None
        return self.details.get("retry_after")


class AuthenticationAppError(AppError):
    """The caller is not allowed in."""
