"""HTTP client building blocks."""

from .base import (
    BaseHttpClient,
    ClientError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    RequestRejectedError,
    RequestTimeoutError,
    ResponseParseError,
    UnauthorizedError,
    UpstreamError,
)

__all__ = [
    "BaseHttpClient",
    "ClientError",
    "ForbiddenError",
    "NetworkError",
    "NotFoundError",
    "RateLimitedError",
    "RequestRejectedError",
    "RequestTimeoutError",
    "ResponseParseError",
    "UnauthorizedError",
    "UpstreamError",
]
