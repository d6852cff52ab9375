"""
Error vocabulary shared by every provider.

Rationale:
- Vendors fail in different ways (SDK exceptions, HTTP codes, bad JSON);
  callers should only ever see this small set of types.
- Each error carries the HTTP status the route layer should answer with.
- Messages are user-safe. Raw upstream bodies stay on the exception for logs.
"""

from typing import Optional


class ChartGenerationError(Exception):
    """Base class for every failure surfaced by the chart pipeline."""

    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(ChartGenerationError):
    """Bad prompt, config or dataset shape. No network call was attempted."""

    http_status = 400


class UnsupportedProviderError(InputError):
    pass


class ConfigError(ChartGenerationError):
    """Provider is missing a credential or base URL it needs."""

    http_status = 400


class AuthError(ChartGenerationError):
    http_status = 401


class RateLimitError(ChartGenerationError):
    http_status = 429


class RequestTimeoutError(ChartGenerationError, TimeoutError):
    http_status = 504


class UpstreamError(ChartGenerationError):
    """
    Vendor answered with an unexpected status (or could not be reached).
    `body` is kept for logging only and never rendered into the message.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ParseError(ChartGenerationError, ValueError):
    """Model reply could not be turned into a valid chart."""
