from typing import Optional


class GatewayError(Exception):
    """Base class for errors resolved by the gateway into a client response."""


class RateLimitExceeded(GatewayError):
    """No upstream credential currently has capacity."""

    def __init__(self, message: str = "no available API keys"):
        super().__init__(message)


class UpstreamError(GatewayError):
    """The upstream call failed before a full response was read."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ReferenceDataError(GatewayError):
    """Lines or timetable data could not be read or parsed."""
