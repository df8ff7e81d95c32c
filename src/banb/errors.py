"""
Error taxonomy shared by the gateway, the executor, the orchestrator and the API.

Every class carries the wire `code` and HTTP status it maps to, so boundaries
can translate without a lookup table.
"""

from typing import Any, Dict, Optional


class BanbError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class AuthenticationError(BanbError):
    """Missing, malformed or inactive caller identity."""

    code = "UNAUTHORIZED"
    status_code = 401


class ValidationError(BanbError):
    """Malformed request shape or operation data."""

    code = "BAD_REQUEST"
    status_code = 400


class UnknownToolError(BanbError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class OperationNotFoundError(BanbError):
    code = "NOT_FOUND"
    status_code = 404


class ExecutionError(BanbError):
    """A tool's underlying read failed. Captured into the ToolResult envelope."""

    code = "INTERNAL_ERROR"
    status_code = 500


class UpstreamError(BanbError):
    """The external reasoning model is unreachable, rate-limited or rejected the call."""

    code = "UPSTREAM_ERROR"
    status_code = 502


class ConfigurationError(UpstreamError):
    """The reasoning model is not usable with the current configuration."""

    code = "CONFIGURATION_ERROR"


class RateLimitError(BanbError):
    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.", *, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after
