"""Error taxonomy shared by the gateway, the dispatcher and the CLI."""

from __future__ import annotations


class GatewayError(Exception):
    """Base error for command gateway failures."""

    kind = "error"


class InvalidInputError(GatewayError):
    """Raised before any network I/O when a command is malformed."""

    kind = "invalid_input"


class RateLimitedError(GatewayError):
    """Raised when the server throttles commands to a target (HTTP 429)."""

    kind = "rate_limited"

    def __init__(self, message: str = "Rate limit: please wait 10s") -> None:
        super().__init__(message)


class UnauthorizedError(GatewayError):
    """Raised on HTTP 401; fatal to the current dispatch and session."""

    kind = "unauthorized"

    def __init__(self, message: str = "Unauthorized", outcome=None) -> None:
        super().__init__(message)
        # Partial DispatchOutcome when raised out of a dispatch.
        self.outcome = outcome


class RemoteError(GatewayError):
    """Any other non-success answer, or the server being unreachable."""

    kind = "remote"


class LoginFailedError(GatewayError):
    """Raised when the login endpoint rejects the credentials."""

    kind = "login_failed"


class DispatchInProgressError(Exception):
    """Raised when a dispatch is started while another is still in flight."""
