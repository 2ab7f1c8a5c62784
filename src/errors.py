"""
Exception hierarchy for the bol.com Retailer MCP server.

Every failure that crosses a component boundary is one of these types:

    BolMCPError
    ├── AuthError                       token endpoint / credentials
    │   └── TokenEndpointUnreachableError   (also a NetworkError)
    ├── ApiError                        non-2xx from the Retailer API
    │   └── ApiUnreachableError             (also a NetworkError)
    ├── NetworkError                    timeout or connection failure
    └── RegistrationError               descriptor rejected at registration

The network variants inherit from both their boundary error and NetworkError,
so callers can catch "anything that went wrong talking to the token endpoint"
(AuthError) or "any timeout" (NetworkError) with a single except clause.
"""

from enum import Enum


class BolMCPError(Exception):
    """
    Base class for all errors raised by this package.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status returned by the partner, if any
        body: Response body text returned by the partner, if any
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class AuthError(BolMCPError):
    """Raised when an access token cannot be obtained."""


class ApiError(BolMCPError):
    """Raised when the Retailer API answers with a non-2xx status."""


class NetworkError(BolMCPError):
    """Raised when an HTTP call times out or the connection fails."""


class TokenEndpointUnreachableError(AuthError, NetworkError):
    """The token endpoint could not be reached or did not answer in time."""


class ApiUnreachableError(ApiError, NetworkError):
    """The Retailer API could not be reached or did not answer in time."""


class RejectionReason(str, Enum):
    """Why a tool descriptor was not handed to the transport."""

    MISSING_NAME = "missing_name"
    MISSING_SCHEMA = "missing_schema"
    MISSING_HANDLER = "missing_handler"
    HANDLER_NOT_CALLABLE = "handler_not_callable"
    NOT_A_DESCRIPTOR = "not_a_descriptor"
    DUPLICATE = "duplicate"
    TRANSPORT_REJECTED = "transport_rejected"


class RegistrationError(BolMCPError):
    """Raised for a single descriptor that cannot be registered."""

    def __init__(self, name: str | None, reason: RejectionReason, detail: str = ""):
        self.name = name
        self.reason = reason
        message = f"Tool '{name}' rejected: {reason.value}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
