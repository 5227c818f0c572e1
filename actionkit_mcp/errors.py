"""
Error taxonomy for the gateway.

Everything raised below the gateway boundary is a GatewayError subclass so
that the boundary can turn it into the normalized error envelope. Only
ConfigurationError is allowed to stop the process, and only at startup.
"""


class GatewayError(Exception):
    """
    Base class for all gateway failures.

    Attributes:
        message: Human-readable description, surfaced to the MCP client
                 inside the error envelope.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(GatewayError):
    """Required configuration (signing key, project id) is missing or unusable."""


class CatalogFetchError(GatewayError):
    """The action catalog could not be fetched or was malformed."""


class DuplicateToolError(CatalogFetchError):
    """Two catalog actions translate to the same tool name (policy 'error')."""


class InvocationError(GatewayError):
    """
    The remote provider rejected an action invocation.

    Attributes:
        status: HTTP status code returned by the provider
        body: Raw response body, kept for diagnostics
    """

    def __init__(self, message: str, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message)


class TransportError(GatewayError):
    """The remote provider could not be reached (network failure or timeout)."""


class InvalidRequestError(GatewayError):
    """An incoming tool call is malformed (missing name, arguments, or fields)."""


class NotAuthenticatedError(GatewayError):
    """A tool call needs an authenticated session but the session is not there yet."""
