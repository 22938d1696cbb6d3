"""Exception hierarchy for the gateway."""


class GatewayError(Exception):
    """Base class for gateway errors."""


class ConfigurationError(GatewayError):
    """Account or application configuration is invalid."""


class HandshakeError(GatewayError):
    """The streaming connection could not be established."""


class ConnectionClosedError(GatewayError):
    """The streaming connection was closed or failed mid-stream."""


class PlatformAPIError(GatewayError):
    """The platform REST API returned an error response."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code
