"""
Error types shared by the gateway.

Each error carries the HTTP status it should surface as, so the request
handlers never decide status codes on their own. Everything that is not a
caller mistake ends up as a 500, including "not found" from Drive.
"""


class GatewayError(Exception):
    """Base class for errors raised by the gateway."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(GatewayError):
    """Required configuration is missing or malformed. Fatal at startup."""


class UpstreamError(GatewayError):
    """A Drive call failed (network, auth, quota, not found)."""

    def __init__(self, message: str, backend_status: int | None = None) -> None:
        super().__init__(message)
        self.backend_status = backend_status


class NotFoundError(UpstreamError):
    """Drive reported that the requested file or folder does not exist."""


class ValidationError(GatewayError):
    """The request is missing something required, e.g. the uploaded file."""

    status_code = 400


class PayloadTooLargeError(ValidationError):
    """The upload exceeds the configured size ceiling."""

    status_code = 413


class StreamError(GatewayError):
    """
    A download failed after the response headers were sent.

    No response can be produced at that point; the connection is dropped.
    """
