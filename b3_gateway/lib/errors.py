"""Exception taxonomy for the B3 gateway."""

from typing import Any


class GatewayError(Exception):
    """Base class for every failure the gateway normalizes.

    Attributes:
        status: Upstream (or authorization server) HTTP status, when one was received
        body: Upstream response payload, when one was received
    """

    def __init__(self, message: str, status: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class MissingConfiguration(GatewayError):
    """A required configuration value is absent."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Missing configuration value: {name}")
        self.name = name


class MissingCredential(MissingConfiguration):
    """Certificate, key or PKCS#12 material is absent."""


class MalformedCredential(GatewayError):
    """Certificate or key bytes failed to decode."""


class TokenExchangeFailed(GatewayError):
    """Authorization server call failed, timed out or omitted access_token."""


class MalformedToken(GatewayError):
    """Bearer token claims segment could not be decoded."""


class ForwardingFailed(GatewayError):
    """Upstream call failed at the transport layer or returned non-2xx (strict policy)."""


class ValidationFailed(GatewayError):
    """Caller-supplied input is missing or malformed."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"Missing required field: {field}")
        self.field = field
