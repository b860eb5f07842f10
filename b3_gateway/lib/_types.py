"""Type definitions shared across the gateway."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple, NotRequired, TypedDict


class TokenResponse(TypedDict):
    """OAuth2 token endpoint response (client_credentials grant)."""

    access_token: str
    token_type: NotRequired[str]
    expires_in: NotRequired[int]


class TokenClaims(TypedDict):
    """Diagnostic claims decoded from a bearer token."""

    aud: str | list[str] | None
    iss: str | None
    roles: list[str] | None
    scp: str | None
    appid: str | None
    tid: str | None
    exp: int | None


class ResponsePolicy(Enum):
    """How the forwarder treats upstream status codes."""

    STRICT = "strict"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class UpstreamRequest:
    """Outbound call description.

    Query entries with a None or empty value are dropped before sending.
    """

    method: str
    path: str
    query: dict[str, str | None] = field(default_factory=dict)
    body: dict[str, str] | None = None
    base_url: str | None = None


@dataclass(frozen=True)
class UpstreamResponse:
    """Status and decoded payload of an upstream call."""

    status_code: int
    payload: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class GatewayResponse(NamedTuple):
    """HTTP status plus JSON envelope returned to the front door."""

    status_code: int
    body: dict[str, Any]
