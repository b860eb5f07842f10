"""OAuth2 client_credentials token exchange and diagnostics."""

import asyncio
import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import httpx
from jwt.utils import base64url_decode

from ._types import TokenClaims, TokenResponse
from .config import GatewayConfig
from .errors import MalformedToken, TokenExchangeFailed
from .logging_config import LOGGER
from .utils import decode_payload

TOKEN_CONFIG_FIELDS = ("token_url", "client_id", "client_secret", "scope")


async def exchange_token(
    config: GatewayConfig, transport: httpx.AsyncBaseTransport | None = None
) -> TokenResponse:
    """Exchange client credentials for a bearer token.

    Every call performs a new exchange; nothing is cached or retried here.

    Args:
        config: Gateway configuration with token endpoint and client credentials
        transport: Optional httpx transport (tests inject httpx.MockTransport)

    Returns:
        Token endpoint response containing a non-empty access_token

    Raises:
        MissingConfiguration: If a token setting is absent (before any HTTP call)
        TokenExchangeFailed: On timeout, network error, non-2xx or missing access_token
    """
    config.require(*TOKEN_CONFIG_FIELDS)

    data = {
        "grant_type": "client_credentials",
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "scope": config.scope,
    }
    headers = {
        "Content-Type": "application/x-www-form-urlencoded",
        "Accept": "application/json",
    }

    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds), transport=transport
        ) as client:
            response = await client.post(config.token_url, data=data, headers=headers)
    except httpx.TimeoutException as e:
        raise TokenExchangeFailed(
            f"Token request timed out after {config.timeout_seconds:g}s"
        ) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise TokenExchangeFailed(f"Token request failed: {e}") from e

    payload = decode_payload(response)
    if not response.is_success:
        LOGGER.error(
            "Token endpoint rejected client credentials",
            extra={"url": config.token_url, "status": response.status_code},
        )
        raise TokenExchangeFailed(
            f"Token endpoint returned HTTP {response.status_code}",
            status=response.status_code,
            body=payload,
        )

    access_token = payload.get("access_token") if isinstance(payload, dict) else None
    if not access_token or not isinstance(access_token, str):
        raise TokenExchangeFailed(
            "Token response did not include access_token. Check client_id/secret/scope."
        )

    LOGGER.info(
        "Token exchange succeeded",
        extra={"url": config.token_url, "status": response.status_code},
    )
    return payload


async def fetch_token(
    config: GatewayConfig, transport: httpx.AsyncBaseTransport | None = None
) -> str:
    """Return the access token of a fresh client_credentials exchange."""
    response = await exchange_token(config, transport)
    return response["access_token"]


def decode_claims(token: str) -> TokenClaims:
    """Decode diagnostic claims from a bearer token without verifying it.

    Only the middle segment is read; the header and signature are ignored.

    Args:
        token: Three-part signed token

    Returns:
        Claims aud, iss, roles, scp, appid, tid, exp (None when absent)

    Raises:
        MalformedToken: If the claims segment is not base64url-encoded JSON object
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise MalformedToken(f"Token must have 3 segments, got {len(parts)}")

    try:
        claims = json.loads(base64url_decode(parts[1]))
    except ValueError as e:
        raise MalformedToken(f"Token claims could not be decoded: {e}") from e
    if not isinstance(claims, dict):
        raise MalformedToken("Token claims are not a JSON object")

    return {
        "aud": claims.get("aud"),
        "iss": claims.get("iss"),
        "roles": claims.get("roles"),
        "scp": claims.get("scp"),
        "appid": claims.get("appid"),
        "tid": claims.get("tid"),
        "exp": claims.get("exp"),
    }


class TokenProvider(Protocol):
    """Strategy for obtaining bearer tokens."""

    reuses_tokens: bool

    async def get_token(self) -> str: ...

    def invalidate(self, token: str) -> None: ...


class RefetchTokenProvider:
    """Performs a new exchange for every call."""

    reuses_tokens = False

    def __init__(
        self, config: GatewayConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.config = config
        self.transport = transport

    async def get_token(self) -> str:
        return await fetch_token(self.config, self.transport)

    def invalidate(self, token: str) -> None:
        pass


@dataclass(frozen=True)
class _CachedToken:
    value: str
    expires_at: float


class CachingTokenProvider:
    """Reuses one token per scope until shortly before it expires.

    Expiry comes from the token's exp claim, or from expires_in when the token
    is opaque. Tokens with neither are used once and not cached.
    """

    reuses_tokens = True

    def __init__(
        self,
        config: GatewayConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.transport = transport
        self.clock = clock
        self._tokens: dict[str, _CachedToken] = {}
        self._lock = asyncio.Lock()

    def _cached(self) -> str | None:
        entry = self._tokens.get(self.config.scope or "")
        if entry and self.clock() < entry.expires_at - self.config.token_refresh_skew:
            return entry.value
        return None

    def _expires_at(self, response: TokenResponse) -> float | None:
        try:
            exp = decode_claims(response["access_token"])["exp"]
        except MalformedToken:
            exp = None
        if isinstance(exp, (int, float)):
            return float(exp)

        expires_in = response.get("expires_in")
        try:
            return self.clock() + float(expires_in) if expires_in is not None else None
        except (TypeError, ValueError):
            return None

    async def get_token(self) -> str:
        token = self._cached()
        if token:
            return token

        async with self._lock:
            # Another request may have refreshed while we waited
            token = self._cached()
            if token:
                return token

            response = await exchange_token(self.config, self.transport)
            token = response["access_token"]
            expires_at = self._expires_at(response)
            if expires_at is not None:
                self._tokens[self.config.scope or ""] = _CachedToken(token, expires_at)
            return token

    def invalidate(self, token: str) -> None:
        """Forget ``token`` if it is the cached one (e.g. after an upstream 401)."""
        scope = self.config.scope or ""
        entry = self._tokens.get(scope)
        if entry and entry.value == token:
            del self._tokens[scope]
            LOGGER.info("Cached token invalidated")


def create_token_provider(
    config: GatewayConfig, transport: httpx.AsyncBaseTransport | None = None
) -> TokenProvider:
    """Build the token strategy named by config.token_strategy."""
    if config.token_strategy == "cache":
        return CachingTokenProvider(config, transport)
    return RefetchTokenProvider(config, transport)
