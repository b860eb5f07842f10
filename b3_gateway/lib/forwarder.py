"""Authenticated forwarding of requests to the B3 upstream API."""

import httpx

from ._types import ResponsePolicy, UpstreamRequest, UpstreamResponse
from .config import GatewayConfig
from .errors import ForwardingFailed
from .identity import TLSIdentity
from .logging_config import LOGGER
from .utils import compact_query, decode_payload, join_url


class UpstreamForwarder:
    """Issues mTLS + bearer-authenticated calls to the upstream API."""

    def __init__(
        self,
        config: GatewayConfig,
        identity: TLSIdentity,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize forwarder.

        Args:
            config: Gateway configuration (base URL, timeout)
            identity: TLS client identity attached to every connection
            transport: Optional httpx transport (tests inject httpx.MockTransport)
        """
        self.config = config
        self.identity = identity
        self.transport = transport

    def build_url(self, request: UpstreamRequest) -> str:
        """Join the request's base URL (or the configured one) with its path."""
        base_url = request.base_url or self.config.base_url
        if not base_url:
            raise ForwardingFailed("No upstream base URL configured")
        return join_url(base_url, request.path)

    async def forward(
        self,
        token: str,
        request: UpstreamRequest,
        policy: ResponsePolicy = ResponsePolicy.STRICT,
    ) -> UpstreamResponse:
        """Send ``request`` upstream with the bearer token and TLS identity.

        Args:
            token: Bearer token for the Authorization header
            request: Method, path, query and optional form body
            policy: STRICT raises on non-2xx, PASSTHROUGH returns any status

        Returns:
            Upstream status code and decoded payload

        Raises:
            ForwardingFailed: On transport failure or timeout, or non-2xx under STRICT
        """
        url = self.build_url(request)
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        params = compact_query(request.query)
        data = request.body if request.method.upper() == "POST" else None

        try:
            async with httpx.AsyncClient(
                verify=self.identity.ssl_context,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self.transport,
            ) as client:
                response = await client.request(
                    request.method.upper(),
                    url,
                    params=params or None,
                    data=data,
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            LOGGER.error("Upstream call timed out", extra={"method": request.method, "url": url})
            raise ForwardingFailed(
                f"Upstream request timed out after {self.config.timeout_seconds:g}s"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            LOGGER.error("Upstream call failed", extra={"method": request.method, "url": url})
            raise ForwardingFailed(f"Upstream request failed: {e}") from e

        result = UpstreamResponse(
            status_code=response.status_code, payload=decode_payload(response)
        )
        LOGGER.info(
            "Upstream call completed",
            extra={"method": request.method, "url": url, "status": result.status_code},
        )

        if policy is ResponsePolicy.STRICT and not result.ok:
            raise ForwardingFailed(
                f"Upstream returned HTTP {result.status_code}",
                status=result.status_code,
                body=result.payload,
            )
        return result
