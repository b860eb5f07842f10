"""Gateway operations: connectivity check, token diagnostics, guia, autosservico."""

import asyncio
from collections.abc import Mapping
from typing import Any

import httpx

from ._types import GatewayResponse, ResponsePolicy, UpstreamRequest, UpstreamResponse
from .config import GatewayConfig
from .errors import ForwardingFailed, GatewayError, MissingConfiguration
from .forwarder import UpstreamForwarder
from .identity import IdentityProvisioner
from .logging_config import LOGGER
from .responses import error_response, passthrough_response, success_response
from .token_manager import TokenProvider, create_token_provider, decode_claims
from .validators import optional_value, require_fields, validate_date

HEALTHCHECK_OK_MESSAGE = "Token OK + mTLS OK (healthcheck passed)"
HEALTHCHECK_FAILED_MESSAGE = "Token and/or mTLS check failed"

GUIA_REQUIRED_PARAMS = ("product", "referenceStartDate")
ENROLLMENT_FIELDS = ("nome", "documento", "email")


class B3Gateway:
    """Runs each inbound operation through identity, token, forward and normalize.

    Holds only read-only configuration, the cached TLS identity and the token
    strategy; every call builds its own forwarder and HTTP client.
    """

    def __init__(
        self,
        config: GatewayConfig,
        token_provider: TokenProvider | None = None,
        identity_provisioner: IdentityProvisioner | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize gateway.

        Args:
            config: Gateway configuration
            token_provider: Token strategy (default: from config.token_strategy)
            identity_provisioner: TLS identity source (default: built from config)
            transport: Optional httpx transport shared by token and upstream calls
        """
        self.config = config
        self.transport = transport
        self.token_provider = token_provider or create_token_provider(config, transport)
        self.identity_provisioner = identity_provisioner or IdentityProvisioner(config)

    def _should_replay(self, status: int | None) -> bool:
        return status == 401 and self.token_provider.reuses_tokens

    async def _call(self, request: UpstreamRequest, policy: ResponsePolicy) -> UpstreamResponse:
        """Forward with a bearer token, replaying once if upstream rejects a reused token."""
        # Identity is local; build it before any network call, off the event loop
        identity = await asyncio.to_thread(self.identity_provisioner.get)
        forwarder = UpstreamForwarder(self.config, identity, self.transport)
        token = await self.token_provider.get_token()

        try:
            response = await forwarder.forward(token, request, policy)
        except ForwardingFailed as e:
            if not self._should_replay(e.status):
                raise
        else:
            if not self._should_replay(response.status_code):
                return response

        self.token_provider.invalidate(token)
        LOGGER.warning("Upstream rejected reused token; retrying once with a fresh token")
        token = await self.token_provider.get_token()
        return await forwarder.forward(token, request, policy)

    async def healthcheck(self) -> GatewayResponse:
        """Check token exchange and mTLS against the upstream healthcheck."""
        try:
            self.config.require("base_url")
            upstream = await self._call(
                UpstreamRequest(method="GET", path=self.config.healthcheck_path),
                ResponsePolicy.STRICT,
            )
        except GatewayError as e:
            return error_response(e, HEALTHCHECK_FAILED_MESSAGE)
        return success_response("healthcheck", upstream.payload, HEALTHCHECK_OK_MESSAGE)

    async def token_info(self) -> GatewayResponse:
        """Obtain a token and report its decoded claims."""
        try:
            claims = decode_claims(await self.token_provider.get_token())
        except GatewayError as e:
            status_code, envelope = error_response(e)
            return GatewayResponse(status_code, {"ok": False, "detail": envelope["detail"]})
        return GatewayResponse(200, {"ok": True, **claims})

    async def guia(self, query: Mapping[str, Any]) -> GatewayResponse:
        """Query the guia endpoint.

        Args:
            query: Inbound query parameters; product and referenceStartDate are
                required, referenceEndDate and page are optional

        Returns:
            200 with upstream data, 400 on invalid input, 500 on any other failure
        """
        try:
            required = require_fields(query, GUIA_REQUIRED_PARAMS)
            validate_date("referenceStartDate", required["referenceStartDate"])
            end_date = optional_value(query, "referenceEndDate")
            if end_date is not None:
                validate_date("referenceEndDate", end_date)

            self.config.require("base_url")
            upstream = await self._call(
                UpstreamRequest(
                    method="GET",
                    path=self.config.guia_path,
                    query={
                        "product": required["product"],
                        "referenceStartDate": required["referenceStartDate"],
                        "referenceEndDate": end_date,
                        "page": optional_value(query, "page"),
                    },
                ),
                ResponsePolicy.STRICT,
            )
        except GatewayError as e:
            return error_response(e)
        return success_response("data", upstream.payload)

    async def autosservico(self, body: Mapping[str, Any] | None) -> GatewayResponse:
        """Submit an enrollment; upstream status is mirrored verbatim.

        Args:
            body: Inbound JSON body with nome, documento and email

        Returns:
            Upstream status with ``{success, status, detail}``, 400 on missing
            fields, 500 on configuration, token or transport failures
        """
        try:
            fields = require_fields(body or {}, ENROLLMENT_FIELDS)
            if not (self.config.enrollment_base_url or self.config.base_url):
                raise MissingConfiguration("B3_BASE_URL")

            upstream = await self._call(
                UpstreamRequest(
                    method="POST",
                    path=self.config.enrollment_path,
                    body=fields,
                    base_url=self.config.enrollment_base_url,
                ),
                ResponsePolicy.PASSTHROUGH,
            )
        except GatewayError as e:
            return error_response(e)
        return passthrough_response(upstream)
