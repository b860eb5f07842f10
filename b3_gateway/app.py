"""HTTP front door for the B3 gateway."""

import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from b3_gateway import __version__
from b3_gateway.lib._types import GatewayResponse
from b3_gateway.lib.config import GatewayConfig
from b3_gateway.lib.gateway import B3Gateway
from b3_gateway.lib.logging_config import LOGGER
from b3_gateway.lib.responses import error_response


def _json_response(response: GatewayResponse) -> JSONResponse:
    """Build JSON HTTP response from a gateway result."""
    return JSONResponse(status_code=response.status_code, content=response.body)


def create_app(config: GatewayConfig | None = None, gateway: B3Gateway | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Gateway configuration (default: read from the environment)
        gateway: Pre-built gateway (default: built from config)

    Returns:
        Configured FastAPI app
    """
    if gateway is None:
        gateway = B3Gateway(config or GatewayConfig.from_env())

    app = FastAPI(title="B3 Gateway", version=__version__)
    app.state.gateway = gateway

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        LOGGER.info(
            "Request handled",
            extra={
                "method": request.method,
                "url": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return response

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        return _json_response(error_response(exc))

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/api/b3/test")
    async def b3_test() -> JSONResponse:
        return _json_response(await gateway.healthcheck())

    @app.get("/api/b3/token-info")
    async def b3_token_info() -> JSONResponse:
        return _json_response(await gateway.token_info())

    @app.get("/api/b3/guia")
    async def b3_guia(request: Request) -> JSONResponse:
        return _json_response(await gateway.guia(request.query_params))

    @app.post("/api/b3/autosservico")
    async def b3_autosservico(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = None
        return _json_response(await gateway.autosservico(body))

    return app
