"""Response envelope builders and failure normalization."""

from typing import Any

from ._types import GatewayResponse, UpstreamResponse
from .errors import GatewayError, ValidationFailed
from .logging_config import LOGGER

INTERNAL_ERROR_MESSAGE = "Internal gateway error"


def _has_content(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, bytes, dict, list, tuple)):
        return len(value) > 0
    return True


def error_envelope(exc: BaseException, message: str | None = None) -> dict[str, Any]:
    """Map any failure to ``{success: false, status?, detail}``.

    Args:
        exc: Failure raised by provisioning, token exchange, forwarding or validation
        message: Optional human summary included as ``message``

    Returns:
        Envelope whose detail is the upstream body when present, otherwise the
        error message; status appears only when the failure carried one
    """
    envelope: dict[str, Any] = {"success": False}
    if message:
        envelope["message"] = message

    if isinstance(exc, GatewayError):
        if exc.status is not None:
            envelope["status"] = exc.status
        if _has_content(exc.body):
            envelope["detail"] = exc.body
        else:
            envelope["detail"] = str(exc) or type(exc).__name__
    else:
        # Unexpected errors never leak internals to callers
        envelope["detail"] = INTERNAL_ERROR_MESSAGE

    return envelope


def error_status_code(exc: BaseException) -> int:
    """400 for caller input errors, 500 for everything else."""
    return 400 if isinstance(exc, ValidationFailed) else 500


def error_response(exc: BaseException, message: str | None = None) -> GatewayResponse:
    """Log ``exc`` and return its normalized status code and envelope."""
    if isinstance(exc, ValidationFailed):
        LOGGER.warning("Request rejected: %s", exc)
    elif isinstance(exc, GatewayError):
        LOGGER.error("%s: %s", type(exc).__name__, exc, extra={"status": exc.status})
    else:
        LOGGER.error("Unexpected gateway failure", exc_info=exc)
    return GatewayResponse(error_status_code(exc), error_envelope(exc, message))


def success_response(key: str, payload: Any, message: str | None = None) -> GatewayResponse:
    """Return ``{success: true, message?, <key>: payload}`` with status 200."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body[key] = payload
    return GatewayResponse(200, body)


def passthrough_response(upstream: UpstreamResponse) -> GatewayResponse:
    """Mirror the upstream status verbatim with its payload as detail."""
    return GatewayResponse(
        upstream.status_code,
        {
            "success": upstream.ok,
            "status": upstream.status_code,
            "detail": upstream.payload,
        },
    )
