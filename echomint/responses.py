"""
REST error responses shared by the gateway and minting services.

Each error kind maps to one HTTP status so clients can branch on the status
and the `kind` field without parsing messages: 4xx for caller mistakes,
502/503/504 for provider and upstream trouble.
"""

from typing import Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from echomint.context import REQUEST_ID_HEADER
from echomint.errors import (
    INVALID_PARAMS,
    EchomintError,
    ProtocolError,
    ProviderRateLimitError,
    RpcCallError,
)
from echomint.logger import get_logger
from echomint.messages import error_msg

logger = get_logger(__name__)

STATUS_BY_KIND: Dict[str, int] = {
    "protocol_error": 400,
    "agent_not_found": 404,
    "artifact_not_found": 404,
    "mint_not_found": 404,
    "unsupported_format": 415,
    "provider_auth": 502,
    "provider_transport": 502,
    "speech_provider_failure": 502,
    "speech_error": 502,
    "upload_failure": 502,
    "submission_failure": 502,
    "ledger_rejected": 502,
    "provider_rate_limit": 503,
    "upstream_unavailable": 503,
    "service_not_ready": 503,
    "provider_timeout": 504,
    "configuration": 500,
    "internal_error": 500,
}


def status_for(error: EchomintError) -> int:
    return STATUS_BY_KIND.get(error.kind, 500)


def _retry_after(error: EchomintError) -> Optional[int]:
    if isinstance(error, ProviderRateLimitError):
        return error.retry_after
    if isinstance(error, RpcCallError):
        value = error.data.get("retry_after")
        return int(value) if isinstance(value, (int, float)) else None
    return None


def error_response(error: EchomintError, request_id: Optional[str] = None) -> JSONResponse:
    """Build the JSON error body for an application error."""
    body = {
        "kind": error.kind,
        "code": getattr(error, "code", None),
        "message": error_msg(error.kind),
        "detail": error.message if not error.detail else f"{error.message}: {error.detail}",
        "request_id": request_id,
    }
    headers = {}
    if request_id:
        headers[REQUEST_ID_HEADER] = request_id
    retry_after = _retry_after(error)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(status_code=status_for(error), content={"error": body}, headers=headers)


async def handle_echomint_error(request: Request, exc: EchomintError) -> JSONResponse:
    """FastAPI exception handler for EchomintError."""
    request_id = getattr(request.state, "request_id", None)
    status = status_for(exc)
    if status >= 500:
        logger.error(f"[{request_id}] {request.url.path} failed: {exc.kind}: {exc}")
    else:
        logger.info(f"[{request_id}] {request.url.path} rejected: {exc.kind}: {exc}")
    return error_response(exc, request_id)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies in the same shape as other errors."""
    request_id = getattr(request.state, "request_id", None)
    fields = ", ".join(".".join(str(p) for p in err.get("loc", ())) for err in exc.errors())
    error = ProtocolError(INVALID_PARAMS, "Invalid request", detail=fields or None)
    logger.info(f"[{request_id}] {request.url.path} rejected: invalid request ({fields})")
    return error_response(error, request_id)
