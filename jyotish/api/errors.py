"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Toutes les erreurs sortent au format `{code, message, trace_id, details?}`:
- erreurs métier (`JyotishError`) avec leur statut et leur message public;
- erreurs de validation FastAPI/pydantic en 400 `VALIDATION_ERROR`;
- `HTTPException` Starlette (404 de routage, 405...) avec un code dérivé du statut;
- toute autre exception en 500 `INTERNAL_ERROR`, journalisée avec la trace.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from jyotish.core.http_constants import HTTP_BAD_REQUEST, HTTP_INTERNAL_SERVER_ERROR
from jyotish.domain.errors import JyotishError, UpstreamError

log = structlog.get_logger(__name__)

ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
    504: "GATEWAY_TIMEOUT",
}


@dataclass
class ErrorEnvelope:
    """Standard error envelope for API responses."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    envelope = ErrorEnvelope(code=code, message=message, trace_id=trace_id, details=details)
    return JSONResponse(
        status_code=status_code,
        content={
            "code": envelope.code,
            "message": envelope.message,
            "trace_id": envelope.trace_id,
            **({"details": jsonable_encoder(envelope.details)} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Trace id posé par le middleware request id, sinon en-tête `X-Trace-ID`."""
    trace_id = getattr(request.state, "trace_id", None)
    if trace_id:
        return trace_id
    return request.headers.get("X-Trace-ID")


async def handle_domain_error(request: Request, exc: JyotishError) -> JSONResponse:
    trace_id = extract_trace_id(request)
    if isinstance(exc, UpstreamError) or exc.status_code >= HTTP_INTERNAL_SERVER_ERROR:
        log.error(
            "request_failed",
            code=exc.code,
            error=str(exc),
            path=request.url.path,
            transient=getattr(exc, "transient", None),
        )
    else:
        log.info("request_rejected", code=exc.code, status=exc.status_code, path=request.url.path)
    return create_error_response(
        exc.status_code, exc.code, exc.public_message, trace_id, exc.details
    )


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    issues = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    log.info("request_invalid", path=request.url.path, issues=len(issues))
    return create_error_response(
        HTTP_BAD_REQUEST,
        "VALIDATION_ERROR",
        "Invalid request",
        extract_trace_id(request),
        {"issues": issues},
    )


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    response = create_error_response(
        exc.status_code, code, str(exc.detail), extract_trace_id(request)
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Handle generic exceptions with standard envelope."""
    log.error(
        "unexpected_error",
        path=request.url.path,
        exception_type=type(exc).__name__,
        exc_info=exc,
    )
    return create_error_response(
        HTTP_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An unexpected error occurred",
        extract_trace_id(request),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(JyotishError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_generic_exception)
