"""Middleware Starlette pour mesurer le temps de traitement des requêtes.

Ajoute l'en-tête `X-Process-Time-ms`. Pour une réponse SSE, la mesure s'arrête à l'envoi des
en-têtes, pas à la fin du flux.
"""

import time
from collections.abc import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

log = structlog.get_logger(__name__)


class TimingMiddleware(BaseHTTPMiddleware):
    """Middleware pour mesurer le temps de traitement des requêtes."""

    def __init__(self, app: ASGIApp, header_name: str = "X-Process-Time-ms") -> None:
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next: Callable):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers[self.header_name] = str(duration_ms)
        log.debug(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration_ms,
        )
        return response
