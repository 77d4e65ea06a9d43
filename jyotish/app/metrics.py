"""
Métriques Prometheus pour l'application.

Ce module définit les métriques Prometheus utilisées pour le monitoring du service: trafic HTTP,
pipeline RAG (embeddings, recherche), génération de rapports, chat et jobs asynchrones.
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# RAG pipeline
EMBEDDING_LATENCY = Histogram(
    "embedding_latency_seconds",
    "Latency of embedding provider calls",
)
RETRIEVAL_LATENCY = Histogram(
    "retrieval_latency_seconds",
    "Latency of report chunk retrieval (embedding + hybrid search)",
)
RETRIEVAL_QUERIES_TOTAL = Counter(
    "retrieval_queries_total",
    "Total retrieval queries",
)
RETRIEVAL_HITS_TOTAL = Counter(
    "retrieval_hits_total",
    "Total retrieval queries that returned at least one chunk",
)
CHUNKS_INDEXED_TOTAL = Counter(
    "report_chunks_indexed_total",
    "Total report chunks stored with an embedding",
    ["report_type"],
)

# Business/chat metrics
CHAT_REQUESTS = Counter(
    "chat_requests_total",
    "Total chat requests",
    ["model"],
)
REPORT_GENERATIONS = Counter(
    "report_generations_total",
    "Report generations by type and final status",
    ["report_type", "status"],
)
LLM_TOKENS_TOTAL = Counter(
    "llm_tokens_total",
    "Accumulated LLM completion tokens (estimated)",
    ["model", "kind"],
)

# Jobs
JOB_RUNS = Counter(
    "job_runs_total",
    "Background job executions by result",
    ["job", "result"],
)


def _normalize_allowed(allowed: list[str] | str | None) -> list[str]:
    """Normalize allowed values from settings (list or CSV string)."""
    if not allowed:
        return []
    if isinstance(allowed, list):
        if len(allowed) == 1 and "," in (allowed[0] or ""):
            return [s.strip() for s in allowed[0].split(",") if s.strip()]
        return [str(x).strip() for x in allowed if str(x).strip()]
    return [s.strip() for s in str(allowed).split(",") if s.strip()]


def labelize_model(model: str | None, allowed: list[str] | str | None) -> str:
    """Project model label through a whitelist; otherwise 'unknown'."""
    vals = set(_normalize_allowed(allowed))
    if not vals:
        return model or "unknown"
    return (model or "").strip() if (model or "").strip() in vals else "unknown"


@metrics_router.get("/metrics")
def metrics():
    """
    Expose les métriques Prometheus au format texte.

    Returns:
        Response: Réponse HTTP contenant les métriques au format Prometheus.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware Prometheus pour mesurer les métriques HTTP.

    Collecte les métriques de comptage des requêtes et de latence par route pour l'exposition
    Prometheus.
    """

    async def dispatch(self, request: Request, call_next):
        """
        Traite une requête HTTP et collecte les métriques.

        Le libellé de route utilise le gabarit (`/api/v1/profiles/{profile_id}`) plutôt que le
        chemin concret pour borner la cardinalité.
        """
        start = time.perf_counter()
        response: Response = await call_next(request)
        route = getattr(request.scope.get("route"), "path", None) or "unmatched"
        REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(route).observe(time.perf_counter() - start)
        return response
