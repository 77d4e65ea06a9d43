"""
Tâches Celery pour le rendu PDF des rapports.

Politique: 3 tentatives, backoff exponentiel depuis 2 s. Le handler est idempotent (réécrit le
même fichier et la même URL).
"""

from __future__ import annotations

import structlog

from jyotish.app.celery_app import celery_app
from jyotish.app.metrics import JOB_RUNS
from jyotish.domain.errors import PersistenceError, UpstreamError
from jyotish.infra.jobs.queue import JOB_POLICIES, TASK_NAMES
from jyotish.tasks._runner import run_handler
from jyotish.tasks.handlers import generate_report_pdf

log = structlog.get_logger(__name__)

POLICY = JOB_POLICIES["generate_pdf"]


@celery_app.task(
    name=TASK_NAMES["generate_pdf"], bind=True, max_retries=POLICY.max_attempts - 1
)
def generate_pdf_task(self, report_id: str) -> str:
    try:
        result = run_handler(generate_report_pdf, report_id=report_id)
    except (UpstreamError, PersistenceError, OSError) as exc:
        attempt = self.request.retries + 1
        if attempt >= POLICY.max_attempts:
            JOB_RUNS.labels(job="generate_pdf", result="failed").inc()
            log.error("pdf_task_failed", report_id=report_id, error=type(exc).__name__)
            raise
        JOB_RUNS.labels(job="generate_pdf", result="retry").inc()
        raise self.retry(exc=exc, countdown=POLICY.delay(attempt)) from exc
    JOB_RUNS.labels(job="generate_pdf", result="success").inc()
    return result
