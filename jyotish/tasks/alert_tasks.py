"""
Tâches Celery des alertes de transit.

- `generate_alerts`: scan d'un profil (2 tentatives, 5 s d'intervalle).
- `schedule_alert_scans`: planifiée quotidiennement par Celery beat, soumet un scan par profil.
"""

from __future__ import annotations

import structlog

from jyotish.app.celery_app import celery_app
from jyotish.app.metrics import JOB_RUNS
from jyotish.domain.errors import PersistenceError, UpstreamError
from jyotish.infra.jobs.queue import JOB_POLICIES, TASK_NAMES
from jyotish.tasks._runner import run_handler
from jyotish.tasks.handlers import scan_profile_alerts, schedule_alert_scans

log = structlog.get_logger(__name__)

POLICY = JOB_POLICIES["generate_alerts"]
SCHEDULE_TASK_NAME = "jyotish.tasks.schedule_alert_scans"


@celery_app.task(
    name=TASK_NAMES["generate_alerts"], bind=True, max_retries=POLICY.max_attempts - 1
)
def generate_alerts_task(self, profile_id: str) -> int:
    try:
        inserted = run_handler(scan_profile_alerts, profile_id=profile_id)
    except (UpstreamError, PersistenceError) as exc:
        attempt = self.request.retries + 1
        if attempt >= POLICY.max_attempts:
            JOB_RUNS.labels(job="generate_alerts", result="failed").inc()
            log.error("alert_task_failed", profile_id=profile_id, error=type(exc).__name__)
            raise
        JOB_RUNS.labels(job="generate_alerts", result="retry").inc()
        raise self.retry(exc=exc, countdown=POLICY.delay(attempt)) from exc
    JOB_RUNS.labels(job="generate_alerts", result="success").inc()
    return inserted


@celery_app.task(name=SCHEDULE_TASK_NAME)
def schedule_alert_scans_task() -> int:
    return run_handler(schedule_alert_scans)
