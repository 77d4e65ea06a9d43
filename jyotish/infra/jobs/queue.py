"""
File de jobs asynchrones (PDF, alertes de transit).

Deux implémentations derrière la même interface `JobQueue`:
- `CeleryJobQueue`: envoi au broker Redis, livraison au moins une fois (`task_acks_late`).
- `InlineJobQueue`: tâches asyncio dans le processus courant (dev et tests).

Les handlers sont idempotents: une double exécution ne coûte que du travail.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from jyotish.app.metrics import JOB_RUNS
from jyotish.domain.errors import NotFoundError, ValidationError

log = structlog.get_logger(__name__)

JobHandler = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Nombre fixe de tentatives, délai fixe ou exponentiel entre deux tentatives."""

    max_attempts: int
    base_delay: float
    exponential: bool = False

    def delay(self, attempt: int) -> float:
        """Délai avant la tentative suivante, `attempt` étant la tentative échouée (1-based)."""
        if self.exponential:
            return self.base_delay * (2 ** (attempt - 1))
        return self.base_delay


JOB_POLICIES: dict[str, RetryPolicy] = {
    "generate_pdf": RetryPolicy(max_attempts=3, base_delay=2.0, exponential=True),
    "generate_alerts": RetryPolicy(max_attempts=2, base_delay=5.0),
}

# Noms des tâches Celery correspondantes
TASK_NAMES: dict[str, str] = {
    "generate_pdf": "jyotish.tasks.generate_pdf",
    "generate_alerts": "jyotish.tasks.generate_alerts",
}

# Erreurs définitives: relancer ne changerait rien
PERMANENT_ERRORS: tuple[type[Exception], ...] = (NotFoundError, ValidationError)


class JobQueue(ABC):
    """Interface de soumission de jobs."""

    @abstractmethod
    async def submit(self, job: str, payload: dict[str, Any]) -> str:
        """Soumet un job et retourne son identifiant. Lève `ValueError` si le job est inconnu."""
        raise NotImplementedError

    async def close(self) -> None:
        return None


class CeleryJobQueue(JobQueue):
    """Soumission via Celery (`send_task` par nom, sans importer les modules de tâches)."""

    def __init__(self, celery_app) -> None:
        self.celery_app = celery_app

    async def submit(self, job: str, payload: dict[str, Any]) -> str:
        if job not in TASK_NAMES:
            raise ValueError(f"unknown job: {job}")
        # send_task est bloquant (connexion broker)
        result = await asyncio.to_thread(
            self.celery_app.send_task, TASK_NAMES[job], kwargs=payload
        )
        log.info("job_submitted", job=job, job_id=result.id, backend="celery")
        return result.id


async def run_with_retry(
    job: str,
    handler: JobHandler,
    payload: dict[str, Any],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """
    Exécute un handler avec la politique de relance du job.

    Les erreurs définitives arrêtent immédiatement; la dernière erreur est propagée une fois
    les tentatives épuisées.
    """
    attempt = 1
    while True:
        try:
            result = await handler(payload)
        except PERMANENT_ERRORS:
            JOB_RUNS.labels(job=job, result="failed").inc()
            raise
        except Exception as exc:
            if attempt >= policy.max_attempts:
                JOB_RUNS.labels(job=job, result="failed").inc()
                log.error("job_failed", job=job, attempts=attempt, error=type(exc).__name__)
                raise
            delay = policy.delay(attempt)
            JOB_RUNS.labels(job=job, result="retry").inc()
            log.warning("job_retry", job=job, attempt=attempt, delay=delay, error=type(exc).__name__)
            await sleep(delay)
            attempt += 1
            continue
        JOB_RUNS.labels(job=job, result="success").inc()
        return result


class InlineJobQueue(JobQueue):
    """
    Exécution dans la boucle asyncio courante.

    Les handlers sont enregistrés par nom de job (liés au conteneur). `drain()` attend la fin
    des jobs en cours; utilisé à l'arrêt et dans les tests.
    """

    def __init__(
        self,
        handlers: dict[str, JobHandler] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.handlers: dict[str, JobHandler] = dict(handlers or {})
        self._sleep = sleep
        self._tasks: set[asyncio.Task] = set()

    def register(self, job: str, handler: JobHandler) -> None:
        self.handlers[job] = handler

    async def submit(self, job: str, payload: dict[str, Any]) -> str:
        handler = self.handlers.get(job)
        if handler is None or job not in JOB_POLICIES:
            raise ValueError(f"unknown job: {job}")
        job_id = str(uuid.uuid4())
        task = asyncio.create_task(self._run(job, job_id, handler, dict(payload)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        log.info("job_submitted", job=job, job_id=job_id, backend="inline")
        return job_id

    async def _run(self, job: str, job_id: str, handler: JobHandler, payload: dict) -> None:
        try:
            await run_with_retry(job, handler, payload, JOB_POLICIES[job], sleep=self._sleep)
        except Exception as exc:
            # fire-and-forget: l'échec est journalisé et compté, jamais remonté à la requête
            log.error("inline_job_gave_up", job=job, job_id=job_id, error=type(exc).__name__)

    async def drain(self) -> None:
        """Attend que tous les jobs soumis (y compris ceux qu'ils soumettent) soient terminés."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
