"""
Module: celery_app.

But: Initialiser l'instance Celery de l'application, charger la config runtime et la
planification beat (scan quotidien des alertes de transit).
Notes:
- Aucun secret loggé.
- Les tâches sont envoyées par nom (`send_task`): l'API n'importe pas les modules de tâches.
"""

from celery import Celery
from celery.schedules import crontab

from jyotish.core.settings import get_settings

_settings = get_settings()

celery_app = Celery(
    "jyotish",
    broker=_settings.CELERY_BROKER_URL,
    backend=_settings.CELERY_RESULT_BACKEND,
    include=["jyotish.tasks.pdf_tasks", "jyotish.tasks.alert_tasks"],
)
# Load configuration from module (retries, timeouts, acks)
celery_app.config_from_object("jyotish.app.celeryconfig")
celery_app.conf.task_routes = {"jyotish.tasks.*": {"queue": "default"}}
celery_app.conf.beat_schedule = {
    "daily-transit-alert-scan": {
        "task": "jyotish.tasks.schedule_alert_scans",
        "schedule": crontab(hour=_settings.ALERT_SCAN_HOUR, minute=0),
    }
}

__all__ = ["celery_app"]
