"""Configuration centralisée Celery pour les tâches asynchrones.

Livraison au moins une fois: acquittement après exécution, tâche rejetée si le worker meurt.
Les politiques de relance sont portées par chaque tâche (voir `JOB_POLICIES`).
"""

from __future__ import annotations

# Retries & acks
task_acks_late = True
task_reject_on_worker_lost = True
worker_prefetch_multiplier = 1
task_time_limit = 300  # secondes
broker_pool_limit = 10

task_default_queue = "default"
task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]
timezone = "UTC"
enable_utc = True
