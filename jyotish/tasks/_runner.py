"""Exécution d'un handler asynchrone depuis une tâche Celery (synchrone)."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from jyotish.core.container import Container
from jyotish.core.settings import get_settings


def run_handler(handler: Callable[..., Awaitable[Any]], **payload: Any) -> Any:
    """Construit un conteneur le temps du job, exécute le handler puis libère les ressources."""

    async def _main() -> Any:
        async with Container(get_settings()) as container:
            return await handler(container, **payload)

    return asyncio.run(_main())
