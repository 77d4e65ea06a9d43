"""
Endpoint de santé pour vérifier la disponibilité de l'API.

Expose `/health` avec l'état de la base de données et le backend de jobs configuré.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from jyotish.api.deps import get_container
from jyotish.core.container import Container

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(container: Container = Depends(get_container)):
    """Vérifie la disponibilité de l'API et de la base de données."""
    try:
        async with container.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "jobs": container.settings.JOBS_BACKEND,
    }
