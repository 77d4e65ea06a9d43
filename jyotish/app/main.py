"""
Application principale FastAPI.

Ce module assemble tous les composants de l'application : middlewares,
routes, métriques et gestion des erreurs de l'API JyotishAI.

Responsabilités du module:
- Initialiser le logging structuré
- Construire le conteneur de dépendances au démarrage (lifespan) et le fermer à l'arrêt
- Ajouter les middlewares (request id, métriques, timing)
- Monter les routers (santé, auth, profils, thèmes, rapports, chat, alertes, métriques)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jyotish.api.errors import install_error_handlers
from jyotish.api.routes_alerts import router as alerts_router
from jyotish.api.routes_auth import router as auth_router
from jyotish.api.routes_charts import router as charts_router
from jyotish.api.routes_chat import router as chat_router
from jyotish.api.routes_health import router as health_router
from jyotish.api.routes_profiles import router as profiles_router
from jyotish.api.routes_reports import router as reports_router
from jyotish.app.metrics import PrometheusMiddleware, metrics_router
from jyotish.core.container import Container
from jyotish.core.logging import setup_logging
from jyotish.core.settings import get_settings
from jyotish.middlewares.request_id import RequestIDMiddleware
from jyotish.middlewares.timing import TimingMiddleware


def create_app(container: Container | None = None) -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog)
    - Lit les paramètres d'exécution (ceux du conteneur fourni, sinon l'environnement)
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie les routes

    Le conteneur est démarré par le lifespan; s'il n'est pas fourni (cas nominal), il est
    construit à ce moment-là depuis les settings.
    """
    settings = container.settings if container is not None else get_settings()
    setup_logging(settings.APP_DEBUG)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        current = container or Container(settings)
        app.state.container = current
        await current.startup()
        try:
            yield
        finally:
            await current.shutdown()

    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG, lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(TimingMiddleware)
    install_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(profiles_router)
    app.include_router(charts_router)
    app.include_router(reports_router)
    app.include_router(chat_router)
    app.include_router(alerts_router)
    app.include_router(metrics_router)
    return app


app = create_app()
