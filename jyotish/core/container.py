"""
Conteneur d'injection de dépendances.

Instancie les composants centraux (settings, base de données, repositories, clients externes,
file de jobs) et porte leur cycle de vie: `startup()` / `shutdown()` sont appelés par le point
d'entrée (lifespan FastAPI, tâche Celery), jamais au premier usage.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import httpx
import structlog

from jyotish.core.settings import Settings, get_settings
from jyotish.domain.chat_orchestrator import ChatOrchestrator
from jyotish.domain.report_generator import ReportGenerator
from jyotish.domain.retriever import Retriever
from jyotish.infra.astro.engine_client import AstroEngineClient
from jyotish.infra.embeddings.base import Embeddings
from jyotish.infra.embeddings.openai_embedder import OpenAIEmbedder
from jyotish.infra.jobs.queue import CeleryJobQueue, InlineJobQueue, JobQueue
from jyotish.infra.llm.base import CompletionProvider
from jyotish.infra.llm.chat_completions import ChatCompletionsClient
from jyotish.infra.repo.chunk_store import SQLChunkStore
from jyotish.infra.repo.db import get_engine, get_session_factory
from jyotish.infra.repo.models import Base
from jyotish.infra.repo.repositories import (
    AlertRepo,
    ChatRepo,
    ProfileRepo,
    ReportRepo,
    UserRepo,
)
from jyotish.infra.storage.pdf_storage import PDFStorage

log = structlog.get_logger(__name__)


class Container:
    """
    Regroupe les dépendances de l'application.

    Les collaborateurs externes (embeddings, complétions, moteur astro, jobs) peuvent être
    injectés, ce que font les tests; sinon ils sont construits depuis les settings.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        embedder: Embeddings | None = None,
        completions: CompletionProvider | None = None,
        astro: AstroEngineClient | None = None,
        jobs: JobQueue | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        s = self.settings

        self.engine = get_engine(s.DATABASE_URL)
        self.sessions = get_session_factory(self.engine)
        self.users = UserRepo(self.sessions)
        self.profiles = ProfileRepo(self.sessions)
        self.reports = ReportRepo(self.sessions)
        self.chats = ChatRepo(self.sessions)
        self.alerts = AlertRepo(self.sessions)
        self.chunk_store = SQLChunkStore(self.sessions, vector_weight=s.HYBRID_VECTOR_WEIGHT)

        self._owned_clients: list[httpx.AsyncClient] = []
        if completions is None:
            llm_http = httpx.AsyncClient(
                base_url=s.LLM_BASE_URL,
                timeout=httpx.Timeout(s.LLM_TIMEOUT_SECONDS, connect=10.0),
            )
            self._owned_clients.append(llm_http)
            completions = ChatCompletionsClient(
                llm_http,
                api_key=s.LLM_API_KEY,
                default_model=s.LLM_DEFAULT_MODEL,
                referer=s.APP_PUBLIC_URL,
            )
        self.completions = completions
        self.embedder = embedder or OpenAIEmbedder(
            api_key=s.LLM_API_KEY,
            base_url=s.LLM_BASE_URL,
            model=s.EMBEDDINGS_MODEL,
            referer=s.APP_PUBLIC_URL,
        )
        if astro is None:
            astro_http = httpx.AsyncClient(
                base_url=s.ASTRO_ENGINE_URL, timeout=s.ASTRO_ENGINE_TIMEOUT_SECONDS
            )
            self._owned_clients.append(astro_http)
            astro = AstroEngineClient(astro_http)
        self.astro = astro
        self.pdf_storage = PDFStorage(s.PDF_STORAGE_DIR)

        self.retriever = Retriever(self.embedder, self.chunk_store)
        self.chat = ChatOrchestrator(self.retriever, self.completions, top_k=s.RETRIEVAL_TOP_K)
        self.report_generator = ReportGenerator(
            self.completions, self.embedder, self.chunk_store
        )

        self.jobs = jobs or self._build_jobs()
        self._background: set[asyncio.Task] = set()
        self._started = False

    def _build_jobs(self) -> JobQueue:
        backend = self.settings.JOBS_BACKEND.lower()
        if backend == "inline":
            return InlineJobQueue()
        if backend == "celery":
            # import local: l'API ne charge Celery que si ce backend est choisi
            from jyotish.app.celery_app import celery_app

            return CeleryJobQueue(celery_app)
        raise ValueError(f"unknown JOBS_BACKEND: {self.settings.JOBS_BACKEND}")

    def _bind_inline_handlers(self) -> None:
        if not isinstance(self.jobs, InlineJobQueue):
            return
        from jyotish.tasks import handlers

        self.jobs.register(
            "generate_pdf", lambda payload: handlers.generate_report_pdf(self, **payload)
        )
        self.jobs.register(
            "generate_alerts", lambda payload: handlers.scan_profile_alerts(self, **payload)
        )

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Lance une tâche de fond suivie par le conteneur (attendue à l'arrêt)."""
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_background(self) -> None:
        """Attend les tâches de fond en cours (relais de streaming notamment)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def startup(self) -> None:
        if self._started:
            return
        if self.settings.DB_AUTO_CREATE:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        self._bind_inline_handlers()
        self._started = True
        log.info(
            "container_started",
            env=self.settings.APP_ENV,
            jobs=type(self.jobs).__name__,
        )

    async def shutdown(self) -> None:
        await self.wait_background()
        await self.jobs.close()
        for client in self._owned_clients:
            await client.aclose()
        await self._close_embedder()
        await self.engine.dispose()
        self._started = False
        log.info("container_stopped")

    async def _close_embedder(self) -> None:
        client = getattr(self.embedder, "client", None)
        close = getattr(client, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> Container:
        await self.startup()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.shutdown()
