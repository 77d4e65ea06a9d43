"""Configuration de test pour pytest.

Chaque test dispose d'une base SQLite en mémoire (StaticPool), d'une file de jobs inline et de
collaborateurs externes factices (embeddings, complétions, moteur astrologique).
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from jyotish.app.main import create_app
from jyotish.core.container import Container
from jyotish.core.settings import Settings
from jyotish.infra.jobs.queue import InlineJobQueue
from tests.fakes import FakeAstroEngine, FakeCompletions, FakeEmbeddings

PROFILE_PAYLOAD: dict[str, Any] = {
    "name": "Asha",
    "relation": "self",
    "birth_date": "1990-08-15",
    "birth_time": "06:30",
    "birth_place": "Pune, India",
    "latitude": 18.52,
    "longitude": 73.85,
    "timezone": "Asia/Kolkata",
}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        APP_ENV="test",
        APP_DEBUG=False,
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        DB_AUTO_CREATE=True,
        JOBS_BACKEND="inline",
        PDF_STORAGE_DIR=str(tmp_path / "pdf"),
        JWT_SECRET="test-secret",
        LLM_API_KEY="test-key",
        TOKEN_COUNT_STRATEGY="words",
    )


@pytest.fixture
def embedder() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def completions() -> FakeCompletions:
    return FakeCompletions()


@pytest.fixture
def astro() -> FakeAstroEngine:
    return FakeAstroEngine()


@pytest.fixture
def jobs() -> InlineJobQueue:
    """File inline sans attente entre les tentatives."""

    async def no_sleep(delay: float) -> None:
        return None

    return InlineJobQueue(sleep=no_sleep)


@pytest.fixture
def app_container(settings, embedder, completions, astro, jobs) -> Container:
    """Conteneur non démarré: le lifespan de l'application s'en charge."""
    return Container(
        settings, embedder=embedder, completions=completions, astro=astro, jobs=jobs
    )


@pytest.fixture
def client(app_container):
    # le context manager garde une seule boucle pour le lifespan et les requêtes
    with TestClient(create_app(app_container)) as c:
        yield c


@pytest_asyncio.fixture
async def container(settings, embedder, completions, astro, jobs):
    """Conteneur démarré pour les tests qui appellent directement les repositories/handlers."""
    c = Container(
        settings, embedder=embedder, completions=completions, astro=astro, jobs=jobs
    )
    await c.startup()
    yield c
    await c.shutdown()
    await astro.aclose()


def signup_and_login(client: TestClient, email: str = "user@example.com") -> dict[str, str]:
    """Crée un compte et retourne les en-têtes d'autorisation."""
    password = "s3cret-pass"
    r = client.post("/auth/signup", json={"email": email, "password": password})
    assert r.status_code == 201, r.text
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def auth_headers(client) -> dict[str, str]:
    return signup_and_login(client)


@pytest.fixture
def make_profile(client, auth_headers) -> Callable[..., dict[str, Any]]:
    """Crée un profil (thème calculé par défaut) pour l'utilisateur courant."""

    def _make(headers: dict[str, str] | None = None, calculate: bool = True, **overrides):
        h = headers or auth_headers
        r = client.post("/api/v1/profiles", json={**PROFILE_PAYLOAD, **overrides}, headers=h)
        assert r.status_code == 201, r.text
        profile = r.json()
        if calculate:
            r = client.post("/api/v1/calculate", json={"profileId": profile["id"]}, headers=h)
            assert r.status_code == 200, r.text
            profile = r.json()["profile"]
        return profile

    return _make


def sse_events(body: str) -> list[Any]:
    """Décode les trames `data:` d'une réponse SSE; `[DONE]` est retourné tel quel."""
    events: list[Any] = []
    for block in body.split("\n\n"):
        block = block.strip()
        if not block.startswith("data:"):
            continue
        data = block[5:].strip()
        events.append(data if data == "[DONE]" else json.loads(data))
    return events
