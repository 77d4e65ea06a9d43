"""
Fakes pour les tests.

Ce module fournit des implémentations factices des collaborateurs externes (embeddings,
complétions en streaming, moteur astrologique) avec un comportement déterministe.
"""

from __future__ import annotations

import copy
import json
import math
import zlib
from collections.abc import AsyncIterator
from typing import Any

import httpx

from jyotish.domain.errors import ChatAPIError, EmbeddingError
from jyotish.infra.astro.engine_client import AstroEngineClient
from jyotish.infra.embeddings.base import Embeddings
from jyotish.infra.llm.base import CompletionProvider, CompletionStream
from jyotish.infra.repo.chunk_store import query_terms

DIM = 64

CHART: dict[str, Any] = {
    "calculated_at": "2024-01-01T00:00:00Z",
    "ayanamsha": "lahiri",
    "ayanamsha_value": 24.1,
    "julian_day": 2447893.5,
    "lagna": {"sign": "Aries", "sign_num": 1, "degrees": 12.5, "lord": "Mars"},
    "planets": {
        "Sun": {"sign": "Leo", "sign_num": 5, "degrees": 10.0, "house": 5,
                "nakshatra": "Magha", "pada": 1, "lord": "Sun"},
        "Moon": {"sign": "Cancer", "sign_num": 4, "degrees": 3.2, "house": 4,
                 "nakshatra": "Pushya", "pada": 2, "lord": "Moon"},
        "Mars": {"sign": "Capricorn", "sign_num": 10, "degrees": 28.0, "house": 10,
                 "nakshatra": "Dhanishta", "pada": 2, "lord": "Saturn"},
        "Mercury": {"sign": "Virgo", "sign_num": 6, "degrees": 15.0, "house": 6,
                    "nakshatra": "Hasta", "pada": 3, "lord": "Mercury"},
        "Jupiter": {"sign": "Sagittarius", "sign_num": 9, "degrees": 5.0, "house": 9,
                    "nakshatra": "Mula", "pada": 2, "lord": "Jupiter"},
        "Venus": {"sign": "Libra", "sign_num": 7, "degrees": 20.0, "house": 7,
                  "nakshatra": "Vishakha", "pada": 1, "lord": "Venus"},
        "Saturn": {"sign": "Aquarius", "sign_num": 11, "degrees": 8.0, "house": 11,
                   "nakshatra": "Shatabhisha", "pada": 1, "lord": "Saturn", "retrograde": True},
        "Rahu": {"sign": "Gemini", "sign_num": 3, "degrees": 18.0, "house": 3,
                 "nakshatra": "Ardra", "pada": 4, "lord": "Mercury", "retrograde": True},
        "Ketu": {"sign": "Sagittarius", "sign_num": 9, "degrees": 18.0, "house": 9,
                 "nakshatra": "Purva Ashadha", "pada": 2, "lord": "Jupiter", "retrograde": True},
    },
    "houses": {
        str(n): {"sign": sign, "lord": lord, "planets": []}
        for n, sign, lord in [
            (1, "Aries", "Mars"), (2, "Taurus", "Venus"), (3, "Gemini", "Mercury"),
            (4, "Cancer", "Moon"), (5, "Leo", "Sun"), (6, "Virgo", "Mercury"),
            (7, "Libra", "Venus"), (8, "Scorpio", "Mars"), (9, "Sagittarius", "Jupiter"),
            (10, "Capricorn", "Saturn"), (11, "Aquarius", "Saturn"), (12, "Pisces", "Jupiter"),
        ]
    },
    "dashas": {
        "balance_at_birth": {"planet": "Saturn", "years": 3, "months": 2, "days": 10},
        "sequence": [{"planet": "Jupiter", "start": "2015-01-01", "end": "2031-01-01"}],
        "current": {
            "mahadasha": "Jupiter",
            "antardasha": "Saturn",
            "mahadasha_start": "2015-01-01",
            "mahadasha_end": "2031-01-01",
            "antardasha_start": "2023-01-01",
            "antardasha_end": "2025-07-01",
        },
    },
    "yogas": [
        {"name": "Gaja Kesari", "type": "raja", "strength": "strong",
         "description": "Jupiter in kendra from Moon", "planets": ["Jupiter", "Moon"]},
    ],
    "numerology": {"birth_number": 7, "destiny_number": 3, "name_number": 5},
}

TRANSITS: dict[str, Any] = {
    "date": "2026-10-19",
    "planets": {"Saturn": {"sign": "Pisces", "degrees": 2.0}, "Jupiter": {"sign": "Cancer"}},
}

ASPECTS: list[dict[str, Any]] = [
    {"transiting_planet": "Saturn", "natal_planet": "Moon", "aspect_type": "square",
     "orb": 1.2, "applying": True},
    {"transiting_planet": "Jupiter", "natal_planet": "Sun", "aspect_type": "trine",
     "orb": 0.5, "applying": False},
    {"transiting_planet": "Mars", "natal_planet": "Venus", "aspect_type": "opposition",
     "orb": 3.5, "applying": True},
]

PDF_BYTES = b"%PDF-1.4\n% fake report\n%%EOF\n"


def chart_payload() -> dict[str, Any]:
    return copy.deepcopy(CHART)


def _vector(text: str) -> list[float]:
    # sac de mots haché: deux textes partageant des termes ont une similarité positive
    vec = [0.0] * DIM
    for term in query_terms(text):
        vec[zlib.crc32(term.encode()) % DIM] += 1.0
    norm = math.sqrt(sum(v * v for v in vec))
    if norm == 0:
        vec[0] = 1.0
        return vec
    return [v / norm for v in vec]


class FakeEmbeddings(Embeddings):
    """
    Implémentation factice d'Embeddings pour les tests.

    Génère des vecteurs déterministes (sac de mots haché) et compte les appels.
    """

    model = "fake-embedding"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.batches: list[list[str]] = []
        self.queries: list[str] = []

    async def embed(self, text: str) -> list[float]:
        if self.fail:
            raise EmbeddingError("embedding request rejected", status=503, endpoint="/embeddings")
        self.queries.append(text)
        return _vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if self.fail:
            raise EmbeddingError("embedding request rejected", status=503, endpoint="/embeddings")
        self.batches.append(list(texts))
        return [_vector(t) for t in texts]


def provider_frame(content: str) -> bytes:
    body = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(body, ensure_ascii=False)}\n\n".encode()


class FakeCompletions(CompletionProvider):
    """
    Fournisseur de complétions factice.

    Émet les `deltas` configurés au format SSE du fournisseur, en coupant volontairement les
    trames au milieu. `fail_after=n` interrompt le flux après n deltas; `fail_on_open` rejette
    la requête avant tout streaming.
    """

    default_model = "fake/model"

    def __init__(
        self,
        deltas: list[str] | None = None,
        fail_after: int | None = None,
        fail_on_open: bool = False,
    ) -> None:
        self.deltas = list(deltas if deltas is not None else ["Hello", " world"])
        self.fail_after = fail_after
        self.fail_on_open = fail_on_open
        self.calls: list[dict[str, Any]] = []
        self.closed = 0

    async def open_stream(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        title: str | None = None,
    ) -> CompletionStream:
        chosen = model or self.default_model
        self.calls.append({"messages": messages, "model": chosen, "title": title})
        if self.fail_on_open:
            raise ChatAPIError(
                "chat completion rejected", status=503, endpoint="/chat/completions"
            )
        return CompletionStream(self._chunks(), close=self._close, model=chosen)

    async def _chunks(self) -> AsyncIterator[bytes]:
        yield b": keep-alive\n\n"
        for i, delta in enumerate(self.deltas):
            if self.fail_after is not None and i >= self.fail_after:
                raise httpx.ReadError("upstream connection lost")
            frame = provider_frame(delta)
            half = len(frame) // 2
            yield frame[:half]
            yield frame[half:]
        if self.fail_after is not None and self.fail_after <= len(self.deltas):
            raise httpx.ReadError("upstream connection lost")
        yield b"data: [DONE]\n\n"

    async def _close(self) -> None:
        self.closed += 1

    @property
    def last_messages(self) -> list[dict[str, str]]:
        return self.calls[-1]["messages"]


class FakeAstroEngine(AstroEngineClient):
    """
    Moteur astrologique factice: le vrai client sur un `httpx.MockTransport`.

    Les requêtes reçues sont conservées dans `requests` (méthode, chemin, corps JSON).
    """

    def __init__(
        self,
        chart: dict[str, Any] | None = None,
        aspects: list[dict[str, Any]] | None = None,
        status: int = 200,
    ) -> None:
        self.chart = chart if chart is not None else chart_payload()
        self.aspects = aspects if aspects is not None else copy.deepcopy(ASPECTS)
        self.status = status
        self.requests: list[tuple[str, str, Any]] = []
        super().__init__(
            httpx.AsyncClient(
                transport=httpx.MockTransport(self._handle), base_url="http://astro.test"
            )
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))
        if self.status != 200:
            return httpx.Response(self.status, json={"detail": "engine failure"})
        path = request.url.path
        if path == "/chart":
            return httpx.Response(200, json=self.chart)
        if path == "/chart/transits":
            return httpx.Response(200, json=TRANSITS)
        if path == "/chart/transits/natal":
            return httpx.Response(200, json={"aspects": self.aspects})
        if path == "/pdf/report":
            return httpx.Response(
                200, content=PDF_BYTES, headers={"Content-Type": "application/pdf"}
            )
        return httpx.Response(404, json={"detail": "not found"})

    def paths(self) -> list[str]:
        return [path for _, path, _ in self.requests]

    async def aclose(self) -> None:
        await self.http.aclose()
