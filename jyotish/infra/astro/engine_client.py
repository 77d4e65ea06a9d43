"""
Client HTTP du moteur astrologique externe.

Le moteur (éphémérides, maisons, dashas, yogas) est un collaborateur opaque; ce client se limite
aux quatre appels consommés par l'application et convertit tout échec en `AstroEngineError`.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from jyotish.domain.chart import Aspect, ChartData, TransitData, parse_chart
from jyotish.domain.errors import AstroEngineError

log = structlog.get_logger(__name__)


class AstroEngineClient:
    """
    Client asynchrone du moteur astrologique.

    Le client httpx est injecté (base_url et timeout configurés par le conteneur).
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self.http = http

    async def _send(self, method: str, endpoint: str, payload: Any = None) -> httpx.Response:
        try:
            response = await self.http.request(method, endpoint, json=payload)
        except httpx.HTTPError as exc:
            log.warning("astro_engine_unreachable", endpoint=endpoint, error=type(exc).__name__)
            raise AstroEngineError("astro engine request failed", endpoint=endpoint) from exc
        if not response.is_success:
            log.warning("astro_engine_error", endpoint=endpoint, status=response.status_code)
            raise AstroEngineError(
                f"astro engine returned {response.status_code}",
                status=response.status_code,
                endpoint=endpoint,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, endpoint: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise AstroEngineError(
                "astro engine returned invalid JSON", status=response.status_code, endpoint=endpoint
            ) from exc

    async def calculate_chart(
        self,
        birth_date: str,
        birth_time: str,
        latitude: float,
        longitude: float,
        timezone: str,
        ayanamsha: str | None = None,
    ) -> tuple[ChartData, dict[str, Any]]:
        """
        Calcule le thème natal complet.

        Returns:
            Le thème validé et la charge utile brute (stockée telle quelle sur le profil).
        """
        body: dict[str, Any] = {
            "birth_date": birth_date,
            "birth_time": birth_time,
            "latitude": latitude,
            "longitude": longitude,
            "timezone": timezone,
        }
        if ayanamsha:
            body["ayanamsha"] = ayanamsha
        response = await self._send("POST", "/chart", body)
        raw = self._json(response, "/chart")
        return parse_chart(raw), raw

    async def current_transits(self) -> TransitData:
        response = await self._send("GET", "/chart/transits")
        raw = self._json(response, "/chart/transits")
        try:
            return TransitData.model_validate(raw)
        except ValueError as exc:
            raise AstroEngineError(
                "invalid transits payload", endpoint="/chart/transits"
            ) from exc

    async def natal_aspects(
        self, natal: dict[str, Any], transits: dict[str, Any]
    ) -> list[Aspect]:
        """Aspects entre les planètes en transit et le thème natal."""
        endpoint = "/chart/transits/natal"
        response = await self._send("POST", endpoint, {"natal": natal, "transits": transits})
        raw = self._json(response, endpoint)
        items = raw.get("aspects", raw) if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            raise AstroEngineError("invalid aspects payload", endpoint=endpoint)
        try:
            return [Aspect.model_validate(a) for a in items]
        except ValueError as exc:
            raise AstroEngineError("invalid aspects payload", endpoint=endpoint) from exc

    async def render_pdf(self, title: str, content: str, author: str, subject: str) -> bytes:
        """Rendu PDF d'un rapport (binaire)."""
        response = await self._send(
            "POST",
            "/pdf/report",
            {"title": title, "content": content, "author": author, "subject": subject},
        )
        return response.content
