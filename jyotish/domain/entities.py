"""
Entités du domaine métier.

Ce module définit les modèles de données principaux utilisés dans l'application: comptes,
profils de naissance, rapports, sessions de chat et alertes de transit. Ce sont les types
internes produits par les repositories; les lignes de base de données ne circulent pas au-delà.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

from jyotish.domain.chart import ChartData, parse_chart

ReportType = Literal[
    "in_depth",
    "career",
    "wealth",
    "yearly",
    "transit_jupiter",
    "transit_saturn",
    "transit_rahu_ketu",
    "numerology",
    "gem_recommendation",
]
REPORT_TYPES: tuple[str, ...] = get_args(ReportType)

Language = Literal["en", "hi"]
Relation = Literal["self", "spouse", "parent", "child", "sibling", "other"]
ReportStatus = Literal["generating", "complete", "failed"]
ChatRole = Literal["user", "assistant"]


class _Entity(BaseModel):
    model_config = ConfigDict(frozen=True)


class User(_Entity):
    """Compte utilisateur."""

    id: str
    email: str
    password_hash: str = Field(default="", repr=False, exclude=True)


class Profile(_Entity):
    """Profil de naissance appartenant à exactement un compte."""

    id: str
    user_id: str
    name: str
    relation: Relation | None = None
    birth_date: str  # YYYY-MM-DD
    birth_time: str  # HH:MM[:SS]
    birth_place: str
    latitude: float
    longitude: float
    timezone: str  # IANA TZ
    chart_data: dict[str, Any] | None = None
    chart_calculated_at: datetime | None = None
    avatar_url: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def chart(self) -> ChartData | None:
        """Thème calculé, validé, ou None si pas encore calculé."""
        if not self.chart_data:
            return None
        return parse_chart(self.chart_data)


class Report(_Entity):
    """Rapport narratif généré pour un profil."""

    id: str
    profile_id: str
    report_type: ReportType
    language: Language = "en"
    content: str | None = None
    summary: str | None = None
    model_used: str | None = None
    generation_status: ReportStatus = "generating"
    pdf_url: str | None = None
    pdf_generated_at: datetime | None = None
    is_favorite: bool = False
    year: int | None = None
    created_at: datetime | None = None


class ChatSession(_Entity):
    id: str
    profile_id: str
    title: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ChatMessage(_Entity):
    id: str
    session_id: str
    role: ChatRole
    content: str
    sources: list[dict[str, Any]] | None = None
    model_used: str | None = None
    created_at: datetime | None = None


class TransitAlert(_Entity):
    """Notification d'un aspect serré entre une planète en transit et une planète natale."""

    id: str
    profile_id: str
    alert_type: str
    title: str
    content: str
    trigger_date: str
    planet: str | None = None
    natal_planet: str | None = None
    orb: float | None = None
    is_read: bool = False
    created_at: datetime | None = None


class NewAlert(_Entity):
    """Alerte à insérer (sans identifiant)."""

    profile_id: str
    alert_type: str = "planet_transit"
    title: str
    content: str
    trigger_date: str
    planet: str | None = None
    natal_planet: str | None = None
    orb: float | None = None
