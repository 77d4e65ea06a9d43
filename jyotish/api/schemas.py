# Schémas Pydantic exposés par l'API (requêtes et réponses).

from __future__ import annotations

import re
from datetime import date
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from jyotish.domain.entities import Language, Relation, ReportType

TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")


def _check_date(value: str) -> str:
    try:
        date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError("birth_date must be YYYY-MM-DD") from exc
    return value


def _check_time(value: str) -> str:
    if not TIME_RE.match(value):
        raise ValueError("birth_time must be HH:MM or HH:MM:SS")
    return value


def _check_timezone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError("timezone must be a valid IANA timezone") from exc
    return value


class SignupPayload(BaseModel):
    """Payload pour l'inscription d'un nouvel utilisateur."""

    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class LoginPayload(BaseModel):
    email: EmailStr
    password: str


class ProfileCreate(BaseModel):
    """Création d'un profil de naissance.

    Invariants: latitude dans [-90, 90], longitude dans [-180, 180], heure HH:MM[:SS].
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    relation: Relation | None = None
    birth_date: str
    birth_time: str
    birth_place: str = Field(min_length=1, max_length=255)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    timezone: str
    avatar_url: str | None = Field(default=None, max_length=512)

    @field_validator("birth_date")
    @classmethod
    def check_birth_date(cls, v: str) -> str:
        return _check_date(v)

    @field_validator("birth_time")
    @classmethod
    def check_birth_time(cls, v: str) -> str:
        return _check_time(v)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        return _check_timezone(v)


class ProfileUpdate(BaseModel):
    """Mise à jour partielle; seuls les champs fournis sont modifiés."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=100)
    relation: Relation | None = None
    birth_date: str | None = None
    birth_time: str | None = None
    birth_place: str | None = Field(default=None, min_length=1, max_length=255)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    timezone: str | None = None
    avatar_url: str | None = Field(default=None, max_length=512)
    is_active: bool | None = None

    @field_validator("birth_date")
    @classmethod
    def check_birth_date(cls, v: str | None) -> str | None:
        return None if v is None else _check_date(v)

    @field_validator("birth_time")
    @classmethod
    def check_birth_time(cls, v: str | None) -> str | None:
        return None if v is None else _check_time(v)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str | None) -> str | None:
        return None if v is None else _check_timezone(v)


class CalculateRequest(BaseModel):
    profileId: str
    ayanamsha: str | None = Field(default=None, max_length=32)


class ReportGenerateRequest(BaseModel):
    profileId: str
    reportType: ReportType
    language: Language = "en"
    model: str | None = Field(default=None, max_length=128)
    year: int | None = Field(default=None, ge=1900, le=2200)


class ChatRequest(BaseModel):
    profileId: str
    sessionId: str | None = None
    message: str = Field(min_length=1, max_length=4000)
    model: str | None = Field(default=None, max_length=128)

    @field_validator("message")
    @classmethod
    def check_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class AlertUpdates(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_read: bool


class AlertPatch(BaseModel):
    alertId: str
    updates: AlertUpdates


class ReportSectionOut(BaseModel):
    title: str
    content: str


class ReportDetail(BaseModel):
    """Rapport et ses sections (découpées sur les titres `## `)."""

    report: dict[str, Any]
    sections: list[ReportSectionOut]
