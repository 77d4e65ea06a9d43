"""Modèles SQLAlchemy de la couche de persistance."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Classe de base pour tous les modèles SQLAlchemy."""

    metadata = MetaData()


class UserORM(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class ProfileORM(Base):
    """Profil de naissance (une personne de la famille)."""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(100), nullable=False)
    relation = Column(String(20), nullable=True)
    birth_date = Column(String(10), nullable=False)
    birth_time = Column(String(8), nullable=False)
    birth_place = Column(String(255), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    timezone = Column(String(64), nullable=False)
    chart_data = Column(JSON, nullable=True)
    chart_calculated_at = Column(DateTime(timezone=True), nullable=True)
    avatar_url = Column(String(512), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)


class ReportORM(Base):
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=_uuid)
    profile_id = Column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    report_type = Column(String(32), nullable=False)
    language = Column(String(2), nullable=False, default="en")
    content = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    model_used = Column(String(128), nullable=True)
    generation_status = Column(String(16), nullable=False, default="generating")
    pdf_url = Column(String(512), nullable=True)
    pdf_generated_at = Column(DateTime(timezone=True), nullable=True)
    is_favorite = Column(Boolean, nullable=False, default=False)
    year = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class ReportChunkORM(Base):
    """Segment de rapport indexé; `profile_id` est dénormalisé pour filtrer la recherche."""

    __tablename__ = "report_chunks"

    id = Column(String(36), primary_key=True, default=_uuid)
    report_id = Column(
        String(36), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    profile_id = Column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    embedding = Column(JSON, nullable=False)
    chunk_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (UniqueConstraint("report_id", "chunk_index", name="uq_report_chunk_index"),)


class ChatSessionORM(Base):
    __tablename__ = "chat_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    profile_id = Column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)


class ChatMessageORM(Base):
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(
        String(36), ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    sources = Column(JSON, nullable=True)
    model_used = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    # ordre d'insertion, départage les messages créés dans la même transaction
    seq = Column(Integer, nullable=False, default=0)


class TransitAlertORM(Base):
    __tablename__ = "transit_alerts"

    id = Column(String(36), primary_key=True, default=_uuid)
    profile_id = Column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    alert_type = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    trigger_date = Column(String(10), nullable=False)
    planet = Column(String(32), nullable=True)
    natal_planet = Column(String(32), nullable=True)
    orb = Column(Float, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        UniqueConstraint("profile_id", "trigger_date", "title", name="uq_alert_profile_day_title"),
    )
