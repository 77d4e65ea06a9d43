"""
Repositories SQL des entités métier.

Chaque repository ouvre une transaction courte par opération (`session_scope`) et convertit
les lignes ORM en entités immuables via une fonction de mapping par entité; les objets ORM ne
sortent jamais de ce module. Les filtres de propriété (`profiles.user_id`) sont appliqués dans
chaque requête initiée par un utilisateur.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jyotish.domain.entities import (
    ChatMessage,
    ChatSession,
    NewAlert,
    Profile,
    Report,
    TransitAlert,
    User,
)
from jyotish.domain.errors import ConflictError, NotFoundError
from jyotish.infra.repo.db import session_scope
from jyotish.infra.repo.models import (
    ChatMessageORM,
    ChatSessionORM,
    ProfileORM,
    ReportORM,
    TransitAlertORM,
    UserORM,
)

log = structlog.get_logger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


def _user_from_row(row: UserORM) -> User:
    return User(id=row.id, email=row.email, password_hash=row.password_hash)


def _profile_from_row(row: ProfileORM) -> Profile:
    return Profile(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        relation=row.relation,
        birth_date=row.birth_date,
        birth_time=row.birth_time,
        birth_place=row.birth_place,
        latitude=row.latitude,
        longitude=row.longitude,
        timezone=row.timezone,
        chart_data=row.chart_data,
        chart_calculated_at=row.chart_calculated_at,
        avatar_url=row.avatar_url,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _report_from_row(row: ReportORM) -> Report:
    return Report(
        id=row.id,
        profile_id=row.profile_id,
        report_type=row.report_type,
        language=row.language,
        content=row.content,
        summary=row.summary,
        model_used=row.model_used,
        generation_status=row.generation_status,
        pdf_url=row.pdf_url,
        pdf_generated_at=row.pdf_generated_at,
        is_favorite=bool(row.is_favorite),
        year=row.year,
        created_at=row.created_at,
    )


def _session_from_row(row: ChatSessionORM) -> ChatSession:
    return ChatSession(
        id=row.id,
        profile_id=row.profile_id,
        title=row.title,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _message_from_row(row: ChatMessageORM) -> ChatMessage:
    return ChatMessage(
        id=row.id,
        session_id=row.session_id,
        role=row.role,
        content=row.content,
        sources=row.sources,
        model_used=row.model_used,
        created_at=row.created_at,
    )


def _alert_from_row(row: TransitAlertORM) -> TransitAlert:
    return TransitAlert(
        id=row.id,
        profile_id=row.profile_id,
        alert_type=row.alert_type,
        title=row.title,
        content=row.content,
        trigger_date=row.trigger_date,
        planet=row.planet,
        natal_planet=row.natal_planet,
        orb=row.orb,
        is_read=bool(row.is_read),
        created_at=row.created_at,
    )


class _SQLRepo:
    def __init__(self, sessions: SessionFactory) -> None:
        self._sessions = sessions


class UserRepo(_SQLRepo):
    """Comptes utilisateurs (email unique, hash du mot de passe)."""

    async def create(self, email: str, password_hash: str) -> User:
        async with session_scope(self._sessions) as session:
            row = UserORM(email=email.lower(), password_hash=password_hash)
            session.add(row)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise ConflictError("email already registered") from exc
            return _user_from_row(row)

    async def get_by_email(self, email: str) -> User | None:
        async with session_scope(self._sessions) as session:
            stmt = select(UserORM).where(UserORM.email == email.lower())
            row = (await session.execute(stmt)).scalars().first()
            return _user_from_row(row) if row else None

    async def get(self, user_id: str) -> User | None:
        async with session_scope(self._sessions) as session:
            row = await session.get(UserORM, user_id)
            return _user_from_row(row) if row else None


class ProfileRepo(_SQLRepo):
    """Profils de naissance, toujours filtrés par propriétaire."""

    @staticmethod
    async def _owned(session: AsyncSession, user_id: str, profile_id: str) -> ProfileORM:
        stmt = select(ProfileORM).where(
            ProfileORM.id == profile_id, ProfileORM.user_id == user_id
        )
        row = (await session.execute(stmt)).scalars().first()
        if row is None:
            raise NotFoundError("Profile not found")
        return row

    async def list_for_user(self, user_id: str) -> list[Profile]:
        async with session_scope(self._sessions) as session:
            stmt = (
                select(ProfileORM)
                .where(ProfileORM.user_id == user_id)
                .order_by(ProfileORM.created_at.asc(), ProfileORM.id.asc())
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_profile_from_row(r) for r in rows]

    async def get(self, user_id: str, profile_id: str) -> Profile:
        """Retourne le profil s'il appartient à l'utilisateur, sinon `NotFoundError`."""
        async with session_scope(self._sessions) as session:
            return _profile_from_row(await self._owned(session, user_id, profile_id))

    async def create(self, user_id: str, fields: dict[str, Any]) -> Profile:
        async with session_scope(self._sessions) as session:
            row = ProfileORM(user_id=user_id, **fields)
            session.add(row)
            await session.flush()
            log.info("profile_created", profile_id=row.id)
            return _profile_from_row(row)

    async def update(self, user_id: str, profile_id: str, fields: dict[str, Any]) -> Profile:
        async with session_scope(self._sessions) as session:
            row = await self._owned(session, user_id, profile_id)
            for key, value in fields.items():
                setattr(row, key, value)
            row.updated_at = datetime.now(UTC)
            await session.flush()
            return _profile_from_row(row)

    async def delete(self, user_id: str, profile_id: str) -> None:
        async with session_scope(self._sessions) as session:
            row = await self._owned(session, user_id, profile_id)
            await session.delete(row)
        log.info("profile_deleted", profile_id=profile_id)

    async def save_chart(self, user_id: str, profile_id: str, chart: dict[str, Any]) -> Profile:
        """Enregistre le thème calculé et sa date de calcul."""
        now = datetime.now(UTC)
        return await self.update(
            user_id, profile_id, {"chart_data": chart, "chart_calculated_at": now}
        )

    # Accès système (jobs de fond): pas d'utilisateur authentifié.

    async def get_unscoped(self, profile_id: str) -> Profile | None:
        async with session_scope(self._sessions) as session:
            row = await session.get(ProfileORM, profile_id)
            return _profile_from_row(row) if row else None

    async def ids_with_chart(self) -> list[str]:
        """Identifiants des profils actifs dont le thème est calculé."""
        async with session_scope(self._sessions) as session:
            stmt = (
                select(ProfileORM.id)
                .where(ProfileORM.chart_calculated_at.is_not(None), ProfileORM.is_active.is_(True))
                .order_by(ProfileORM.id.asc())
            )
            return list((await session.execute(stmt)).scalars().all())


class ReportRepo(_SQLRepo):
    """Rapports générés; la propriété passe par le profil parent."""

    async def create(
        self,
        profile_id: str,
        report_type: str,
        language: str,
        model_used: str,
        year: int | None = None,
    ) -> Report:
        """Crée l'enregistrement au statut `generating`."""
        async with session_scope(self._sessions) as session:
            row = ReportORM(
                profile_id=profile_id,
                report_type=report_type,
                language=language,
                model_used=model_used,
                generation_status="generating",
                content="",
                year=year,
            )
            session.add(row)
            await session.flush()
            return _report_from_row(row)

    async def mark_complete(self, report_id: str, content: str) -> Report:
        async with session_scope(self._sessions) as session:
            row = await session.get(ReportORM, report_id)
            if row is None:
                raise NotFoundError("Report not found")
            row.content = content
            row.generation_status = "complete"
            await session.flush()
            return _report_from_row(row)

    async def mark_failed(self, report_id: str) -> None:
        async with session_scope(self._sessions) as session:
            row = await session.get(ReportORM, report_id)
            if row is not None and row.generation_status == "generating":
                row.generation_status = "failed"
        log.warning("report_marked_failed", report_id=report_id)

    async def get(self, user_id: str, report_id: str) -> Report:
        async with session_scope(self._sessions) as session:
            stmt = (
                select(ReportORM)
                .join(ProfileORM, ProfileORM.id == ReportORM.profile_id)
                .where(ReportORM.id == report_id, ProfileORM.user_id == user_id)
            )
            row = (await session.execute(stmt)).scalars().first()
            if row is None:
                raise NotFoundError("Report not found")
            return _report_from_row(row)

    async def list_for_profile(self, user_id: str, profile_id: str) -> list[Report]:
        async with session_scope(self._sessions) as session:
            stmt = (
                select(ReportORM)
                .join(ProfileORM, ProfileORM.id == ReportORM.profile_id)
                .where(ReportORM.profile_id == profile_id, ProfileORM.user_id == user_id)
                .order_by(ReportORM.created_at.desc(), ReportORM.id.asc())
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_report_from_row(r) for r in rows]

    async def get_unscoped(self, report_id: str) -> Report | None:
        async with session_scope(self._sessions) as session:
            row = await session.get(ReportORM, report_id)
            return _report_from_row(row) if row else None

    async def set_pdf(self, report_id: str, pdf_url: str) -> None:
        async with session_scope(self._sessions) as session:
            row = await session.get(ReportORM, report_id)
            if row is None:
                raise NotFoundError("Report not found")
            row.pdf_url = pdf_url
            row.pdf_generated_at = datetime.now(UTC)


class ChatRepo(_SQLRepo):
    """Sessions et messages de chat."""

    async def get_session(self, session_id: str) -> ChatSession | None:
        """Session brute; l'appelant vérifie qu'elle appartient au profil attendu."""
        async with session_scope(self._sessions) as session:
            row = await session.get(ChatSessionORM, session_id)
            return _session_from_row(row) if row else None

    async def create_session(self, profile_id: str, title: str) -> ChatSession:
        async with session_scope(self._sessions) as session:
            row = ChatSessionORM(profile_id=profile_id, title=title[:100])
            session.add(row)
            await session.flush()
            return _session_from_row(row)

    async def list_sessions(self, user_id: str, profile_id: str) -> list[ChatSession]:
        async with session_scope(self._sessions) as session:
            stmt = (
                select(ChatSessionORM)
                .join(ProfileORM, ProfileORM.id == ChatSessionORM.profile_id)
                .where(ChatSessionORM.profile_id == profile_id, ProfileORM.user_id == user_id)
                .order_by(ChatSessionORM.updated_at.desc(), ChatSessionORM.id.asc())
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_session_from_row(r) for r in rows]

    async def list_messages(self, user_id: str, session_id: str) -> list[ChatMessage]:
        async with session_scope(self._sessions) as session:
            owner = (
                select(ChatSessionORM.id)
                .join(ProfileORM, ProfileORM.id == ChatSessionORM.profile_id)
                .where(ChatSessionORM.id == session_id, ProfileORM.user_id == user_id)
            )
            if (await session.execute(owner)).first() is None:
                raise NotFoundError("Chat session not found")
            stmt = (
                select(ChatMessageORM)
                .where(ChatMessageORM.session_id == session_id)
                .order_by(ChatMessageORM.created_at.asc(), ChatMessageORM.seq.asc())
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_message_from_row(r) for r in rows]

    async def recent_history(self, session_id: str, limit: int) -> list[ChatMessage]:
        """Les `limit` derniers messages, du plus ancien au plus récent."""
        async with session_scope(self._sessions) as session:
            stmt = (
                select(ChatMessageORM)
                .where(ChatMessageORM.session_id == session_id)
                .order_by(ChatMessageORM.created_at.desc(), ChatMessageORM.seq.desc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_message_from_row(r) for r in reversed(rows)]

    async def append_exchange(
        self,
        session_id: str,
        question: str,
        answer: str,
        sources: list[dict[str, Any]],
        model_used: str,
    ) -> None:
        """Ajoute la paire user/assistant dans une seule transaction."""
        async with session_scope(self._sessions) as session:
            count_stmt = select(func.count(ChatMessageORM.id)).where(
                ChatMessageORM.session_id == session_id
            )
            seq = (await session.execute(count_stmt)).scalar_one()
            now = datetime.now(UTC)
            session.add(
                ChatMessageORM(
                    session_id=session_id, role="user", content=question, seq=seq, created_at=now
                )
            )
            session.add(
                ChatMessageORM(
                    session_id=session_id,
                    role="assistant",
                    content=answer,
                    sources=sources,
                    model_used=model_used,
                    seq=seq + 1,
                    created_at=now,
                )
            )
            row = await session.get(ChatSessionORM, session_id)
            if row is not None:
                row.updated_at = now


class AlertRepo(_SQLRepo):
    """Alertes de transit."""

    async def list_for_user(self, user_id: str, profile_id: str | None = None) -> list[TransitAlert]:
        async with session_scope(self._sessions) as session:
            stmt = (
                select(TransitAlertORM)
                .join(ProfileORM, ProfileORM.id == TransitAlertORM.profile_id)
                .where(ProfileORM.user_id == user_id)
            )
            if profile_id is not None:
                stmt = stmt.where(TransitAlertORM.profile_id == profile_id)
            stmt = stmt.order_by(
                TransitAlertORM.trigger_date.desc(), TransitAlertORM.title.asc()
            ).limit(50)
            rows = (await session.execute(stmt)).scalars().all()
            return [_alert_from_row(r) for r in rows]

    async def set_read(self, user_id: str, alert_id: str, is_read: bool) -> TransitAlert:
        async with session_scope(self._sessions) as session:
            stmt = (
                select(TransitAlertORM)
                .join(ProfileORM, ProfileORM.id == TransitAlertORM.profile_id)
                .where(TransitAlertORM.id == alert_id, ProfileORM.user_id == user_id)
            )
            row = (await session.execute(stmt)).scalars().first()
            if row is None:
                raise NotFoundError("Alert not found")
            row.is_read = is_read
            await session.flush()
            return _alert_from_row(row)

    async def insert_new(self, alerts: list[NewAlert]) -> int:
        """Insère les alertes absentes; un doublon (profil, jour, titre) est ignoré.

        Returns:
            Nombre d'alertes réellement insérées.
        """
        inserted = 0
        async with session_scope(self._sessions) as session:
            for alert in alerts:
                exists = select(TransitAlertORM.id).where(
                    TransitAlertORM.profile_id == alert.profile_id,
                    TransitAlertORM.trigger_date == alert.trigger_date,
                    TransitAlertORM.title == alert.title,
                )
                if (await session.execute(exists)).first() is not None:
                    continue
                session.add(TransitAlertORM(**alert.model_dump()))
                inserted += 1
        return inserted

