# mypy: ignore-errors
"""
Migration initiale: comptes, profils, rapports, segments indexés, chat et alertes.

Les embeddings des segments sont stockés en JSON (liste de flottants); la recherche hybride est
calculée côté application.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True)


def _fk(name: str, target: str) -> sa.Column:
    return sa.Column(
        name,
        sa.String(length=36),
        sa.ForeignKey(target, ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    """Crée l'ensemble des tables applicatives."""
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        _created_at(),
    )
    op.create_table(
        "profiles",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("relation", sa.String(length=20), nullable=True),
        sa.Column("birth_date", sa.String(length=10), nullable=False),
        sa.Column("birth_time", sa.String(length=8), nullable=False),
        sa.Column("birth_place", sa.String(length=255), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("chart_data", sa.JSON(), nullable=True),
        sa.Column("chart_calculated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "reports",
        _id(),
        _fk("profile_id", "profiles.id"),
        sa.Column("report_type", sa.String(length=32), nullable=False),
        sa.Column("language", sa.String(length=2), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("model_used", sa.String(length=128), nullable=True),
        sa.Column("generation_status", sa.String(length=16), nullable=False),
        sa.Column("pdf_url", sa.String(length=512), nullable=True),
        sa.Column("pdf_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_favorite", sa.Boolean(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "report_chunks",
        _id(),
        _fk("report_id", "reports.id"),
        _fk("profile_id", "profiles.id"),
        sa.Column("chunk_index", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("embedding", sa.JSON(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("report_id", "chunk_index", name="uq_report_chunk_index"),
    )
    op.create_table(
        "chat_sessions",
        _id(),
        _fk("profile_id", "profiles.id"),
        sa.Column("title", sa.String(length=100), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "chat_messages",
        _id(),
        _fk("session_id", "chat_sessions.id"),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("sources", sa.JSON(), nullable=True),
        sa.Column("model_used", sa.String(length=128), nullable=True),
        _created_at(),
        sa.Column("seq", sa.Integer(), nullable=False),
    )
    op.create_table(
        "transit_alerts",
        _id(),
        _fk("profile_id", "profiles.id"),
        sa.Column("alert_type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("trigger_date", sa.String(length=10), nullable=False),
        sa.Column("planet", sa.String(length=32), nullable=True),
        sa.Column("natal_planet", sa.String(length=32), nullable=True),
        sa.Column("orb", sa.Float(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        _created_at(),
        sa.UniqueConstraint(
            "profile_id", "trigger_date", "title", name="uq_alert_profile_day_title"
        ),
    )


def downgrade() -> None:
    """Supprime les tables dans l'ordre inverse des dépendances."""
    for table in (
        "transit_alerts",
        "chat_messages",
        "chat_sessions",
        "report_chunks",
        "reports",
        "profiles",
        "users",
    ):
        op.drop_table(table)
