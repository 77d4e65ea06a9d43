"""
Handlers des jobs de fond (PDF des rapports, alertes de transit).

Fonctions asynchrones sans dépendance à Celery: elles reçoivent le conteneur et sont appelées
soit par `InlineJobQueue`, soit par les tâches Celery. Toutes sont idempotentes.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from jyotish.domain.alerts import build_alert, significant_aspects
from jyotish.domain.report_prompts import REPORT_TITLES

if TYPE_CHECKING:
    from jyotish.core.container import Container

log = structlog.get_logger(__name__)

PDF_AUTHOR = "JyotishAI"


def pdf_url_for(report_id: str) -> str:
    return f"/api/v1/reports/{report_id}/pdf"


async def generate_report_pdf(container: Container, report_id: str) -> str:
    """
    Rend le PDF d'un rapport terminé et l'enregistre sur disque.

    Returns:
        "ok", "not_found" ou "not_ready" (rapport non terminé).
    """
    report = await container.reports.get_unscoped(report_id)
    if report is None:
        log.warning("pdf_report_missing", report_id=report_id)
        return "not_found"
    if report.generation_status != "complete" or not report.content:
        log.info("pdf_report_not_ready", report_id=report_id, status=report.generation_status)
        return "not_ready"
    profile = await container.profiles.get_unscoped(report.profile_id)
    name = profile.name if profile else "Profile"
    title = f"{REPORT_TITLES.get(report.report_type, report.report_type)} - {name}"
    pdf = await container.astro.render_pdf(
        title=title, content=report.content, author=PDF_AUTHOR, subject=report.report_type
    )
    path = await asyncio.to_thread(container.pdf_storage.save, report.id, pdf)
    await container.reports.set_pdf(report.id, pdf_url_for(report.id))
    log.info("pdf_generated", report_id=report.id, size=len(pdf), path=str(path))
    return "ok"


async def scan_profile_alerts(
    container: Container, profile_id: str, day: str | None = None
) -> int:
    """
    Calcule les aspects transit/natal du profil et insère les alertes significatives.

    Les alertes déjà présentes pour le même jour et le même titre sont ignorées.

    Returns:
        Nombre d'alertes insérées.
    """
    profile = await container.profiles.get_unscoped(profile_id)
    if profile is None or not profile.chart_data:
        log.info("alert_scan_skipped", profile_id=profile_id)
        return 0
    transits = await container.astro.current_transits()
    aspects = await container.astro.natal_aspects(
        profile.chart_data, transits.model_dump(mode="json")
    )
    day = day or datetime.now(UTC).date().isoformat()
    significant = significant_aspects(aspects, container.settings.ALERT_MAX_ORB)
    inserted = await container.alerts.insert_new(
        [build_alert(profile.id, a, day) for a in significant]
    )
    log.info(
        "alert_scan_done",
        profile_id=profile_id,
        aspects=len(aspects),
        significant=len(significant),
        inserted=inserted,
    )
    return inserted


async def schedule_alert_scans(container: Container) -> int:
    """Soumet un job `generate_alerts` par profil actif ayant un thème calculé."""
    profile_ids = await container.profiles.ids_with_chart()
    for profile_id in profile_ids:
        await container.jobs.submit("generate_alerts", {"profile_id": profile_id})
    log.info("alert_scans_scheduled", count=len(profile_ids))
    return len(profile_ids)
