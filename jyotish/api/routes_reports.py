"""
Routes des rapports narratifs.

La génération est streamée en SSE: le premier événement porte l'identifiant du rapport, puis
chaque delta du texte. À la fin du flux, le rapport est marqué terminé, indexé pour la recherche
et son PDF est demandé en tâche de fond. Une coupure du flux, ou un échec à enregistrer le texte,
marque le rapport en échec et envoie un événement `error` au client.
"""

from __future__ import annotations

import asyncio

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, StreamingResponse

from jyotish.api.deps import get_container, get_current_user
from jyotish.api.routes_chat import estimate_tokens
from jyotish.api.schemas import ReportDetail, ReportGenerateRequest, ReportSectionOut
from jyotish.app.metrics import LLM_TOKENS_TOTAL, REPORT_GENERATIONS, labelize_model
from jyotish.core.container import Container
from jyotish.core.http_constants import SSE_HEADERS
from jyotish.domain.entities import User
from jyotish.domain.errors import EmbeddingError, JyotishError, NotFoundError, PersistenceError
from jyotish.domain.report_sections import split_sections
from jyotish.domain.sse import StreamRelay

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["reports"])


@router.post("/reports/generate")
async def generate_report(
    payload: ReportGenerateRequest,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    profile = await container.profiles.get(user.id, payload.profileId)
    chart = profile.chart()
    if chart is None:
        raise NotFoundError("Chart not calculated for this profile")

    settings = container.settings
    model = payload.model or container.completions.default_model
    report = await container.reports.create(
        profile.id, payload.reportType, payload.language, model, year=payload.year
    )

    async def mark_failed() -> None:
        await container.reports.mark_failed(report.id)
        REPORT_GENERATIONS.labels(report_type=payload.reportType, status="failed").inc()

    try:
        stream = await container.report_generator.generate_streaming_report(
            payload.reportType, payload.language, chart, model=model, year=payload.year
        )
    except JyotishError:
        await mark_failed()
        raise

    model_label = labelize_model(model, settings.ALLOWED_LLM_MODELS)

    async def on_finish(text: str, error: BaseException | None) -> list[dict]:
        tokens = await asyncio.to_thread(
            estimate_tokens, text, model, settings.TOKEN_COUNT_STRATEGY
        )
        LLM_TOKENS_TOTAL.labels(model=model_label, kind="completion").inc(tokens)
        if error is not None:
            await mark_failed()
            return []
        try:
            await container.reports.mark_complete(report.id, text)
        except PersistenceError as exc:
            log.error("report_complete_failed", report_id=report.id, error=str(exc))
            await mark_failed()
            raise
        REPORT_GENERATIONS.labels(report_type=payload.reportType, status="complete").inc()
        try:
            chunks = await container.report_generator.index_report(
                report.id, profile.id, payload.reportType, text
            )
            log.info("report_indexed", report_id=report.id, chunks=chunks)
        except (EmbeddingError, PersistenceError) as exc:
            # le rapport reste consultable; seule la recherche en est privée
            log.error("report_index_failed", report_id=report.id, error=str(exc))
        try:
            await container.jobs.submit("generate_pdf", {"report_id": report.id})
        except Exception as exc:
            log.error("pdf_job_submit_failed", report_id=report.id, error=type(exc).__name__)
        return []

    log.info(
        "report_generation_start",
        report_id=report.id,
        profile_id=profile.id,
        report_type=payload.reportType,
        model=model,
    )
    relay = StreamRelay(
        stream, on_finish, spawn=container.spawn, lead_events=[{"reportId": report.id}]
    )
    relay.start()
    return StreamingResponse(
        relay.frames(), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.get("/profiles/{profile_id}/reports")
async def list_reports(
    profile_id: str,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    await container.profiles.get(user.id, profile_id)
    reports = await container.reports.list_for_profile(user.id, profile_id)
    return [r.model_dump(mode="json") for r in reports]


@router.get("/reports/{report_id}", response_model=ReportDetail)
async def get_report(
    report_id: str,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    """Rapport avec ses sections découpées sur les titres markdown."""
    report = await container.reports.get(user.id, report_id)
    sections = [
        ReportSectionOut(title=s.title, content=s.content)
        for s in split_sections(report.content or "")
    ]
    return ReportDetail(report=report.model_dump(mode="json"), sections=sections)


@router.get("/reports/{report_id}/pdf")
async def download_report_pdf(
    report_id: str,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    report = await container.reports.get(user.id, report_id)
    if not container.pdf_storage.exists(report.id):
        raise NotFoundError("PDF not generated yet")
    return FileResponse(
        container.pdf_storage.path_for(report.id),
        media_type="application/pdf",
        filename=f"{report.report_type}-{report.id}.pdf",
    )
