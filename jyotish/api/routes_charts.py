"""
Routes de calcul du thème et des transits.

Le calcul utilise les données de naissance stockées sur le profil; le thème renvoyé par le
moteur est validé puis enregistré tel quel avec sa date de calcul.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from jyotish.api.deps import get_container, get_current_user
from jyotish.api.schemas import CalculateRequest
from jyotish.core.container import Container
from jyotish.domain.entities import User

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["charts"])


@router.post("/calculate")
async def calculate_chart(
    payload: CalculateRequest,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    """Calcule (ou recalcule) le thème du profil et l'enregistre."""
    profile = await container.profiles.get(user.id, payload.profileId)
    _, raw = await container.astro.calculate_chart(
        birth_date=profile.birth_date,
        birth_time=profile.birth_time,
        latitude=profile.latitude,
        longitude=profile.longitude,
        timezone=profile.timezone,
        ayanamsha=payload.ayanamsha,
    )
    updated = await container.profiles.save_chart(user.id, profile.id, raw)
    log.info("chart_calculated", profile_id=profile.id)
    return {"success": True, "chartData": raw, "profile": updated.model_dump(mode="json")}


@router.get("/transits")
async def current_transits(
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    transits = await container.astro.current_transits()
    return transits.model_dump(mode="json")
