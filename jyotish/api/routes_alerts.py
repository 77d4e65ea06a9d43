"""Routes des alertes de transit (lecture et marquage comme lues)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from jyotish.api.deps import get_container, get_current_user
from jyotish.api.schemas import AlertPatch
from jyotish.core.container import Container
from jyotish.domain.entities import User

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


@router.get("")
async def list_alerts(
    profile_id: str | None = Query(None, alias="profileId"),
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    if profile_id is not None:
        await container.profiles.get(user.id, profile_id)
    alerts = await container.alerts.list_for_user(user.id, profile_id)
    return [a.model_dump(mode="json") for a in alerts]


@router.patch("")
async def update_alert(
    payload: AlertPatch,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    alert = await container.alerts.set_read(user.id, payload.alertId, payload.updates.is_read)
    return alert.model_dump(mode="json")
