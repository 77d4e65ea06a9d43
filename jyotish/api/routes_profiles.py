"""
Routes CRUD des profils de naissance.

Chaque opération est filtrée par le propriétaire authentifié: un profil d'un autre compte est
indiscernable d'un profil absent (404). Le corps est validé avant tout accès à la base.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from jyotish.api.deps import get_container, get_current_user
from jyotish.api.schemas import ProfileCreate, ProfileUpdate
from jyotish.core.container import Container
from jyotish.core.http_constants import HTTP_CREATED
from jyotish.domain.entities import User
from jyotish.domain.errors import ValidationError

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])

# colonnes NOT NULL: une valeur null explicite est refusée
_REQUIRED = {"name", "birth_date", "birth_time", "birth_place", "latitude", "longitude", "timezone"}


@router.get("")
async def list_profiles(
    user: User = Depends(get_current_user), container: Container = Depends(get_container)
):
    profiles = await container.profiles.list_for_user(user.id)
    return [p.model_dump(mode="json") for p in profiles]


@router.post("", status_code=HTTP_CREATED)
async def create_profile(
    payload: ProfileCreate,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    profile = await container.profiles.create(user.id, payload.model_dump())
    return profile.model_dump(mode="json")


@router.get("/{profile_id}")
async def get_profile(
    profile_id: str,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    profile = await container.profiles.get(user.id, profile_id)
    return profile.model_dump(mode="json")


@router.patch("/{profile_id}")
async def update_profile(
    profile_id: str,
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    """Mise à jour partielle; un corps vide est une erreur de validation."""
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationError("No fields to update")
    nulls = sorted(k for k, v in fields.items() if v is None and k in _REQUIRED | {"is_active"})
    if nulls:
        raise ValidationError("Fields cannot be null", details={"fields": nulls})
    profile = await container.profiles.update(user.id, profile_id, fields)
    return profile.model_dump(mode="json")


@router.delete("/{profile_id}")
async def delete_profile(
    profile_id: str,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    await container.profiles.delete(user.id, profile_id)
    return Response(status_code=204)
