# app/domains/preferences/controller.py
"""Preferences and favorite models API endpoints."""

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db, validate_token
from app.domains.preferences.service import PreferencesService
from app.schemas.preferences import (
    FavoriteModelRequest,
    FavoriteModelsResponse,
    LastSelectedModelRequest,
    PreferencesResponse,
    PreferencesUpdate,
)
from models import User

router = APIRouter(prefix="/api", tags=["preferences"], dependencies=[Depends(validate_token)])


@router.get("/user-preferences", response_model=PreferencesResponse)
async def get_preferences(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the current user's preferences.

    Users without stored preferences get the defaults.
    """
    return await PreferencesService(db).get_preferences(current_user.id)


@router.patch("/user-preferences", response_model=PreferencesResponse)
async def update_preferences(
    preferences_update: PreferencesUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update the current user's preferences.

    Only provided fields are updated; over-long values are truncated.
    """
    return await PreferencesService(db).upsert_preferences(current_user.id, preferences_update)


@router.post("/user-preferences/last-selected-model", response_model=PreferencesResponse)
async def update_last_selected_model(
    model_request: LastSelectedModelRequest = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = PreferencesService(db)
    await service.update_last_selected_model(current_user.id, model_request.model_id)
    return await service.get_preferences(current_user.id)


@router.get("/favorite-models", response_model=FavoriteModelsResponse)
async def list_favorite_models(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    favorites = await PreferencesService(db).list_favorites(current_user.id)
    return FavoriteModelsResponse(favorite_models=favorites)


@router.post("/favorite-models", response_model=FavoriteModelsResponse, status_code=status.HTTP_201_CREATED)
async def add_favorite_model(
    favorite_request: FavoriteModelRequest = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pin a model; pinning it twice is a conflict."""
    favorites = await PreferencesService(db).add_favorite(current_user.id, favorite_request.model_id)
    return FavoriteModelsResponse(favorite_models=favorites)


@router.delete("/favorite-models", response_model=FavoriteModelsResponse)
async def remove_favorite_model(
    favorite_request: FavoriteModelRequest = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    favorites = await PreferencesService(db).remove_favorite(current_user.id, favorite_request.model_id)
    return FavoriteModelsResponse(favorite_models=favorites)
