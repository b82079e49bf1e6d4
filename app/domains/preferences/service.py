# app/domains/preferences/service.py
"""Preferences service for personalization and favorite models."""

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions.base import ConflictError
from app.schemas.preferences import PreferencesResponse, PreferencesUpdate
from models import FavoriteModel, UserPreferences

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 50
MAX_OCCUPATION_LENGTH = 100
MAX_TRAITS = 50
MAX_TRAIT_LENGTH = 100
MAX_ADDITIONAL_INFO_LENGTH = 3000


class PreferencesService:
    """Service for managing user preferences and favorite models."""

    def __init__(self, db: AsyncSession):
        """Initialize service with a database session."""
        self.db = db

    async def _get_row(self, user_id: str) -> UserPreferences | None:
        result = await self.db.execute(
            select(UserPreferences).where(UserPreferences.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_preferences(self, user_id: str) -> PreferencesResponse:
        """
        Get user preferences, falling back to defaults without storing them.

        Args:
            user_id: The user's unique identifier

        Returns:
            PreferencesResponse: Stored values or defaults
        """
        preferences = await self._get_row(user_id)
        if preferences is None:
            return PreferencesResponse()
        return PreferencesResponse.model_validate(preferences)

    async def _get_or_create_row(self, user_id: str) -> UserPreferences:
        preferences = await self._get_row(user_id)
        if preferences is None:
            preferences = UserPreferences(
                user_id=user_id,
                name="",
                occupation="",
                selected_traits=[],
                additional_info="",
                stats_for_nerds=False,
            )
            self.db.add(preferences)
        return preferences

    async def upsert_preferences(self, user_id: str, update: PreferencesUpdate) -> PreferencesResponse:
        """
        Update preferences with provided values, creating the row if needed.

        Over-long values are truncated to the stored limits.

        Args:
            user_id: The user's unique identifier
            update: Fields to change; ``None`` leaves a field untouched

        Returns:
            PreferencesResponse: Updated preferences

        Raises:
            SQLAlchemyError: If database operation fails
        """
        preferences = await self._get_or_create_row(user_id)

        try:
            if update.name is not None:
                preferences.name = update.name[:MAX_NAME_LENGTH]
            if update.occupation is not None:
                preferences.occupation = update.occupation[:MAX_OCCUPATION_LENGTH]
            if update.selected_traits is not None:
                preferences.selected_traits = [
                    trait[:MAX_TRAIT_LENGTH] for trait in update.selected_traits[:MAX_TRAITS]
                ]
            if update.additional_info is not None:
                preferences.additional_info = update.additional_info[:MAX_ADDITIONAL_INFO_LENGTH]
            if update.stats_for_nerds is not None:
                preferences.stats_for_nerds = update.stats_for_nerds

            await self.db.commit()
            await self.db.refresh(preferences)
            return PreferencesResponse.model_validate(preferences)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

    async def update_last_selected_model(self, user_id: str, model_key: str) -> None:
        preferences = await self._get_or_create_row(user_id)
        try:
            preferences.last_selected_model = model_key
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

    async def list_favorites(self, user_id: str) -> list[str]:
        result = await self.db.execute(
            select(FavoriteModel.model_id)
            .where(FavoriteModel.user_id == user_id)
            .order_by(FavoriteModel.created_at)
        )
        return list(result.scalars().all())

    async def add_favorite(self, user_id: str, model_id: str) -> list[str]:
        """
        Pin a model for the user.

        Raises:
            ConflictError: The model is already a favorite
        """
        try:
            self.db.add(FavoriteModel(user_id=user_id, model_id=model_id))
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(
                message="Model is already in favorites",
                details={"model_id": model_id},
                error_code="FAVORITE_EXISTS",
            ) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

        logger.info(f"User {user_id} added favorite model {model_id}")
        return await self.list_favorites(user_id)

    async def remove_favorite(self, user_id: str, model_id: str) -> list[str]:
        try:
            await self.db.execute(
                delete(FavoriteModel).where(
                    FavoriteModel.user_id == user_id, FavoriteModel.model_id == model_id
                )
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e
        return await self.list_favorites(user_id)
