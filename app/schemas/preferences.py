"""User preferences and favorite model schemas."""

from pydantic import Field

from app.schemas.base import CamelSchema


class PreferencesResponse(CamelSchema):
    name: str = ""
    occupation: str = ""
    selected_traits: list[str] = Field(default_factory=list)
    additional_info: str = ""
    last_selected_model: str | None = None
    stats_for_nerds: bool = False


class PreferencesUpdate(CamelSchema):
    """Partial update; values longer than the stored limits are truncated."""

    name: str | None = None
    occupation: str | None = None
    selected_traits: list[str] | None = None
    additional_info: str | None = None
    stats_for_nerds: bool | None = None


class LastSelectedModelRequest(CamelSchema):
    model_id: str = Field(..., min_length=1)


class FavoriteModelRequest(CamelSchema):
    model_id: str = Field(..., min_length=1)


class FavoriteModelsResponse(CamelSchema):
    favorite_models: list[str]
