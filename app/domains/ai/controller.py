"""Model catalog and server configuration endpoints (public)."""

import logging

from fastapi import APIRouter

from app.core.config import settings
from app.domains.ai.credentials import is_model_available
from app.domains.ai.registry import LLMS, LLMInfo
from app.schemas.ai import ModelInfoResponse, ModelLimitsResponse, ServerConfigResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ai"])


def to_model_response(key: str, llm: LLMInfo) -> ModelInfoResponse:
    return ModelInfoResponse(
        key=key,
        id=llm.id,
        name=llm.name,
        version=llm.version,
        additional_info=llm.additional_info,
        provider=llm.provider.value,
        developer=llm.developer,
        disabled=llm.disabled,
        limits=ModelLimitsResponse(
            max_input_tokens=llm.limits.max_input_tokens,
            max_output_tokens=llm.limits.max_output_tokens,
        ),
        features=sorted(feature.value for feature in llm.features),
        experimental=llm.experimental,
        stream_chunking=llm.stream_chunking,
        available=is_model_available(key, llm),
    )


@router.get("/models", response_model=list[ModelInfoResponse])
async def list_models():
    """The model catalog; ``available`` reflects server-side keys only."""
    return [to_model_response(key, llm) for key, llm in LLMS.items()]


@router.get("/server-config", response_model=ServerConfigResponse)
async def get_server_config():
    """Which providers the server can serve without a user-supplied key."""
    return ServerConfigResponse(**settings.server_provider_config)
