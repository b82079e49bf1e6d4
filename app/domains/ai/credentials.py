"""Resolve which API credentials serve a given model.

User-supplied keys always win over the server-side fallbacks configured in
settings. Resolution never talks to a provider; it only decides whether a
model is usable and with what.
"""

import logging

from pydantic import BaseModel, ConfigDict

from app.core.config import settings
from app.domains.ai.registry import LLMInfo, LLMProvider
from app.exceptions.ai import AICredentialsMissingError, AIUnsupportedOperationError
from app.schemas.ai import ApiKeys

logger = logging.getLogger(__name__)

PROVIDER_DISPLAY_NAMES = {
    LLMProvider.AZURE: "Azure",
    LLMProvider.ANTHROPIC: "Anthropic",
    LLMProvider.OPENAI: "OpenAI",
    LLMProvider.OPENROUTER: "OpenRouter",
    LLMProvider.GOOGLE: "Google",
    LLMProvider.DEEPSEEK: "DeepSeek",
    LLMProvider.XAI: "xAI",
}


class ProviderCredentials(BaseModel):
    """Everything a provider adapter needs to open a client."""

    model_config = ConfigDict(frozen=True)

    provider: LLMProvider
    api_key: str
    model_name: str
    base_url: str | None = None
    resource_name: str | None = None


def _server_key(provider: LLMProvider) -> str | None:
    return {
        LLMProvider.OPENAI: settings.openai_api_key,
        LLMProvider.ANTHROPIC: settings.anthropic_api_key,
        LLMProvider.OPENROUTER: settings.openrouter_api_key,
        LLMProvider.GOOGLE: settings.google_api_key,
        LLMProvider.DEEPSEEK: settings.deepseek_api_key,
        LLMProvider.XAI: settings.xai_api_key,
    }.get(provider)


def _base_url(provider: LLMProvider) -> str | None:
    return {
        LLMProvider.OPENROUTER: settings.openrouter_base_url,
        LLMProvider.DEEPSEEK: settings.deepseek_base_url,
        LLMProvider.XAI: settings.xai_base_url,
    }.get(provider)


def _resolve_azure(model_key: str, llm_info: LLMInfo, api_keys: ApiKeys) -> ProviderCredentials:
    azure = api_keys.azure
    api_key = (azure.api_key if azure else "") or settings.azure_api_key or ""
    resource_name = settings.azure_resource_name or ""
    deployment_name = llm_info.id

    deployment = azure.deployments.get(model_key) if azure else None
    if deployment is not None:
        resource_name = deployment.resource_name
        deployment_name = deployment.deployment_name or llm_info.id

    if not api_key or not resource_name:
        missing = "API key" if not api_key else "resource name"
        raise AICredentialsMissingError(
            message=f"Azure configuration incomplete: missing {missing}",
            details={"provider": LLMProvider.AZURE.value, "model": model_key},
        )

    return ProviderCredentials(
        provider=LLMProvider.AZURE,
        api_key=api_key,
        model_name=deployment_name,
        resource_name=resource_name,
    )


def resolve_credentials(model_key: str, llm_info: LLMInfo, api_keys: ApiKeys | None = None) -> ProviderCredentials:
    """Pick the credentials for a text generation with ``llm_info``.

    Raises:
        AICredentialsMissingError: Neither the user nor the server has a key.
    """
    api_keys = api_keys or ApiKeys()
    provider = llm_info.provider

    if provider == LLMProvider.AZURE:
        return _resolve_azure(model_key, llm_info, api_keys)

    api_key = getattr(api_keys, provider.value, None) or _server_key(provider)
    if not api_key:
        raise AICredentialsMissingError(
            message=f"{PROVIDER_DISPLAY_NAMES[provider]} API key not configured",
            details={"provider": provider.value, "model": model_key},
        )

    return ProviderCredentials(
        provider=provider,
        api_key=api_key,
        model_name=llm_info.id,
        base_url=_base_url(provider),
    )


def resolve_image_credentials(
    model_key: str, llm_info: LLMInfo, api_keys: ApiKeys | None = None
) -> ProviderCredentials:
    """Credentials for an image-capable model; only OpenAI serves images."""
    if llm_info.provider != LLMProvider.OPENAI:
        raise AIUnsupportedOperationError(
            message=f"Image generation not supported for provider: {llm_info.provider.value}",
            details={"model": model_key},
        )
    return resolve_credentials(model_key, llm_info, api_keys)


def is_model_available(model_key: str, llm_info: LLMInfo, api_keys: ApiKeys | None = None) -> bool:
    if llm_info.disabled:
        return False
    try:
        resolve_credentials(model_key, llm_info, api_keys)
    except AICredentialsMissingError:
        return False
    return True
