"""Unit tests for the model catalog and credential resolution."""

import pytest
from pydantic import ValidationError

from app.core.config import settings
from app.domains.ai.credentials import (
    is_model_available,
    resolve_credentials,
    resolve_image_credentials,
)
from app.domains.ai.registry import (
    DEFAULT_MAX_INPUT_CHARS,
    LLMS,
    LLMFeature,
    LLMInfo,
    LLMProvider,
    ModelLimits,
    get_llm,
)
from app.exceptions.ai import AICredentialsMissingError, AIUnsupportedOperationError
from app.exceptions.chat import ModelDisabledError, ModelNotFoundError
from app.schemas.ai import ApiKeys, AzureDeployment, AzureKeys


def azure_model(**kwargs):
    return LLMInfo(
        id="gpt-4o",
        name="GPT-4o (Azure)",
        provider=LLMProvider.AZURE,
        developer="OpenAI",
        limits=ModelLimits(max_input_tokens=128_000, max_output_tokens=16_384),
        **kwargs,
    )


class TestRegistry:
    """Test cases for registry lookups."""

    def test_get_llm(self):
        llm = get_llm("gpt-4o-mini")

        assert llm.provider == LLMProvider.OPENAI
        assert llm.has_feature(LLMFeature.VISION)

    def test_unknown_model(self):
        with pytest.raises(ModelNotFoundError) as exc_info:
            get_llm("not-a-model")

        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "MODEL_NOT_FOUND"

    def test_disabled_model(self, monkeypatch):
        monkeypatch.setitem(LLMS, "retired", azure_model(disabled=True))

        with pytest.raises(ModelDisabledError):
            get_llm("retired")

    def test_image_model_is_image_only(self):
        assert LLMS["gpt-image-1"].features == frozenset({LLMFeature.IMAGES})

    def test_entries_are_immutable(self):
        with pytest.raises(ValidationError):
            LLMS["gpt-4o"].disabled = True

    def test_max_input_chars(self):
        assert LLMS["gpt-4o"].max_input_chars == int(128_000 * 3.5)
        limitless = azure_model().model_copy(update={"limits": ModelLimits(max_input_tokens=0, max_output_tokens=1)})
        assert limitless.max_input_chars == DEFAULT_MAX_INPUT_CHARS


class TestResolveCredentials:
    """Test cases for picking user or server keys."""

    def test_user_key_wins_over_server_key(self, monkeypatch):
        monkeypatch.setattr(settings, "openai_api_key", "sk-server")

        credentials = resolve_credentials("gpt-4o", LLMS["gpt-4o"], ApiKeys(openai="sk-user"))

        assert credentials.api_key == "sk-user"
        assert credentials.model_name == "gpt-4o"

    def test_server_key_fallback(self, monkeypatch):
        monkeypatch.setattr(settings, "anthropic_api_key", "sk-ant-server")

        credentials = resolve_credentials("claude-3.7", LLMS["claude-3.7"])

        assert credentials.provider == LLMProvider.ANTHROPIC
        assert credentials.api_key == "sk-ant-server"
        assert credentials.model_name == "claude-3-7-sonnet-latest"

    def test_missing_key(self):
        with pytest.raises(AICredentialsMissingError) as exc_info:
            resolve_credentials("gpt-4o", LLMS["gpt-4o"], ApiKeys())

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "OpenAI API key not configured"

    def test_azure_deployment_per_model(self):
        api_keys = ApiKeys(
            azure=AzureKeys(
                api_key="az-key",
                deployments={"azure-gpt-4o": AzureDeployment(resource_name="east", deployment_name="prod-4o")},
            )
        )

        credentials = resolve_credentials("azure-gpt-4o", azure_model(), api_keys)

        assert credentials.resource_name == "east"
        assert credentials.model_name == "prod-4o"
        assert credentials.api_key == "az-key"

    def test_azure_missing_resource(self, monkeypatch):
        monkeypatch.setattr(settings, "azure_resource_name", "")

        with pytest.raises(AICredentialsMissingError) as exc_info:
            resolve_credentials("azure-gpt-4o", azure_model(), ApiKeys(azure=AzureKeys(api_key="az-key")))

        assert "resource name" in exc_info.value.message

    def test_image_credentials_require_openai(self):
        with pytest.raises(AIUnsupportedOperationError):
            resolve_image_credentials("claude-3.7", LLMS["claude-3.7"], ApiKeys(anthropic="sk-ant"))

    def test_is_model_available(self):
        assert is_model_available("gpt-4o", LLMS["gpt-4o"], ApiKeys(openai="sk-user"))
        assert not is_model_available("gpt-4o", LLMS["gpt-4o"], ApiKeys())
