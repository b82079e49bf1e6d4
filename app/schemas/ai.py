"""Schemas for provider credentials and the model catalog."""

from pydantic import Field

from app.schemas.base import CamelSchema


class AzureDeployment(CamelSchema):
    """Where an Azure-hosted model lives for a given user."""

    resource_name: str
    deployment_name: str | None = None


class AzureKeys(CamelSchema):
    """Azure credentials; each model may sit in a different resource."""

    api_key: str = ""
    deployments: dict[str, AzureDeployment] = Field(default_factory=dict)


class ApiKeys(CamelSchema):
    """User-supplied provider keys sent along with a chat request."""

    openai: str | None = None
    azure: AzureKeys | None = None
    anthropic: str | None = None
    openrouter: str | None = None
    google: str | None = None
    deepseek: str | None = None
    xai: str | None = None


class ModelLimitsResponse(CamelSchema):
    max_input_tokens: int
    max_output_tokens: int


class ModelInfoResponse(CamelSchema):
    """Registry entry as exposed to clients."""

    key: str
    id: str
    name: str
    version: str = ""
    additional_info: str | None = None
    provider: str
    developer: str
    disabled: bool
    limits: ModelLimitsResponse
    features: list[str]
    experimental: bool
    stream_chunking: str | None = None
    available: bool


class ServerConfigResponse(CamelSchema):
    """Providers that can be served with server-side keys."""

    openai: bool
    anthropic: bool
    azure: bool
    openrouter: bool
    google: bool
    deepseek: bool
    xai: bool
