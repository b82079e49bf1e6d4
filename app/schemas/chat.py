"""Chat request and message part schemas."""

from typing import Annotated, Any, Literal, Union

from pydantic import Field

from app.schemas.ai import ApiKeys
from app.schemas.base import CamelSchema


# Message parts: a closed tagged union discriminated by ``type``.
class TextPart(CamelSchema):
    type: Literal["text"] = "text"
    text: str


class ReasoningPart(CamelSchema):
    type: Literal["reasoning"] = "reasoning"
    reasoning: str
    details: list[dict[str, Any]] = Field(default_factory=list)


class FilePart(CamelSchema):
    type: Literal["file"] = "file"
    mime_type: str
    data: str
    name: str | None = None


MessagePart = Annotated[Union[TextPart, ReasoningPart, FilePart], Field(discriminator="type")]


class ChatMessage(CamelSchema):
    """A message as submitted by the client."""

    id: str | None = None
    role: Literal["user", "assistant"]
    content: str | None = None
    parts: list[MessagePart] = Field(default_factory=list)


class ThreadMetadata(CamelSchema):
    id: str | None = None


class OpenAIImageParams(CamelSchema):
    quality: Literal["auto", "high", "medium", "low"] = "auto"
    background: Literal["auto", "transparent", "opaque"] = "auto"
    output_format: Literal["png", "jpeg", "webp"] = "png"
    output_compression: int = Field(default=100, ge=0, le=100)
    moderation: Literal["auto", "low"] = "auto"


class ImageGenerationParams(CamelSchema):
    n: int = Field(default=1, ge=1, le=10)
    size: Literal["1024x1024", "1536x1024", "1024x1536", "auto"] = "1024x1024"
    openai: OpenAIImageParams | None = None


class OpenAIParams(CamelSchema):
    reasoning_effort: Literal["low", "medium", "high"] | None = None


class AnthropicThinking(CamelSchema):
    type: Literal["enabled"] | None = None
    budget_tokens: int | None = Field(default=None, ge=1000, le=50000)


class AnthropicParams(CamelSchema):
    thinking: AnthropicThinking | None = None


class GoogleParams(CamelSchema):
    include_thoughts: bool | None = None
    thinking_budget: int | None = Field(default=None, ge=512, le=32768)


class OpenRouterReasoning(CamelSchema):
    # OpenRouter spells this field in snake_case on the wire
    max_tokens: int | None = Field(default=None, ge=1, le=100000, alias="max_tokens")
    effort: Literal["low", "medium", "high"] | None = None


class OpenRouterParams(CamelSchema):
    reasoning: OpenRouterReasoning | None = None


class ModelParams(CamelSchema):
    """Per-provider knobs chosen in the UI."""

    web_search: bool = False
    image_generation: ImageGenerationParams | None = None
    openai: OpenAIParams | None = None
    anthropic: AnthropicParams | None = None
    google: GoogleParams | None = None
    openrouter: OpenRouterParams | None = None


class ChatPreferences(CamelSchema):
    name: str = ""
    occupation: str = ""
    selected_traits: list[str] = Field(default_factory=list)
    additional_info: str = ""
    stats_for_nerds: bool = False


class UserInfo(CamelSchema):
    timezone: str | None = None


class ChatRequest(CamelSchema):
    """Body of ``POST /api/chat``."""

    messages: list[ChatMessage]
    thread_metadata: ThreadMetadata = Field(default_factory=ThreadMetadata)
    model: str
    model_params: ModelParams = Field(default_factory=ModelParams)
    preferences: ChatPreferences = Field(default_factory=ChatPreferences)
    user_info: UserInfo = Field(default_factory=UserInfo)
    api_keys: ApiKeys = Field(default_factory=ApiKeys)
    attachment_ids: list[str] = Field(default_factory=list)
