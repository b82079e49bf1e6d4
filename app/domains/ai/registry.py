"""Static catalog of supported language models.

The catalog is configuration data: it is built once at import time and never
mutated. ``get_llm`` is the only lookup the request path uses.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict

from app.exceptions.chat import ModelDisabledError, ModelNotFoundError

# Rough characters-per-token ratio used to bound client input
CHARS_PER_TOKEN = 3.5
DEFAULT_MAX_INPUT_CHARS = 4000


class LLMFeature(str, Enum):
    FAST = "fast"
    VISION = "vision"
    IMAGES = "images"
    SEARCH = "search"
    PDFS = "pdfs"
    PARAMETERS = "parameters"
    REASONING = "reasoning"
    REASONING_EFFORT = "reasoningEffort"


class LLMProvider(str, Enum):
    AZURE = "azure"
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GOOGLE = "google"
    DEEPSEEK = "deepseek"
    XAI = "xai"


class ModelLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_input_tokens: int
    max_output_tokens: int


class LLMInfo(BaseModel):
    """A registry entry. ``id`` is the provider-side model name."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    version: str = ""
    additional_info: str | None = None
    provider: LLMProvider
    developer: str
    disabled: bool = False
    limits: ModelLimits
    features: frozenset[LLMFeature] = frozenset()
    experimental: bool = False
    stream_chunking: Literal["word", "line"] | None = None

    def has_feature(self, feature: LLMFeature) -> bool:
        return feature in self.features

    @property
    def max_input_chars(self) -> int:
        if not self.limits.max_input_tokens:
            return DEFAULT_MAX_INPUT_CHARS
        return int(self.limits.max_input_tokens * CHARS_PER_TOKEN)


def _model(
    id: str,
    name: str,
    provider: LLMProvider,
    developer: str,
    max_input: int,
    max_output: int,
    features: tuple[LLMFeature, ...],
    **extra,
) -> LLMInfo:
    return LLMInfo(
        id=id,
        name=name,
        provider=provider,
        developer=developer,
        limits=ModelLimits(max_input_tokens=max_input, max_output_tokens=max_output),
        features=frozenset(features),
        **extra,
    )


F = LLMFeature
P = LLMProvider

_GPT_4O = (F.VISION, F.PARAMETERS, F.PDFS, F.SEARCH)
_GPT_41 = (F.VISION, F.PARAMETERS, F.SEARCH)
_O_MINI = (F.PARAMETERS, F.REASONING, F.REASONING_EFFORT, F.SEARCH)
_O4_MINI = (F.PARAMETERS, F.REASONING, F.REASONING_EFFORT, F.VISION, F.PDFS, F.SEARCH)
_O3_BIG = (F.VISION, F.PARAMETERS, F.REASONING_EFFORT, F.REASONING, F.PDFS)
_CLAUDE_REASONING = (F.VISION, F.PDFS, F.PARAMETERS, F.REASONING, F.REASONING_EFFORT)

LLMS: dict[str, LLMInfo] = {
    # OpenAI
    "gpt-4o-mini": _model("gpt-4o-mini", "GPT-4o Mini", P.OPENAI, "OpenAI", 128_000, 16_384, _GPT_4O, version="4o Mini"),
    "gpt-4o": _model("gpt-4o", "GPT-4o", P.OPENAI, "OpenAI", 128_000, 16_384, _GPT_4O, version="4o"),
    "o3-mini": _model("o3-mini", "o3 Mini", P.OPENAI, "OpenAI", 200_000, 100_000, _O_MINI),
    "o4-mini": _model("o4-mini", "o4 Mini", P.OPENAI, "OpenAI", 200_000, 100_000, _O4_MINI),
    "gpt-4.5": _model("gpt-4.5-preview", "GPT-4.5", P.OPENAI, "OpenAI", 200_000, 16_384, (F.VISION, F.PARAMETERS, F.SEARCH), version="4.5"),
    "gpt-4.1": _model("gpt-4.1", "GPT-4.1", P.OPENAI, "OpenAI", 1_000_000, 16_384, _GPT_41, version="4.1", stream_chunking="word"),
    "gpt-4.1-mini": _model("gpt-4.1-mini", "GPT-4.1 Mini", P.OPENAI, "OpenAI", 1_000_000, 16_384, _GPT_41, version="4.1 Mini", stream_chunking="word"),
    "gpt-4.1-nano": _model("gpt-4.1-nano", "GPT-4.1 Nano", P.OPENAI, "OpenAI", 1_000_000, 16_384, _GPT_41, version="4.1 Nano", stream_chunking="word"),
    "gpt-image-1": _model("gpt-image-1", "GPT ImageGen", P.OPENAI, "OpenAI", 10_000, 16_384, (F.IMAGES,), version="1", experimental=True),
    "o3-pro": _model("o3-pro", "o3 Pro", P.OPENAI, "OpenAI", 200_000, 100_000, _O3_BIG, version="Pro"),
    "o3-full": _model("o3", "o3 Full", P.OPENAI, "OpenAI", 200_000, 100_000, _O3_BIG, version="Full"),
    # Anthropic
    "claude-3.5": _model("claude-3-5-sonnet-latest", "Claude 3.5 Sonnet", P.ANTHROPIC, "Anthropic", 30_000, 16_384, (F.VISION, F.PDFS, F.PARAMETERS), version="3.5"),
    "claude-3.7": _model("claude-3-7-sonnet-latest", "Claude 3.7 Sonnet", P.ANTHROPIC, "Anthropic", 30_000, 16_384, _CLAUDE_REASONING, version="3.7"),
    "claude-4-sonnet": _model("claude-sonnet-4-0", "Claude 4 Sonnet", P.ANTHROPIC, "Anthropic", 30_000, 16_384, _CLAUDE_REASONING, version="4 Sonnet"),
    "claude-4-opus": _model("claude-opus-4-0", "Claude 4 Opus", P.ANTHROPIC, "Anthropic", 30_000, 15_000, _CLAUDE_REASONING, version="4 Opus"),
    # OpenRouter
    "deepseek-r1-openrouter": _model("deepseek/deepseek-r1", "DeepSeek R1", P.OPENROUTER, "DeepSeek", 128_000, 16_384, (F.PARAMETERS, F.REASONING), version="R1", additional_info="OpenRouter", experimental=True),
    "deepseek-r1-0528-openrouter": _model("deepseek/deepseek-r1-0528", "DeepSeek R1", P.OPENROUTER, "DeepSeek", 128_000, 16_384, (F.PARAMETERS, F.REASONING), version="R1 0528", additional_info="OpenRouter", experimental=True),
    "deepseek-chat-v3-0324-openrouter": _model("deepseek/deepseek-chat-v3-0324", "DeepSeek v3", P.OPENROUTER, "DeepSeek", 64_000, 16_384, (F.PARAMETERS,), version="chat v3 0324", additional_info="OpenRouter", experimental=True),
    "llama-4-maverick-openrouter": _model("meta-llama/llama-4-maverick", "Llama 4 Maverick", P.OPENROUTER, "Meta", 1_000_000, 512_000, (F.PARAMETERS, F.VISION), version="4 Maverick", additional_info="OpenRouter", experimental=True),
    "grok-3-beta-openrouter": _model("x-ai/grok-3-beta", "Grok 3 Beta", P.OPENROUTER, "xAI", 128_000, 8_192, (F.PARAMETERS, F.REASONING, F.REASONING_EFFORT), version="3 Beta", additional_info="OpenRouter", experimental=True),
    "grok-3-mini-openrouter": _model("x-ai/grok-3-mini-beta", "Grok 3 Mini", P.OPENROUTER, "xAI", 128_000, 8_192, (F.PARAMETERS, F.REASONING, F.REASONING_EFFORT), version="3 Mini", additional_info="OpenRouter", experimental=True),
    "deepseek-r1:free-openrouter": _model("deepseek/deepseek-r1-0528:free", "DeepSeek R1", P.OPENROUTER, "DeepSeek", 128_000, 16_384, (F.PARAMETERS, F.REASONING), version="0528 Free", additional_info="OpenRouter"),
    "gpt-4o-mini-openrouter": _model("openai/gpt-4o-mini", "GPT-4o Mini", P.OPENROUTER, "OpenAI", 128_000, 16_384, _GPT_4O, version="4o Mini"),
    "gpt-4o-openrouter": _model("openai/gpt-4o", "GPT-4o", P.OPENROUTER, "OpenAI", 128_000, 16_384, _GPT_4O, version="4o"),
    "o3-mini-openrouter": _model("openai/o3-mini", "o3 Mini", P.OPENROUTER, "OpenAI", 200_000, 100_000, _O_MINI),
    "o4-mini-openrouter": _model("openai/o4-mini", "o4 Mini", P.OPENROUTER, "OpenAI", 200_000, 100_000, _O4_MINI),
    "gpt-4.1-openrouter": _model("openai/gpt-4.1", "GPT-4.1", P.OPENROUTER, "OpenAI", 1_000_000, 16_384, _GPT_41, version="4.1", stream_chunking="word"),
    "gpt-4.1-mini-openrouter": _model("openai/gpt-4.1-mini", "GPT-4.1 Mini", P.OPENROUTER, "OpenAI", 1_000_000, 16_384, _GPT_41, version="4.1 Mini", stream_chunking="word"),
    "gpt-4.1-nano-openrouter": _model("openai/gpt-4.1-nano", "GPT-4.1 Nano", P.OPENROUTER, "OpenAI", 1_000_000, 16_384, _GPT_41, version="4.1 Nano", stream_chunking="word"),
    # Google
    "gemini-2.0-flash": _model("gemini-2.0-flash", "Gemini 2.0 Flash", P.GOOGLE, "Google", 1_048_576, 8_192, (F.VISION, F.PDFS, F.SEARCH), version="2.0 Flash", stream_chunking="word"),
    "gemini-2.5-flash-preview-05-20": _model("gemini-2.5-flash-preview-05-20", "Gemini 2.5 Flash Preview", P.GOOGLE, "Google", 1_048_576, 65_536, (F.VISION, F.PDFS, F.SEARCH, F.REASONING, F.REASONING_EFFORT), version="2.5 Flash Preview", stream_chunking="word"),
    "gemini-2.5-pro-preview-06-05": _model("gemini-2.5-pro-preview-06-05", "Gemini 2.5 Pro Preview", P.GOOGLE, "Google", 1_048_576, 65_536, (F.PARAMETERS, F.VISION, F.PDFS, F.SEARCH, F.REASONING, F.REASONING_EFFORT), version="2.5 Pro Preview", additional_info="06-05", stream_chunking="word"),
}


def get_llm(model_key: str) -> LLMInfo:
    """Look up a usable model.

    Raises:
        ModelNotFoundError: The key is not in the catalog.
        ModelDisabledError: The entry exists but is switched off.
    """
    llm = LLMS.get(model_key)
    if llm is None:
        raise ModelNotFoundError(model_key)
    if llm.disabled:
        raise ModelDisabledError(model_key)
    return llm
