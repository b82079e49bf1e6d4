"""Provider adapters behind one streaming interface.

Every text provider turns a ``TextGenerationRequest`` into an async stream of
``StreamChunk`` values (text deltas, reasoning deltas and one final usage
record). SDK failures are translated into the ``app.exceptions.ai`` hierarchy
so callers never see SDK-specific exception types.
"""

import base64
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any, Literal, NamedTuple

import anthropic
import openai
from anthropic import AsyncAnthropic
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import AsyncAzureOpenAI, AsyncOpenAI
from pydantic import BaseModel, Field

from app.core.config import settings
from app.domains.ai.credentials import ProviderCredentials
from app.domains.ai.registry import LLMFeature, LLMInfo, LLMProvider
from app.exceptions.ai import (
    AIConfigurationError,
    AIRateLimitError,
    AIServiceError,
    AIServiceUnavailableError,
    AITimeoutError,
    AIUnsupportedOperationError,
)
from app.shared.data_stream import AbortSignal

logger = logging.getLogger(__name__)


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> dict[str, int]:
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }


class StreamChunk(NamedTuple):
    type: Literal["text", "reasoning", "usage"]
    text: str = ""
    usage: TokenUsage | None = None


class ConversationFile(BaseModel):
    name: str
    mime_type: str
    data: bytes

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf"

    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64()}"


class ConversationMessage(BaseModel):
    """Provider-neutral message: plain text plus binary attachments."""

    role: Literal["user", "assistant"]
    text: str = ""
    files: list[ConversationFile] = Field(default_factory=list)


class TextGenerationRequest(BaseModel):
    system: str
    messages: list[ConversationMessage]
    max_tokens: int = Field(default_factory=lambda: settings.max_output_tokens)
    provider_options: dict[str, dict[str, Any]] = Field(default_factory=dict)
    web_search: bool = False


class GeneratedImage(BaseModel):
    base64: str
    url: str = ""


class ImageGenerationRequest(BaseModel):
    prompt: str
    n: int = 1
    size: str | None = "1024x1024"
    quality: str = "auto"
    background: str = "auto"
    output_format: str = "png"
    output_compression: int = 100
    moderation: str = "auto"


# ===== Error translation =====


def _translate_openai_error(error: openai.APIError) -> AIServiceError:
    if isinstance(error, openai.APITimeoutError):
        return AITimeoutError(details={"error": str(error)})
    if isinstance(error, openai.APIConnectionError):
        return AIServiceUnavailableError(details={"error": str(error)})
    if isinstance(error, openai.RateLimitError):
        return AIRateLimitError(details={"error": str(error)})
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AIConfigurationError(message=f"Provider rejected the credentials: {error.message}")
    return AIServiceError(message=f"Provider error: {error.message}")


def _translate_anthropic_error(error: anthropic.APIError) -> AIServiceError:
    if isinstance(error, anthropic.APITimeoutError):
        return AITimeoutError(details={"error": str(error)})
    if isinstance(error, anthropic.APIConnectionError):
        return AIServiceUnavailableError(details={"error": str(error)})
    if isinstance(error, anthropic.RateLimitError):
        return AIRateLimitError(details={"error": str(error)})
    if isinstance(error, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return AIConfigurationError(message=f"Provider rejected the credentials: {error.message}")
    return AIServiceError(message=f"Provider error: {error.message}")


def _translate_google_error(error: genai_errors.APIError) -> AIServiceError:
    if error.code == 429:
        return AIRateLimitError(details={"error": str(error)})
    if error.code in (401, 403):
        return AIConfigurationError(message=f"Provider rejected the credentials: {error.message}")
    if isinstance(error, genai_errors.ServerError):
        return AIServiceUnavailableError(details={"error": str(error)})
    return AIServiceError(message=f"Provider error: {error.message}")


# ===== Reasoning tag extraction =====


def _partial_suffix(text: str, tag: str) -> int:
    for size in range(min(len(tag) - 1, len(text)), 0, -1):
        if text.endswith(tag[:size]):
            return size
    return 0


class ThinkTagExtractor:
    """Split ``<think>...</think>`` spans out of a text delta stream.

    Tags may be cut across deltas, so a possible partial tag at the end of a
    delta is held back until the next one arrives.
    """

    open_tag = "<think>"
    close_tag = "</think>"

    def __init__(self):
        self._buffer = ""
        self._in_think = False

    def _chunk(self, text: str) -> StreamChunk:
        return StreamChunk("reasoning" if self._in_think else "text", text)

    def feed(self, delta: str) -> list[StreamChunk]:
        self._buffer += delta
        chunks = []
        while self._buffer:
            tag = self.close_tag if self._in_think else self.open_tag
            index = self._buffer.find(tag)
            if index >= 0:
                if index:
                    chunks.append(self._chunk(self._buffer[:index]))
                self._buffer = self._buffer[index + len(tag) :]
                self._in_think = not self._in_think
                continue
            held = _partial_suffix(self._buffer, tag)
            ready = self._buffer[: len(self._buffer) - held]
            if ready:
                chunks.append(self._chunk(ready))
            self._buffer = self._buffer[len(ready) :]
            break
        return chunks

    def flush(self) -> list[StreamChunk]:
        chunks = [self._chunk(self._buffer)] if self._buffer else []
        self._buffer = ""
        return chunks


# ===== Text providers =====


class TextProvider(ABC):
    """Streaming text completion for one model."""

    def __init__(self, credentials: ProviderCredentials, llm_info: LLMInfo):
        self.credentials = credentials
        self.llm_info = llm_info

    @abstractmethod
    def stream(self, request: TextGenerationRequest, abort: AbortSignal) -> AsyncIterator[StreamChunk]:
        """Yield chunks until the provider finishes; checks ``abort`` between chunks."""


class OpenAIChatProvider(TextProvider):
    """OpenAI-compatible chat completions (OpenAI, OpenRouter, DeepSeek, xAI)."""

    def __init__(self, credentials: ProviderCredentials, llm_info: LLMInfo, web_search: bool = False):
        super().__init__(credentials, llm_info)
        self.web_search = web_search
        self.client = self._create_client()

    def _create_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self.credentials.api_key,
            base_url=self.credentials.base_url,
            timeout=settings.ai_request_timeout,
        )

    def _chat_messages(self, request: TextGenerationRequest) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": "system", "content": request.system}]
        for message in request.messages:
            if message.role == "assistant" or not message.files:
                messages.append({"role": message.role, "content": message.text})
                continue
            content: list[dict[str, Any]] = []
            if message.text.strip():
                content.append({"type": "text", "text": message.text})
            for file in message.files:
                if file.is_image:
                    content.append({"type": "image_url", "image_url": {"url": file.data_url()}})
                else:
                    content.append(
                        {"type": "file", "file": {"filename": file.name, "file_data": file.data_url()}}
                    )
            messages.append({"role": "user", "content": content})
        return messages

    def _responses_input(self, request: TextGenerationRequest) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for message in request.messages:
            if message.role == "assistant":
                items.append({"role": "assistant", "content": message.text})
                continue
            content: list[dict[str, Any]] = [{"type": "input_text", "text": message.text}]
            for file in message.files:
                if file.is_image:
                    content.append({"type": "input_image", "image_url": file.data_url()})
                else:
                    content.append({"type": "input_file", "filename": file.name, "file_data": file.data_url()})
            items.append({"role": "user", "content": content})
        return items

    def _completion_kwargs(self, request: TextGenerationRequest) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        provider = self.credentials.provider
        options = request.provider_options.get(provider.value, {})

        if provider in (LLMProvider.OPENAI, LLMProvider.AZURE):
            kwargs["max_completion_tokens"] = request.max_tokens
            if options.get("reasoningEffort"):
                kwargs["reasoning_effort"] = options["reasoningEffort"]
        else:
            kwargs["max_tokens"] = request.max_tokens

        if provider == LLMProvider.OPENROUTER and options.get("reasoning") is not None:
            kwargs["extra_body"] = {"reasoning": options["reasoning"]}
        return kwargs

    async def stream(self, request: TextGenerationRequest, abort: AbortSignal) -> AsyncIterator[StreamChunk]:
        if self.web_search:
            async for chunk in self._stream_responses(request, abort):
                yield chunk
            return

        try:
            stream = await self.client.chat.completions.create(
                model=self.credentials.model_name,
                messages=self._chat_messages(request),
                stream=True,
                stream_options={"include_usage": True},
                **self._completion_kwargs(request),
            )
            try:
                async for event in stream:
                    abort.raise_if_aborted()
                    if event.usage is not None:
                        yield StreamChunk(
                            "usage",
                            usage=TokenUsage(
                                prompt_tokens=event.usage.prompt_tokens or 0,
                                completion_tokens=event.usage.completion_tokens or 0,
                            ),
                        )
                    if not event.choices:
                        continue
                    delta = event.choices[0].delta
                    # OpenRouter names it reasoning, DeepSeek reasoning_content
                    reasoning = getattr(delta, "reasoning", None) or getattr(delta, "reasoning_content", None)
                    if reasoning:
                        yield StreamChunk("reasoning", reasoning)
                    if delta.content:
                        yield StreamChunk("text", delta.content)
            finally:
                await stream.close()
        except openai.APIError as e:
            logger.error(f"{self.credentials.provider.value} completion failed: {str(e)}")
            raise _translate_openai_error(e) from e

    async def _stream_responses(
        self, request: TextGenerationRequest, abort: AbortSignal
    ) -> AsyncIterator[StreamChunk]:
        options = request.provider_options.get(LLMProvider.OPENAI.value, {})
        kwargs: dict[str, Any] = {}
        if options.get("reasoningEffort"):
            kwargs["reasoning"] = {"effort": options["reasoningEffort"]}

        try:
            stream = await self.client.responses.create(
                model=self.credentials.model_name,
                instructions=request.system,
                input=self._responses_input(request),
                tools=[{"type": "web_search_preview"}],
                tool_choice={"type": "web_search_preview"},
                max_output_tokens=request.max_tokens,
                stream=True,
                **kwargs,
            )
            try:
                async for event in stream:
                    abort.raise_if_aborted()
                    if event.type == "response.output_text.delta":
                        yield StreamChunk("text", event.delta)
                    elif event.type == "response.reasoning_summary_text.delta":
                        yield StreamChunk("reasoning", event.delta)
                    elif event.type == "response.completed" and event.response.usage is not None:
                        usage = event.response.usage
                        yield StreamChunk(
                            "usage",
                            usage=TokenUsage(
                                prompt_tokens=usage.input_tokens, completion_tokens=usage.output_tokens
                            ),
                        )
            finally:
                await stream.close()
        except openai.APIError as e:
            logger.error(f"OpenAI responses call failed: {str(e)}")
            raise _translate_openai_error(e) from e


class AzureOpenAIProvider(OpenAIChatProvider):
    """Azure deployments; reasoning models wrap their thoughts in ``<think>`` tags."""

    def __init__(self, credentials: ProviderCredentials, llm_info: LLMInfo):
        super().__init__(credentials, llm_info, web_search=False)

    def _create_client(self) -> AsyncAzureOpenAI:
        return AsyncAzureOpenAI(
            api_key=self.credentials.api_key,
            azure_endpoint=f"https://{self.credentials.resource_name}.openai.azure.com",
            api_version=settings.azure_api_version,
            timeout=settings.ai_request_timeout,
        )

    async def stream(self, request: TextGenerationRequest, abort: AbortSignal) -> AsyncIterator[StreamChunk]:
        if not self.llm_info.has_feature(LLMFeature.REASONING):
            async for chunk in super().stream(request, abort):
                yield chunk
            return

        extractor = ThinkTagExtractor()
        async for chunk in super().stream(request, abort):
            if chunk.type != "text":
                yield chunk
                continue
            for split in extractor.feed(chunk.text):
                yield split
        for split in extractor.flush():
            yield split


class AnthropicProvider(TextProvider):
    def __init__(self, credentials: ProviderCredentials, llm_info: LLMInfo):
        super().__init__(credentials, llm_info)
        self.client = AsyncAnthropic(api_key=credentials.api_key, timeout=settings.ai_request_timeout)

    @staticmethod
    def _messages(request: TextGenerationRequest) -> list[dict[str, Any]]:
        messages = []
        for message in request.messages:
            content: list[dict[str, Any]] = []
            for file in message.files:
                block_type = "image" if file.is_image else "document"
                content.append(
                    {
                        "type": block_type,
                        "source": {"type": "base64", "media_type": file.mime_type, "data": file.base64()},
                    }
                )
            if message.text.strip():
                content.append({"type": "text", "text": message.text})
            if content:
                messages.append({"role": message.role, "content": content})
        return messages

    async def stream(self, request: TextGenerationRequest, abort: AbortSignal) -> AsyncIterator[StreamChunk]:
        kwargs: dict[str, Any] = {
            "model": self.credentials.model_name,
            "system": request.system,
            "messages": self._messages(request),
            "max_tokens": request.max_tokens,
        }
        thinking = request.provider_options.get(LLMProvider.ANTHROPIC.value, {}).get("thinking")
        if thinking and thinking.get("type") == "enabled":
            budget = thinking.get("budgetTokens", 1024)
            kwargs["thinking"] = {"type": "enabled", "budget_tokens": budget}
            # max_tokens must exceed the thinking budget
            kwargs["max_tokens"] = max(request.max_tokens, budget + 1024)

        try:
            async with self.client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    abort.raise_if_aborted()
                    if event.type != "content_block_delta":
                        continue
                    if event.delta.type == "text_delta":
                        yield StreamChunk("text", event.delta.text)
                    elif event.delta.type == "thinking_delta":
                        yield StreamChunk("reasoning", event.delta.thinking)
                final = await stream.get_final_message()
            yield StreamChunk(
                "usage",
                usage=TokenUsage(
                    prompt_tokens=final.usage.input_tokens, completion_tokens=final.usage.output_tokens
                ),
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic stream failed: {str(e)}")
            raise _translate_anthropic_error(e) from e


class GoogleProvider(TextProvider):
    def __init__(self, credentials: ProviderCredentials, llm_info: LLMInfo, web_search: bool = False):
        super().__init__(credentials, llm_info)
        self.web_search = web_search
        self.client = genai.Client(api_key=credentials.api_key)

    @staticmethod
    def _contents(request: TextGenerationRequest) -> list[genai_types.Content]:
        contents = []
        for message in request.messages:
            parts = [genai_types.Part.from_bytes(data=file.data, mime_type=file.mime_type) for file in message.files]
            if message.text.strip():
                parts.append(genai_types.Part.from_text(text=message.text))
            if parts:
                role = "model" if message.role == "assistant" else "user"
                contents.append(genai_types.Content(role=role, parts=parts))
        return contents

    def _config(self, request: TextGenerationRequest) -> genai_types.GenerateContentConfig:
        options = request.provider_options.get(LLMProvider.GOOGLE.value, {})
        thinking = options.get("thinkingConfig") or {}

        config: dict[str, Any] = {
            "system_instruction": request.system,
            "max_output_tokens": request.max_tokens,
        }
        if thinking:
            config["thinking_config"] = genai_types.ThinkingConfig(
                include_thoughts=thinking.get("includeThoughts"),
                thinking_budget=thinking.get("thinkingBudget"),
            )
        if self.web_search:
            config["tools"] = [genai_types.Tool(google_search=genai_types.GoogleSearch())]
        return genai_types.GenerateContentConfig(**config)

    async def stream(self, request: TextGenerationRequest, abort: AbortSignal) -> AsyncIterator[StreamChunk]:
        usage = None
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=self.credentials.model_name,
                contents=self._contents(request),
                config=self._config(request),
            )
            async for response in stream:
                abort.raise_if_aborted()
                if response.usage_metadata is not None:
                    usage = TokenUsage(
                        prompt_tokens=response.usage_metadata.prompt_token_count or 0,
                        completion_tokens=response.usage_metadata.candidates_token_count or 0,
                    )
                if not response.candidates or response.candidates[0].content is None:
                    continue
                for part in response.candidates[0].content.parts or []:
                    if not part.text:
                        continue
                    yield StreamChunk("reasoning" if part.thought else "text", part.text)
        except genai_errors.APIError as e:
            logger.error(f"Google stream failed: {str(e)}")
            raise _translate_google_error(e) from e

        if usage is not None:
            yield StreamChunk("usage", usage=usage)


# ===== Image providers =====


class ImageProvider(ABC):
    def __init__(self, credentials: ProviderCredentials):
        self.credentials = credentials

    @abstractmethod
    async def generate(self, request: ImageGenerationRequest) -> list[GeneratedImage]:
        """Generate ``request.n`` images."""


class OpenAIImageProvider(ImageProvider):
    def __init__(self, credentials: ProviderCredentials):
        super().__init__(credentials)
        self.client = AsyncOpenAI(api_key=credentials.api_key, timeout=settings.ai_request_timeout)

    async def generate(self, request: ImageGenerationRequest) -> list[GeneratedImage]:
        kwargs: dict[str, Any] = {
            "model": self.credentials.model_name,
            "prompt": request.prompt,
            "n": request.n,
            "quality": request.quality,
            "background": request.background,
            "output_format": request.output_format,
            "output_compression": request.output_compression,
            "moderation": request.moderation,
        }
        if request.size:
            kwargs["size"] = request.size

        try:
            result = await self.client.images.generate(**kwargs)
        except openai.APIError as e:
            logger.error(f"OpenAI image generation failed: {str(e)}")
            raise _translate_openai_error(e) from e

        return [
            GeneratedImage(base64=image.b64_json or "", url=image.url or "")
            for image in result.data or []
        ]


def get_text_provider(credentials: ProviderCredentials, llm_info: LLMInfo, web_search: bool = False) -> TextProvider:
    """Pick the adapter for ``credentials.provider``.

    Web search is honoured only where the provider has a search tool: the
    OpenAI responses API and Google search grounding.
    """
    provider = credentials.provider
    search = web_search and llm_info.has_feature(LLMFeature.SEARCH)

    if provider == LLMProvider.AZURE:
        return AzureOpenAIProvider(credentials, llm_info)
    if provider == LLMProvider.ANTHROPIC:
        return AnthropicProvider(credentials, llm_info)
    if provider == LLMProvider.GOOGLE:
        return GoogleProvider(credentials, llm_info, web_search=search)
    if provider == LLMProvider.OPENAI:
        return OpenAIChatProvider(credentials, llm_info, web_search=search)
    if provider in (LLMProvider.OPENROUTER, LLMProvider.DEEPSEEK, LLMProvider.XAI):
        return OpenAIChatProvider(credentials, llm_info)
    raise AIUnsupportedOperationError(message=f"Provider {provider.value} is not yet supported")


def get_image_provider(credentials: ProviderCredentials) -> ImageProvider:
    if credentials.provider == LLMProvider.OPENAI:
        return OpenAIImageProvider(credentials)
    raise AIUnsupportedOperationError(
        message=f"Image generation not supported for provider: {credentials.provider.value}"
    )
