"""Text generation: stream a provider reply, then persist it and report metrics."""

import asyncio
import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.domains.ai.providers import TextGenerationRequest, TextProvider, TokenUsage, get_text_provider
from app.domains.chat.context import GenerationContext
from app.domains.chat.message_service import MessageService
from app.domains.thread.service import ThreadService
from app.exceptions.ai import describe_generation_error
from app.shared.data_stream import DataStreamWriter, GenerationAborted
from models import utcnow
from models.message import MessageStatus
from models.thread import ThreadStatus

logger = logging.getLogger(__name__)

CHUNK_PATTERNS = {
    "word": re.compile(r"\s*\S+\s+"),
    "line": re.compile(r"[^\n]*\n"),
}


class StreamChunker:
    """Re-chunk text deltas so each emitted piece ends on a word or line boundary."""

    def __init__(self, mode: str):
        self.pattern = CHUNK_PATTERNS[mode]
        self._buffer = ""

    def feed(self, delta: str) -> list[str]:
        self._buffer += delta
        pieces = []
        while match := self.pattern.match(self._buffer):
            pieces.append(match.group())
            self._buffer = self._buffer[match.end():]
        return pieces

    def flush(self) -> str:
        rest, self._buffer = self._buffer, ""
        return rest


def epoch_millis(value: datetime) -> int:
    # Naive timestamps are UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)


def tokens_per_second(usage: TokenUsage, start: datetime, end: datetime) -> float:
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0.0
    return usage.total_tokens / seconds


class TextGenerator:
    """Runs the text path of a turn against one ``TextProvider``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider_factory: Callable[..., TextProvider] = get_text_provider,
    ):
        self.session_factory = session_factory
        self.provider_factory = provider_factory

    async def generate(
        self,
        writer: DataStreamWriter,
        context: GenerationContext,
        request: TextGenerationRequest,
    ) -> None:
        """Stream the reply into ``writer``.

        Provider failures are reported in the stream and leave the message
        ``waiting``. An abort persists nothing and propagates.
        """
        llm_info = context.llm_info
        provider = self.provider_factory(context.credentials, llm_info, web_search=context.params.web_search)
        chunker = StreamChunker(llm_info.stream_chunking) if llm_info.stream_chunking else None

        text: list[str] = []
        reasoning: list[str] = []
        usage = TokenUsage()
        generation_start_at = utcnow()

        try:
            async for chunk in provider.stream(request, context.abort):
                if chunk.type == "text":
                    text.append(chunk.text)
                    if chunker is None:
                        writer.write_text(chunk.text)
                    else:
                        for piece in chunker.feed(chunk.text):
                            writer.write_text(piece)
                elif chunk.type == "reasoning":
                    reasoning.append(chunk.text)
                    writer.write_reasoning(chunk.text)
                elif chunk.usage is not None:
                    usage = chunk.usage
            if chunker is not None:
                writer.write_text(chunker.flush())
            context.abort.raise_if_aborted()
        except (GenerationAborted, asyncio.CancelledError):
            logger.info(f"Generation for message {context.message_id} aborted, nothing persisted")
            raise
        except Exception as e:
            logger.error(f"Text generation failed for thread {context.thread_id}: {str(e)}", exc_info=True)
            await self._mark_waiting(context)
            writer.write_error(describe_generation_error(e))
            writer.finish_reason = "error"
            return

        generation_end_at = utcnow()
        parts = []
        reasoning_text = "".join(reasoning)
        if reasoning_text:
            parts.append(
                {
                    "type": "reasoning",
                    "reasoning": reasoning_text,
                    "details": [{"type": "text", "text": reasoning_text}],
                }
            )
        parts.append({"type": "text", "text": "".join(text)})

        # Persistence completes even if the client disconnects meanwhile
        assistant_id = await asyncio.shield(
            self._persist(context, parts, usage, generation_start_at, generation_end_at)
        )

        rate = tokens_per_second(usage, generation_start_at, generation_end_at)
        logger.info(
            f"Generated message {assistant_id} with {context.model_key}: "
            f"{usage.total_tokens} tokens, {rate:.1f} tokens/s"
        )
        writer.finish_usage = {
            "promptTokens": usage.prompt_tokens,
            "completionTokens": usage.completion_tokens,
        }
        writer.write_data(
            {
                "type": "metrics",
                "data": {
                    "tokensPerSecond": rate,
                    "promptTokens": usage.prompt_tokens,
                    "completionTokens": usage.completion_tokens,
                    "totalTokens": usage.total_tokens,
                    "generationStartAt": epoch_millis(generation_start_at),
                    "generationEndAt": epoch_millis(generation_end_at),
                    "model": context.model_key,
                    "messageId": assistant_id,
                },
            }
        )

    async def _persist(
        self,
        context: GenerationContext,
        parts: list[dict],
        usage: TokenUsage,
        generation_start_at: datetime,
        generation_end_at: datetime,
    ) -> str:
        async with self.session_factory() as db:
            messages = MessageService(db)
            await messages.update_message_status(context.message_id, MessageStatus.DONE)
            assistant = await messages.create_assistant_message(
                thread_id=context.thread_id,
                model=context.model_key,
                parts=parts,
                generation_start_at=generation_start_at,
                generation_end_at=generation_end_at,
                usage=usage.to_dict(),
            )
            await ThreadService(db).update_thread_status(context.thread_id, ThreadStatus.COMPLETED)
            return assistant.id

    async def _mark_waiting(self, context: GenerationContext) -> None:
        async with self.session_factory() as db:
            await MessageService(db).update_message_status(context.message_id, MessageStatus.WAITING)
