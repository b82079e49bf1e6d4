"""
Unit tests for the text generation path.

Covers the re-chunking helpers, the order of stream events on success, and
what is (and is not) persisted on provider failure and on abort.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from app.domains.ai.credentials import ProviderCredentials
from app.domains.ai.providers import StreamChunk, TextGenerationRequest, TokenUsage
from app.domains.ai.registry import LLMS, LLMProvider
from app.domains.chat.context import GenerationContext
from app.domains.chat.text_generator import StreamChunker, TextGenerator, epoch_millis, tokens_per_second
from app.exceptions.ai import AIServiceUnavailableError
from app.shared.data_stream import (
    DATA_PART,
    ERROR_PART,
    REASONING_PART,
    TEXT_PART,
    DataStreamWriter,
    GenerationAborted,
    decode_part,
)
from models import Message, Thread
from models.thread import ThreadStatus


def make_context(thread, message_id="u1", model_key="gpt-4o-mini"):
    llm_info = LLMS[model_key]
    return GenerationContext(
        thread_id=thread.id,
        user_id=thread.user_id,
        message_id=message_id,
        model_key=model_key,
        llm_info=llm_info,
        credentials=ProviderCredentials(provider=LLMProvider.OPENAI, api_key="sk-test", model_name=llm_info.id),
        messages=[],
    )


def make_request():
    return TextGenerationRequest(system="You are a test.", messages=[])


async def drain(writer):
    writer.close()
    return [decode_part(line) async for line in writer.drain()]


async def mark_generating(db, thread):
    thread.generation_status = ThreadStatus.GENERATING.value
    await db.commit()


async def assistant_messages(db, thread_id):
    result = await db.execute(
        select(Message).where(Message.thread_id == thread_id, Message.role == "assistant").order_by(Message.created_at)
    )
    return list(result.scalars().all())


class TestStreamChunker:
    """Test cases for word and line re-chunking."""

    def test_word_mode_emits_whole_words(self):
        chunker = StreamChunker("word")

        assert chunker.feed("Hel") == []
        assert chunker.feed("lo wor") == ["Hello "]
        assert chunker.feed("ld and more") == ["world ", "and "]
        assert chunker.flush() == "more"
        assert chunker.flush() == ""

    def test_line_mode_emits_whole_lines(self):
        chunker = StreamChunker("line")

        assert chunker.feed("first line\nsecond") == ["first line\n"]
        assert chunker.feed(" line\n") == ["second line\n"]
        assert chunker.flush() == ""


class TestMetricsHelpers:
    """Test cases for timing helpers."""

    def test_tokens_per_second(self):
        start = datetime(2025, 1, 1, 12, 0, 0)
        usage = TokenUsage(prompt_tokens=10, completion_tokens=30)

        assert tokens_per_second(usage, start, start + timedelta(seconds=2)) == 20.0

    def test_tokens_per_second_zero_duration(self):
        start = datetime(2025, 1, 1, 12, 0, 0)

        assert tokens_per_second(TokenUsage(completion_tokens=5), start, start) == 0.0

    def test_epoch_millis(self):
        assert epoch_millis(datetime(1970, 1, 1, 0, 0, 1)) == 1000


class TestTextGenerator:
    """Test cases for TextGenerator.generate."""

    @pytest.mark.asyncio
    async def test_success_streams_then_persists(self, test_db, session_factory, test_thread, fake_text_provider):
        """Test text deltas come first and metrics name the persisted message."""
        await mark_generating(test_db, test_thread)
        writer = DataStreamWriter()

        await TextGenerator(session_factory, fake_text_provider).generate(
            writer, make_context(test_thread), make_request()
        )
        parts = await drain(writer)

        assert [part.code for part in parts] == [TEXT_PART, TEXT_PART, DATA_PART]
        assert [part.value for part in parts[:2]] == ["Hello ", "there"]
        metrics = parts[2].value[0]
        assert metrics["type"] == "metrics"
        assert metrics["data"]["promptTokens"] == 12
        assert metrics["data"]["completionTokens"] == 3
        assert metrics["data"]["totalTokens"] == 15
        assert metrics["data"]["model"] == "gpt-4o-mini"
        assert metrics["data"]["generationEndAt"] >= metrics["data"]["generationStartAt"]
        assert writer.finish_reason == "stop"
        assert writer.finish_usage == {"promptTokens": 12, "completionTokens": 3}

        test_db.expunge_all()
        created = (await assistant_messages(test_db, test_thread.id))[-1]
        assert metrics["data"]["messageId"] == created.id
        assert created.parts == [{"type": "text", "text": "Hello there"}]
        assert created.usage == {"promptTokens": 12, "completionTokens": 3, "totalTokens": 15}
        assert (await test_db.get(Message, "u1")).status == "done"
        assert (await test_db.get(Thread, test_thread.id)).generation_status == "completed"

    @pytest.mark.asyncio
    async def test_reasoning_is_streamed_and_stored_first(self, test_db, session_factory, test_thread, fake_text_provider):
        """Test reasoning deltas become a leading reasoning part."""
        fake_text_provider.chunks = [
            StreamChunk("reasoning", "Thinking it over."),
            StreamChunk("text", "Answer."),
        ]
        writer = DataStreamWriter()

        await TextGenerator(session_factory, fake_text_provider).generate(
            writer, make_context(test_thread), make_request()
        )
        parts = await drain(writer)

        assert [part.code for part in parts] == [REASONING_PART, TEXT_PART, DATA_PART]
        created = (await assistant_messages(test_db, test_thread.id))[-1]
        assert created.parts[0] == {
            "type": "reasoning",
            "reasoning": "Thinking it over.",
            "details": [{"type": "text", "text": "Thinking it over."}],
        }
        assert created.parts[1] == {"type": "text", "text": "Answer."}

    @pytest.mark.asyncio
    async def test_chunked_model_emits_word_boundaries(self, session_factory, test_thread, fake_text_provider):
        """Test models with word chunking get whole words in the stream."""
        fake_text_provider.chunks = [StreamChunk("text", "Hel"), StreamChunk("text", "lo wor"), StreamChunk("text", "ld")]
        writer = DataStreamWriter()

        await TextGenerator(session_factory, fake_text_provider).generate(
            writer, make_context(test_thread, model_key="gpt-4.1"), make_request()
        )
        parts = await drain(writer)

        assert [part.value for part in parts if part.code == TEXT_PART] == ["Hello ", "world"]

    @pytest.mark.asyncio
    async def test_provider_error_leaves_thread_generating(self, test_db, session_factory, test_thread, fake_text_provider):
        """Test a provider failure is reported in-stream and nothing is answered."""
        await mark_generating(test_db, test_thread)
        fake_text_provider.error = AIServiceUnavailableError(message="Provider is down")
        writer = DataStreamWriter()

        await TextGenerator(session_factory, fake_text_provider).generate(
            writer, make_context(test_thread), make_request()
        )
        parts = await drain(writer)

        assert parts[-1].code == ERROR_PART
        assert parts[-1].value == "Provider is down"
        assert writer.finish_reason == "error"

        test_db.expunge_all()
        assert [message.id for message in await assistant_messages(test_db, test_thread.id)] == ["a1"]
        assert (await test_db.get(Message, "u1")).status == "waiting"
        assert (await test_db.get(Thread, test_thread.id)).generation_status == "generating"

    @pytest.mark.asyncio
    async def test_abort_persists_nothing(self, test_db, session_factory, test_thread, fake_text_provider):
        """Test an aborted generation raises and leaves the database untouched."""
        await mark_generating(test_db, test_thread)
        context = make_context(test_thread)
        context.abort.abort()

        with pytest.raises(GenerationAborted):
            await TextGenerator(session_factory, fake_text_provider).generate(
                DataStreamWriter(), context, make_request()
            )

        test_db.expunge_all()
        assert [message.id for message in await assistant_messages(test_db, test_thread.id)] == ["a1"]
        assert (await test_db.get(Message, "u1")).status == "done"
        assert (await test_db.get(Thread, test_thread.id)).generation_status == "generating"
