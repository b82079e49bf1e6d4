"""
Unit tests for ChatService.

Only the synchronous part of a turn is exercised here; the stream returned
by start_chat is closed without being consumed.
"""

import pytest
from sqlalchemy import func, select

from app.domains.chat.guard import GenerationRegistry
from app.domains.chat.service import ChatService
from app.exceptions.chat import MessageOwnershipError
from app.schemas.ai import ApiKeys
from app.schemas.chat import ChatMessage, ChatRequest, ThreadMetadata
from models import Thread


def chat_request(message_id="m1", text="Hello", thread_id=None):
    return ChatRequest(
        messages=[ChatMessage(id=message_id, role="user", parts=[{"type": "text", "text": text}])],
        model="gpt-4o-mini",
        thread_metadata=ThreadMetadata(id=thread_id),
        api_keys=ApiKeys(openai="sk-test-user-key"),
    )


async def thread_count(db):
    result = await db.execute(select(func.count()).select_from(Thread))
    return result.scalar_one()


class TestStartChat:
    """Test cases for ChatService.start_chat."""

    @pytest.mark.asyncio
    async def test_unconsumed_stream_releases_thread(self, test_db, test_user, dispatcher):
        registry = GenerationRegistry()
        service = ChatService(test_db, dispatcher, registry=registry)

        thread_id, stream = await service.start_chat(chat_request(), test_user.id)
        assert registry.is_active(thread_id)

        await stream.aclose()

        assert not registry.is_active(thread_id)
        # A second turn in the same thread is accepted again
        _, second = await service.start_chat(
            chat_request(message_id="m2", text="Again", thread_id=thread_id), test_user.id
        )
        await second.aclose()

    @pytest.mark.asyncio
    async def test_foreign_message_id_creates_no_thread(self, test_db, test_user, test_thread, dispatcher):
        user_id = test_user.id
        registry = GenerationRegistry()
        before = await thread_count(test_db)

        with pytest.raises(MessageOwnershipError):
            await ChatService(test_db, dispatcher, registry=registry).start_chat(
                chat_request(message_id="u1"), user_id
            )

        assert await thread_count(test_db) == before

    @pytest.mark.asyncio
    async def test_ids_of_the_target_thread_are_accepted(self, test_db, test_user, test_thread, dispatcher):
        thread_id = test_thread.id
        service = ChatService(test_db, dispatcher, registry=GenerationRegistry())
        request = chat_request(thread_id=thread_id)
        request.messages = [
            ChatMessage(id="u1", role="user", parts=[{"type": "text", "text": "What is the capital of France?"}]),
            ChatMessage(id="a1", role="assistant", parts=[{"type": "text", "text": "Paris."}]),
            ChatMessage(id="u2", role="user", parts=[{"type": "text", "text": "And of Italy?"}]),
        ]

        returned_id, stream = await service.start_chat(request, test_user.id)
        await stream.aclose()

        assert returned_id == thread_id
