"""
Test data factories for generating test objects.

This module provides Factory Boy factories for creating chat test data with
realistic default values. Factories build unsaved instances; tests add them
to their async session and commit.
"""

import uuid
from datetime import timedelta

import factory

from models import Attachment, Message, Thread, User, utcnow
from models.message import MessageStatus
from models.thread import ThreadStatus


class UserFactory(factory.Factory):
    """Factory for creating User test instances."""

    class Meta:
        model = User

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    clerk_user_id = factory.LazyFunction(lambda: f"clerk_user_{uuid.uuid4()}")
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    username = factory.Sequence(lambda n: f"testuser{n}")
    is_active = True


class ThreadFactory(factory.Factory):
    """Factory for creating Thread test instances."""

    class Meta:
        model = Thread

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    title = factory.Faker("sentence", nb_words=3)
    user_set_title = False
    pinned = False
    generation_status = ThreadStatus.COMPLETED.value
    last_message_at = factory.LazyFunction(utcnow)
    # user_id will be passed when creating the thread


class MessageFactory(factory.Factory):
    """Factory for creating Message test instances.

    Each message is created one millisecond after the previous one so
    thread order follows creation order.
    """

    class Meta:
        model = Message

    class Params:
        text = factory.Faker("sentence", nb_words=6)

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    role = "user"
    status = MessageStatus.DONE.value
    parts = factory.LazyAttribute(lambda obj: [{"type": "text", "text": obj.text}])
    model = "gpt-4o-mini"
    created_at = factory.Sequence(lambda n: utcnow() + timedelta(milliseconds=n))
    # thread_id will be passed when creating the message


class AttachmentFactory(factory.Factory):
    """Factory for creating Attachment test instances."""

    class Meta:
        model = Attachment

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    status = "uploaded"
    attachment_type = "image"
    file_name = factory.Sequence(lambda n: f"image{n}.png")
    mime_type = "image/png"
    file_size = 4
    attachment_url = factory.LazyAttribute(lambda obj: f"{obj.user_id}/{obj.id}.png")
    # user_id will be passed when creating the attachment


async def create_conversation(db, thread, texts):
    """Persist alternating user/assistant messages; returns them in order."""
    messages = []
    for index, text in enumerate(texts):
        message = MessageFactory(
            thread_id=thread.id,
            role="user" if index % 2 == 0 else "assistant",
            text=text,
        )
        db.add(message)
        messages.append(message)
    await db.commit()
    return messages
