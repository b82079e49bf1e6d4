"""
Unit tests for ThreadService and AttachmentService.

These tests use the SQLite test database and the local attachment storage
rooted in a temporary directory.
"""

from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.domains.attachment.service import AttachmentService, attachment_file_part
from app.domains.thread.service import ThreadService
from app.exceptions.base import ValidationError
from app.exceptions.chat import AttachmentNotFoundError, MessageNotFoundError, ThreadNotFoundError
from models import Message, MessageAttachment, Thread
from models.thread import ThreadStatus
from tests.factories import AttachmentFactory, ThreadFactory


class TestThreadCreation:
    """Test cases for ThreadService.handle_thread_creation."""

    @pytest.mark.asyncio
    async def test_new_thread_is_titled_from_first_message(self, test_db, test_user):
        thread = await ThreadService(test_db).handle_thread_creation(
            test_user.id, None, "How do I bake sourdough bread at home?"
        )

        assert thread.user_id == test_user.id
        assert thread.generation_status == ThreadStatus.PENDING.value
        assert thread.title == "How do I bake sourdough bread "
        assert thread.user_set_title is False

    @pytest.mark.asyncio
    async def test_owned_thread_is_reused(self, test_db, test_thread):
        thread = await ThreadService(test_db).handle_thread_creation(
            test_thread.user_id, test_thread.id, "Another question"
        )

        assert thread.id == test_thread.id
        assert thread.title == "Test Thread"

    @pytest.mark.asyncio
    async def test_foreign_thread_id_creates_new_thread(self, test_db, test_user_2, test_thread):
        thread = await ThreadService(test_db).handle_thread_creation(test_user_2.id, test_thread.id, "Hi")

        assert thread.id != test_thread.id
        assert thread.user_id == test_user_2.id


class TestThreadQueries:
    """Test cases for reading threads."""

    @pytest.mark.asyncio
    async def test_list_threads_only_returns_own_threads(self, test_db, test_user, test_user_2, test_thread):
        test_db.add(ThreadFactory(user_id=test_user_2.id))
        await test_db.commit()

        threads = await ThreadService(test_db).list_threads(test_user.id)

        assert [thread.id for thread in threads] == [test_thread.id]

    @pytest.mark.asyncio
    async def test_get_thread_inlines_attachments(self, test_db, storage, test_user, test_thread):
        attachment = AttachmentFactory(user_id=test_user.id)
        test_db.add(attachment)
        await test_db.flush()
        test_db.add(MessageAttachment(message_id="u1", attachment_id=attachment.id))
        await test_db.commit()
        await storage.put(attachment.attachment_url, b"\x89PNG")

        thread, messages = await ThreadService(test_db, storage).get_thread(test_user.id, test_thread.id)

        assert thread.id == test_thread.id
        assert [message["id"] for message in messages] == ["u1", "a1"]
        assert messages[0]["parts"][-1] == attachment_file_part(attachment, b"\x89PNG")
        assert messages[0]["parts"][-1]["data"].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_get_thread_of_other_user(self, test_db, test_user_2, test_thread):
        with pytest.raises(ThreadNotFoundError):
            await ThreadService(test_db).get_thread(test_user_2.id, test_thread.id)


class TestThreadUpdates:
    """Test cases for updating and deleting threads."""

    @pytest.mark.asyncio
    async def test_title_update_marks_user_title(self, test_db, test_thread):
        thread = await ThreadService(test_db).update_thread(
            test_thread.user_id, test_thread.id, {"title": "Renamed", "pinned": True}
        )

        assert thread.title == "Renamed"
        assert thread.user_set_title is True
        assert thread.pinned is True

    @pytest.mark.asyncio
    async def test_branch_reference_must_be_owned(self, test_db, test_user_2, test_thread):
        other = ThreadFactory(user_id=test_user_2.id)
        test_db.add(other)
        await test_db.commit()
        service = ThreadService(test_db)

        with pytest.raises(ThreadNotFoundError):
            await service.update_thread(test_thread.user_id, test_thread.id, {"branched_from_thread_id": "missing"})
        with pytest.raises(ThreadNotFoundError):
            await service.update_thread(test_thread.user_id, test_thread.id, {"branched_from_thread_id": other.id})

        assert test_thread.branched_from_thread_id is None

    @pytest.mark.asyncio
    async def test_branch_reference_update_and_clear(self, test_db, test_user, test_thread):
        source = ThreadFactory(user_id=test_user.id)
        test_db.add(source)
        await test_db.commit()
        service = ThreadService(test_db)

        thread = await service.update_thread(test_user.id, test_thread.id, {"branched_from_thread_id": source.id})
        assert thread.branched_from_thread_id == source.id

        thread = await service.update_thread(test_user.id, test_thread.id, {"branched_from_thread_id": None})
        assert thread.branched_from_thread_id is None

    @pytest.mark.asyncio
    async def test_update_thread_status(self, test_db, test_thread):
        await ThreadService(test_db).update_thread_status(test_thread.id, ThreadStatus.GENERATING)

        test_db.expunge_all()
        assert (await test_db.get(Thread, test_thread.id)).generation_status == "generating"

    @pytest.mark.asyncio
    async def test_update_rolls_back_on_error(self, test_db, test_thread):
        with patch.object(test_db, "commit", side_effect=SQLAlchemyError("Database error")):
            with pytest.raises(SQLAlchemyError):
                await ThreadService(test_db).update_thread(test_thread.user_id, test_thread.id, {"title": "X"})

    @pytest.mark.asyncio
    async def test_delete_clears_branch_references(self, test_db, test_user, test_thread):
        branch = ThreadFactory(user_id=test_user.id, branched_from_thread_id=test_thread.id)
        test_db.add(branch)
        await test_db.commit()
        branch_id = branch.id

        await ThreadService(test_db).delete_thread(test_user.id, test_thread.id)

        test_db.expunge_all()
        assert await test_db.get(Thread, test_thread.id) is None
        assert (await test_db.get(Thread, branch_id)).branched_from_thread_id is None
        result = await test_db.execute(select(Message).where(Message.thread_id == test_thread.id))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_delete_of_other_user(self, test_db, test_user_2, test_thread):
        with pytest.raises(ThreadNotFoundError):
            await ThreadService(test_db).delete_thread(test_user_2.id, test_thread.id)


class TestSplitThread:
    """Test cases for branching a thread at a message."""

    @pytest.mark.asyncio
    async def test_split_copies_messages_up_to_target(self, test_db, test_user, test_thread):
        attachment = AttachmentFactory(user_id=test_user.id)
        test_db.add(attachment)
        await test_db.flush()
        test_db.add(MessageAttachment(message_id="u1", attachment_id=attachment.id))
        await test_db.commit()

        branch = await ThreadService(test_db).split_thread(test_user.id, test_thread.id, "a1")

        assert branch.id != test_thread.id
        assert branch.title == "Test Thread"
        assert branch.branched_from_thread_id == test_thread.id
        assert branch.generation_status == ThreadStatus.COMPLETED.value

        result = await test_db.execute(
            select(Message).where(Message.thread_id == branch.id).order_by(Message.created_at)
        )
        copies = list(result.scalars().all())
        assert [(copy.role, copy.parts[0]["text"]) for copy in copies] == [
            ("user", "What is the capital of France?"),
            ("assistant", "Paris."),
        ]
        assert copies[0].created_at < copies[1].created_at
        assert {copy.id for copy in copies}.isdisjoint({"u1", "a1"})

        result = await test_db.execute(
            select(MessageAttachment).where(MessageAttachment.message_id == copies[0].id)
        )
        assert [link.attachment_id for link in result.scalars().all()] == [attachment.id]

    @pytest.mark.asyncio
    async def test_split_at_first_message(self, test_db, test_user, test_thread):
        branch = await ThreadService(test_db).split_thread(test_user.id, test_thread.id, "u1")

        result = await test_db.execute(select(Message).where(Message.thread_id == branch.id))
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_split_unknown_message(self, test_db, test_user, test_thread):
        with pytest.raises(MessageNotFoundError):
            await ThreadService(test_db).split_thread(test_user.id, test_thread.id, "missing")


class TestAttachmentService:
    """Test cases for AttachmentService."""

    @pytest.mark.asyncio
    async def test_upload_stores_blob_and_metadata(self, test_db, storage, test_user):
        attachment = await AttachmentService(test_db, storage).upload(
            test_user.id, "Report.PDF", "application/pdf", b"%PDF-1.7"
        )

        assert attachment.attachment_type == "pdf"
        assert attachment.attachment_url == f"{test_user.id}/{attachment.id}.pdf"
        assert attachment.file_size == 8
        assert await storage.get(attachment.attachment_url) == b"%PDF-1.7"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content_type,data",
        [("text/plain", b"hello"), (None, b"hello"), ("image/png", b"")],
    )
    async def test_upload_rejects_invalid_files(self, test_db, storage, test_user, content_type, data):
        with pytest.raises(ValidationError):
            await AttachmentService(test_db, storage).upload(test_user.id, "file", content_type, data)

    @pytest.mark.asyncio
    async def test_upload_rejects_oversized_files(self, test_db, storage, test_user, monkeypatch):
        monkeypatch.setattr("app.domains.attachment.service.settings.max_file_size", 4)

        with pytest.raises(ValidationError) as exc_info:
            await AttachmentService(test_db, storage).upload(test_user.id, "a.png", "image/png", b"12345")

        assert exc_info.value.message == "File too large"

    @pytest.mark.asyncio
    async def test_delete_removes_row_and_blob(self, test_db, storage, test_user):
        service = AttachmentService(test_db, storage)
        attachment = await service.upload(test_user.id, "a.png", "image/png", b"\x89PNG")
        path = attachment.attachment_url

        await service.delete(test_user.id, attachment.id)

        assert await storage.get(path) is None
        with pytest.raises(AttachmentNotFoundError):
            await service.get_owned(test_user.id, attachment.id)

    @pytest.mark.asyncio
    async def test_details_are_scoped_to_owner(self, test_db, storage, test_user, test_user_2):
        own = AttachmentFactory(user_id=test_user.id)
        foreign = AttachmentFactory(user_id=test_user_2.id)
        test_db.add_all([own, foreign])
        await test_db.commit()

        details = await AttachmentService(test_db, storage).get_details(test_user.id, [own.id, foreign.id])

        assert [attachment.id for attachment in details] == [own.id]

    @pytest.mark.asyncio
    async def test_load_for_generation_skips_missing_blobs(self, test_db, storage, test_user):
        stored = AttachmentFactory(user_id=test_user.id)
        missing = AttachmentFactory(user_id=test_user.id)
        test_db.add_all([stored, missing])
        await test_db.commit()
        await storage.put(stored.attachment_url, b"\x89PNG")

        files = await AttachmentService(test_db, storage).load_for_generation([missing.id, stored.id])

        assert [file.name for file in files] == [stored.file_name]
        assert files[0].is_image
