"""Unit tests for ShareService and PreferencesService."""

import pytest
from sqlalchemy import select

from app.domains.preferences.service import MAX_NAME_LENGTH, PreferencesService
from app.domains.share.service import ShareService, new_share_id, share_url
from app.exceptions.base import ConflictError
from app.exceptions.chat import ShareNotFoundError, ThreadNotFoundError
from app.schemas.preferences import PreferencesUpdate
from models import Message, MessageAttachment, Thread
from tests.factories import AttachmentFactory, MessageFactory


class TestShareHelpers:
    def test_share_id_is_short_hex(self):
        share_id = new_share_id()

        assert len(share_id) == 12
        int(share_id, 16)

    def test_share_url_is_absolute(self):
        assert share_url("abc123") == "http://localhost:3000/share/abc123"


class TestCreateShare:
    """Test cases for creating and refreshing shares."""

    @pytest.mark.asyncio
    async def test_create_share_snapshots_messages(self, test_db, test_user, test_thread):
        response = await ShareService(test_db).create_or_update_share(test_user.id, test_thread.id, "Capitals")

        assert response.message_count == 2
        assert response.name == "Capitals"
        assert response.share_url.endswith(f"/share/{response.share_id}")

        info = await ShareService(test_db).get_share_info(test_user.id, test_thread.id)
        assert info.has_share is True
        assert info.share_id == response.share_id
        assert info.message_count == 2

    @pytest.mark.asyncio
    async def test_reshare_keeps_id_and_refreshes_snapshot(self, test_db, test_user, test_thread):
        service = ShareService(test_db)
        first = await service.create_or_update_share(test_user.id, test_thread.id, "Capitals")
        test_db.add(MessageFactory(id="u2", thread_id=test_thread.id, text="And Italy?"))
        await test_db.commit()
        test_db.expunge_all()

        second = await service.create_or_update_share(test_user.id, test_thread.id)

        assert second.share_id == first.share_id
        assert second.name == "Capitals"
        assert second.message_count == 3

    @pytest.mark.asyncio
    async def test_share_of_other_users_thread(self, test_db, test_user_2, test_thread):
        with pytest.raises(ThreadNotFoundError):
            await ShareService(test_db).create_or_update_share(test_user_2.id, test_thread.id)

    @pytest.mark.asyncio
    async def test_info_without_share(self, test_db, test_user, test_thread):
        info = await ShareService(test_db).get_share_info(test_user.id, test_thread.id)

        assert info.has_share is False
        assert info.share_id is None


class TestReadShare:
    """Test cases for the public view and cloning."""

    @pytest.mark.asyncio
    async def test_public_view_inlines_images(self, test_db, storage, test_user, test_thread):
        attachment = AttachmentFactory(user_id=test_user.id)
        test_db.add(attachment)
        await test_db.flush()
        test_db.add(MessageAttachment(message_id="u1", attachment_id=attachment.id))
        await test_db.commit()
        await storage.put(attachment.attachment_url, b"\x89PNG")
        service = ShareService(test_db, storage)
        created = await service.create_or_update_share(test_user.id, test_thread.id)

        shared = await service.get_shared_chat(created.share_id)

        assert shared.thread.title == "Test Thread"
        assert [message.role for message in shared.messages] == ["user", "assistant"]
        assert shared.messages[0].parts[-1] == {
            "type": "file",
            "mimeType": "image/png",
            "data": "data:image/png;base64,iVBORw==",
        }

    @pytest.mark.asyncio
    async def test_unknown_share(self, test_db):
        with pytest.raises(ShareNotFoundError):
            await ShareService(test_db).get_shared_chat("doesnotexist")

    @pytest.mark.asyncio
    async def test_clone_into_new_thread(self, test_db, test_user, test_user_2, test_thread):
        service = ShareService(test_db)
        created = await service.create_or_update_share(test_user.id, test_thread.id)

        cloned = await service.create_chat_from_share(test_user_2.id, created.share_id)

        assert cloned.thread_url == f"/chat/{cloned.thread_id}"
        assert cloned.message_count == 2
        thread = await test_db.get(Thread, cloned.thread_id)
        assert thread.user_id == test_user_2.id
        assert thread.generation_status == "completed"
        result = await test_db.execute(
            select(Message).where(Message.thread_id == cloned.thread_id).order_by(Message.created_at)
        )
        assert [message.parts[0]["text"] for message in result.scalars().all()] == [
            "What is the capital of France?",
            "Paris.",
        ]

    @pytest.mark.asyncio
    async def test_delete_share(self, test_db, test_user, test_thread):
        service = ShareService(test_db)
        created = await service.create_or_update_share(test_user.id, test_thread.id)

        await service.delete_share(test_user.id, test_thread.id)

        with pytest.raises(ShareNotFoundError):
            await service.get_shared_chat(created.share_id)
        with pytest.raises(ShareNotFoundError):
            await service.delete_share(test_user.id, test_thread.id)


class TestPreferencesService:
    """Test cases for PreferencesService."""

    @pytest.mark.asyncio
    async def test_defaults_without_row(self, test_db, test_user):
        preferences = await PreferencesService(test_db).get_preferences(test_user.id)

        assert preferences.name == ""
        assert preferences.selected_traits == []
        assert preferences.stats_for_nerds is False

    @pytest.mark.asyncio
    async def test_partial_update_truncates(self, test_db, test_user):
        service = PreferencesService(test_db)
        await service.upsert_preferences(test_user.id, PreferencesUpdate(occupation="Pilot"))

        preferences = await service.upsert_preferences(
            test_user.id, PreferencesUpdate(name="x" * 80, stats_for_nerds=True)
        )

        assert preferences.name == "x" * MAX_NAME_LENGTH
        assert preferences.occupation == "Pilot"
        assert preferences.stats_for_nerds is True

    @pytest.mark.asyncio
    async def test_last_selected_model(self, test_db, test_user):
        service = PreferencesService(test_db)

        await service.update_last_selected_model(test_user.id, "claude-3.7")

        assert (await service.get_preferences(test_user.id)).last_selected_model == "claude-3.7"

    @pytest.mark.asyncio
    async def test_favorites(self, test_db, test_user):
        user_id = test_user.id
        service = PreferencesService(test_db)

        await service.add_favorite(user_id, "gpt-4o")
        favorites = await service.add_favorite(user_id, "claude-3.7")
        assert sorted(favorites) == ["claude-3.7", "gpt-4o"]

        with pytest.raises(ConflictError) as exc_info:
            await service.add_favorite(user_id, "gpt-4o")
        assert exc_info.value.error_code == "FAVORITE_EXISTS"

        assert await service.remove_favorite(user_id, "gpt-4o") == ["claude-3.7"]
        assert await service.remove_favorite(user_id, "not-a-favorite") == ["claude-3.7"]
