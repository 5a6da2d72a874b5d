"""
ConversationService: owner scoping, latest-conversation fallback, message
ordering and folder un-filing.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from conftest import FakeDb, cursor_of, update_result, delete_result
from qanoon.services.conversation_service import conversation_service
from qanoon.services.errors import NotFoundError

DB_PATH = "qanoon.services.conversation_service.database.get_db"


def _conversation(cid, **fields):
    doc = {"id": cid, "user_id": "u1", "title": "New Conversation", "folder_id": None}
    doc.update(fields)
    return doc


class TestConversations:

    @pytest.mark.asyncio
    async def test_create_uses_default_title(self):
        db = FakeDb()
        with patch(DB_PATH, return_value=db):
            doc = await conversation_service.create_conversation("u1")

        assert doc["title"] == "New Conversation"
        assert doc["user_id"] == "u1"
        db.conversations.insert_one.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_scoped_to_owner_and_folder(self):
        db = FakeDb()
        db.conversations.find = cursor_of([_conversation("c1")])
        with patch(DB_PATH, return_value=db):
            rows = await conversation_service.list_conversations("u1", folder_id="f1")

        assert [r["id"] for r in rows] == ["c1"]
        assert db.conversations.find.call_args[0][0] == {"user_id": "u1", "folder_id": "f1"}

    @pytest.mark.asyncio
    async def test_get_other_users_conversation_is_not_found(self):
        db = FakeDb()
        with patch(DB_PATH, return_value=db):
            with pytest.raises(NotFoundError):
                await conversation_service.get_conversation("u2", "c1")

    @pytest.mark.asyncio
    async def test_rename_requires_title(self):
        db = FakeDb()
        db.conversations.find_one = AsyncMock(return_value=_conversation("c1"))
        with patch(DB_PATH, return_value=db):
            with pytest.raises(ValueError):
                await conversation_service.rename_conversation("u1", "c1", "   ")

    @pytest.mark.asyncio
    async def test_move_into_unknown_folder(self):
        db = FakeDb()
        db.conversations.find_one = AsyncMock(return_value=_conversation("c1"))
        with patch(DB_PATH, return_value=db):
            with pytest.raises(NotFoundError, match="Folder not found"):
                await conversation_service.move_to_folder("u1", "c1", "missing")
        db.conversations.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_move_out_of_folder(self):
        db = FakeDb()
        db.conversations.find_one = AsyncMock(return_value=_conversation("c1", folder_id="f1"))
        with patch(DB_PATH, return_value=db):
            await conversation_service.move_to_folder("u1", "c1", None)

        update = db.conversations.update_one.call_args[0][1]
        assert update["$set"]["folder_id"] is None

    @pytest.mark.asyncio
    async def test_delete_removes_messages_before_conversation(self):
        db = FakeDb()
        calls = []
        db.conversations.find_one = AsyncMock(return_value=_conversation("c1"))
        db.messages.delete_many = AsyncMock(side_effect=lambda *a, **k: calls.append("messages") or delete_result(3))
        db.conversations.delete_one = AsyncMock(side_effect=lambda *a, **k: calls.append("conversation"))

        with patch(DB_PATH, return_value=db):
            await conversation_service.delete_conversation("u1", "c1")

        assert calls == ["messages", "conversation"]
        assert db.conversations.delete_one.call_args[0][0] == {"id": "c1", "user_id": "u1"}

    @pytest.mark.asyncio
    async def test_delete_missing_conversation(self):
        db = FakeDb()
        with patch(DB_PATH, return_value=db):
            with pytest.raises(NotFoundError):
                await conversation_service.delete_conversation("u1", "nope")
        db.messages.delete_many.assert_not_called()


class TestLatestConversation:

    @pytest.mark.asyncio
    async def test_none_when_user_has_no_conversations(self):
        db = FakeDb()
        with patch(DB_PATH, return_value=db):
            assert await conversation_service.get_latest_conversation("u1") is None

    @pytest.mark.asyncio
    async def test_prefers_most_recent_with_messages(self):
        db = FakeDb()
        db.conversations.find = cursor_of([_conversation("empty"), _conversation("busy")])
        db.messages.count_documents = AsyncMock(side_effect=lambda query, **k: 0 if query["conversation_id"] == "empty" else 3)

        with patch(DB_PATH, return_value=db):
            latest = await conversation_service.get_latest_conversation("u1")

        assert latest["id"] == "busy"

    @pytest.mark.asyncio
    async def test_falls_back_to_most_recent(self):
        db = FakeDb()
        db.conversations.find = cursor_of([_conversation("newest"), _conversation("older")])

        with patch(DB_PATH, return_value=db):
            latest = await conversation_service.get_latest_conversation("u1")

        assert latest["id"] == "newest"


class TestMessages:

    @pytest.mark.asyncio
    async def test_add_message_bumps_conversation(self):
        db = FakeDb()
        db.conversations.find_one = AsyncMock(return_value=_conversation("c1"))

        with patch(DB_PATH, return_value=db):
            message = await conversation_service.add_message("u1", "c1", "user", "What is the notice period?")

        assert message["conversation_id"] == "c1"
        update = db.conversations.update_one.call_args[0]
        assert update[0] == {"id": "c1"}
        assert update[1]["$set"]["updated_at"] == message["created_at"]

    @pytest.mark.asyncio
    async def test_list_messages_oldest_first(self):
        db = FakeDb()
        db.conversations.find_one = AsyncMock(return_value=_conversation("c1"))
        db.messages.find = MagicMock()
        db.messages.find.return_value.sort.return_value.to_list = AsyncMock(return_value=[{"id": "m1"}, {"id": "m2"}])

        with patch(DB_PATH, return_value=db):
            messages = await conversation_service.list_messages("u1", "c1")

        assert [m["id"] for m in messages] == ["m1", "m2"]
        assert db.messages.find.return_value.sort.call_args[0] == ("created_at", 1)


class TestFolders:

    @pytest.mark.asyncio
    async def test_rename_unknown_folder(self):
        db = FakeDb()
        db.conversation_folders.update_one = AsyncMock(return_value=update_result(matched=0))
        with patch(DB_PATH, return_value=db):
            with pytest.raises(NotFoundError):
                await conversation_service.rename_folder("u1", "f1", "Contracts")

    @pytest.mark.asyncio
    async def test_delete_folder_unfiles_conversations(self):
        db = FakeDb()
        db.conversation_folders.find_one = AsyncMock(return_value={"id": "f1", "user_id": "u1", "name": "Leases"})

        with patch(DB_PATH, return_value=db):
            await conversation_service.delete_folder("u1", "f1")

        unfile = db.conversations.update_many.call_args[0]
        assert unfile[0] == {"folder_id": "f1", "user_id": "u1"}
        assert unfile[1] == {"$set": {"folder_id": None}}
        db.conversation_folders.delete_one.assert_awaited_once_with({"id": "f1", "user_id": "u1"})
