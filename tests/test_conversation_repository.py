"""
Tests for conversation repositories
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from infrastructure.database.sqlite_database import SQLiteDatabase
from services.chat_service.conversation_repository import (
    SQLiteConversationStore,
    SupabaseConversationStore,
    UserNotFoundError,
    history_to_row,
)
from services.chat_service.models import ASSISTANT_ROLE, USER_ROLE, Conversation, Message


def make_conversation(title, minutes_ago=0, *contents):
    conversation = Conversation(title=title)
    for content in contents:
        conversation.messages.append(Message(role=USER_ROLE, content=content))
    conversation.updated_at = datetime.now() - timedelta(minutes=minutes_ago)
    return conversation


class TestSQLiteConversationStore:
    """Test the SQLite conversation store"""

    @pytest.fixture(autouse=True)
    def _store(self, tmp_path):
        self.database = SQLiteDatabase(str(tmp_path / "helper.db"))
        self.store = SQLiteConversationStore(database=self.database)

    def test_upsert_twice_keeps_one_row(self):
        conversation = make_conversation("First", 0, "Hello")
        self.store.upsert("user-1", conversation)

        conversation.title = "Renamed"
        conversation.append(Message(role=ASSISTANT_ROLE, content="Hi there"))
        self.store.upsert("user-1", conversation)

        with self.database.connect() as conn:
            count = conn.execute("SELECT COUNT(*) FROM chat_histories").fetchone()[0]
        assert count == 1

        stored = self.store.list_for_owner("user-1")
        assert len(stored) == 1
        assert stored[0].title == "Renamed"
        assert [m.content for m in stored[0].messages] == ["Hello", "Hi there"]

    def test_same_conversation_id_for_different_owners(self):
        conversation = make_conversation("Shared id")
        self.store.upsert("user-1", conversation)
        self.store.upsert("user-2", conversation)

        assert len(self.store.list_for_owner("user-1")) == 1
        assert len(self.store.list_for_owner("user-2")) == 1

    def test_list_is_most_recent_first(self):
        self.store.upsert("user-1", make_conversation("Old", 60))
        self.store.upsert("user-1", make_conversation("Newest", 0))
        self.store.upsert("user-1", make_conversation("Middle", 30))
        self.store.upsert("user-2", make_conversation("Someone else", 0))

        titles = [c.title for c in self.store.list_for_owner("user-1")]

        assert titles == ["Newest", "Middle", "Old"]

    def test_delete(self):
        keep = make_conversation("Keep")
        drop = make_conversation("Drop")
        self.store.upsert("user-1", keep)
        self.store.upsert("user-1", drop)

        self.store.delete("user-1", drop.conversation_id)

        assert [c.conversation_id for c in self.store.list_for_owner("user-1")] == [keep.conversation_id]

    def test_delete_only_affects_owner(self):
        conversation = make_conversation("Mine")
        self.store.upsert("user-1", conversation)

        self.store.delete("user-2", conversation.conversation_id)

        assert len(self.store.list_for_owner("user-1")) == 1

    def test_images_survive_round_trip(self):
        conversation = Conversation(title="Picture")
        conversation.messages.append(Message(role=USER_ROLE, content="", image="data:image/png;base64,AAAA"))
        self.store.upsert("user-1", conversation)

        stored = self.store.list_for_owner("user-1")[0]

        assert stored.messages[0].image == "data:image/png;base64,AAAA"

    def test_find_histories_by_email(self):
        self.database.create_profile("user-1", "student@school.edu")
        self.store.upsert("user-1", make_conversation("Algebra", 5, "x + 2 = 5"))
        self.store.upsert("user-1", make_conversation("Essay", 0, "Help me outline"))

        records = self.store.find_histories_by_email("student@school.edu")

        assert [r.conversation.title for r in records] == ["Essay", "Algebra"]
        assert all(r.user_id == "user-1" for r in records)

    def test_find_histories_for_user_without_chats(self):
        self.database.create_profile("user-1", "student@school.edu")

        assert self.store.find_histories_by_email("student@school.edu") == []

    def test_find_histories_unknown_email(self):
        with pytest.raises(UserNotFoundError):
            self.store.find_histories_by_email("nobody@school.edu")


class TestSupabaseConversationStore:
    """Test the managed-backend store against a mocked client"""

    def setup_method(self):
        self.client = MagicMock()
        self.table = self.client.table.return_value
        self.store = SupabaseConversationStore(self.client)

    def test_upsert_targets_owner_conversation_key(self):
        conversation = make_conversation("Chat", 0, "Hi")

        self.store.upsert("user-1", conversation)

        self.client.table.assert_called_with("chat_histories")
        record = self.table.upsert.call_args.args[0]
        assert record["user_id"] == "user-1"
        assert record["conversation_id"] == conversation.conversation_id
        assert record["messages"][0]["content"] == "Hi"
        assert self.table.upsert.call_args.kwargs == {"on_conflict": "user_id,conversation_id"}
        self.table.upsert.return_value.execute.assert_called_once()

    def test_list_for_owner_orders_by_recency(self):
        query = self.table.select.return_value.eq.return_value.order.return_value
        query.execute.return_value.data = [{
            "conversation_id": "conv-1",
            "title": "Chat",
            "messages": [{"id": "m1", "role": "user", "content": "Hi", "timestamp": "2024-05-01T10:00:00Z"}],
            "created_at": "2024-05-01T10:00:00Z",
            "updated_at": "2024-05-01T10:00:00Z",
        }]

        conversations = self.store.list_for_owner("user-1")

        self.table.select.return_value.eq.assert_called_once_with("user_id", "user-1")
        self.table.select.return_value.eq.return_value.order.assert_called_once_with("updated_at", desc=True)
        assert conversations[0].conversation_id == "conv-1"

    def test_find_histories_unknown_email(self):
        lookup = self.table.select.return_value.eq.return_value.limit.return_value
        lookup.execute.return_value.data = []

        with pytest.raises(UserNotFoundError):
            self.store.find_histories_by_email("nobody@school.edu")


class TestHistoryRow:

    def test_history_to_row(self):
        from services.chat_service.models import HistoryRecord

        conversation = make_conversation("Essay", 0, "one", "two")
        conversation.updated_at = datetime(2024, 5, 1, 14, 30)

        row = history_to_row(HistoryRecord(user_id="user-1", conversation=conversation))

        assert row == {"title": "Essay", "updated": "2024-05-01 14:30", "messages": 2}
