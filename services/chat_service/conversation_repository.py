"""
Conversation repository - remote persistence of chat histories.

Rows live in the ``chat_histories`` table keyed by (user_id, conversation_id).
The SQLite adapter is used locally and in tests, the Supabase adapter in
production.
"""

from datetime import datetime
from typing import Any, Dict, List, Protocol
import json
import sqlite3
import uuid

from services.chat_service.models import Conversation, HistoryRecord
from infrastructure.database.sqlite_database import SQLiteDatabase
from utils.logging_config import get_logger


CHAT_HISTORIES_TABLE = "chat_histories"
PROFILES_TABLE = "profiles"


class UserNotFoundError(LookupError):
    """No profile exists for the requested email"""


class ConversationStore(Protocol):
    """Remote conversation store port"""

    def upsert(self, owner_id: str, conversation: Conversation) -> None:
        ...

    def list_for_owner(self, owner_id: str) -> List[Conversation]:
        ...

    def delete(self, owner_id: str, conversation_id: str) -> None:
        ...

    def find_histories_by_email(self, email: str) -> List[HistoryRecord]:
        ...


class SQLiteConversationStore:
    """
    SQLite-backed conversation store.
    """

    def __init__(self, db_path: str = "data/helper.db", database: SQLiteDatabase = None):
        """
        Initialize the store

        Args:
            db_path: Path to the SQLite database file
            database: Already initialized database to share with other repositories
        """
        self.logger = get_logger(__name__)
        self.database = database or SQLiteDatabase(db_path)

    def upsert(self, owner_id: str, conversation: Conversation) -> None:
        """
        Insert the conversation row, or replace title/messages/updated_at of
        the existing (owner, conversation) row
        """
        record = conversation.to_record(owner_id)
        record["id"] = str(uuid.uuid4())
        record["messages"] = json.dumps(record["messages"], ensure_ascii=False)

        try:
            with self.database.connect() as conn:
                conn.execute(f'''
                    INSERT INTO {CHAT_HISTORIES_TABLE}
                        (id, user_id, conversation_id, title, messages, created_at, updated_at)
                    VALUES (:id, :user_id, :conversation_id, :title, :messages, :created_at, :updated_at)
                    ON CONFLICT (user_id, conversation_id) DO UPDATE SET
                        title = excluded.title,
                        messages = excluded.messages,
                        updated_at = excluded.updated_at
                ''', record)
            self.logger.debug(f"Upserted conversation {conversation.conversation_id} for {owner_id}")

        except sqlite3.Error as e:
            self.logger.error(f"Error upserting conversation {conversation.conversation_id}: {e}")
            raise

    def list_for_owner(self, owner_id: str) -> List[Conversation]:
        """Conversations of one owner, most recently updated first"""
        with self.database.connect() as conn:
            rows = conn.execute(f'''
                SELECT * FROM {CHAT_HISTORIES_TABLE}
                WHERE user_id = ?
                ORDER BY updated_at DESC
            ''', (owner_id,)).fetchall()

        return [Conversation.from_record(dict(row)) for row in rows]

    def delete(self, owner_id: str, conversation_id: str) -> None:
        with self.database.connect() as conn:
            conn.execute(
                f"DELETE FROM {CHAT_HISTORIES_TABLE} WHERE user_id = ? AND conversation_id = ?",
                (owner_id, conversation_id),
            )
        self.logger.info(f"Deleted conversation {conversation_id} for {owner_id}")

    def find_histories_by_email(self, email: str) -> List[HistoryRecord]:
        """
        Admin lookup of every stored history belonging to the user with ``email``

        Raises:
            UserNotFoundError: No profile has that email
        """
        user_id = self.database.user_id_for_email(email)
        if user_id is None:
            raise UserNotFoundError(f"User not found: {email}")

        return [HistoryRecord(user_id=user_id, conversation=conversation)
                for conversation in self.list_for_owner(user_id)]


class SupabaseConversationStore:
    """
    Conversation store over the managed Postgres ``chat_histories`` table.
    """

    def __init__(self, client):
        """
        Args:
            client: ``supabase.Client``, authenticated as the session's user
        """
        self.logger = get_logger(__name__)
        self.client = client

    def upsert(self, owner_id: str, conversation: Conversation) -> None:
        record = conversation.to_record(owner_id)
        self.client.table(CHAT_HISTORIES_TABLE).upsert(
            record, on_conflict="user_id,conversation_id"
        ).execute()
        self.logger.debug(f"Upserted conversation {conversation.conversation_id} for {owner_id}")

    def list_for_owner(self, owner_id: str) -> List[Conversation]:
        response = (
            self.client.table(CHAT_HISTORIES_TABLE)
            .select("*")
            .eq("user_id", owner_id)
            .order("updated_at", desc=True)
            .execute()
        )
        return [Conversation.from_record(row) for row in response.data or []]

    def delete(self, owner_id: str, conversation_id: str) -> None:
        (
            self.client.table(CHAT_HISTORIES_TABLE)
            .delete()
            .eq("user_id", owner_id)
            .eq("conversation_id", conversation_id)
            .execute()
        )
        self.logger.info(f"Deleted conversation {conversation_id} for {owner_id}")

    def find_histories_by_email(self, email: str) -> List[HistoryRecord]:
        profile = (
            self.client.table(PROFILES_TABLE)
            .select("user_id")
            .eq("email", email)
            .limit(1)
            .execute()
        )
        if not profile.data:
            raise UserNotFoundError(f"User not found: {email}")

        user_id = profile.data[0]["user_id"]
        return [HistoryRecord(user_id=user_id, conversation=conversation)
                for conversation in self.list_for_owner(user_id)]


def format_history_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M")


def history_to_row(record: HistoryRecord) -> Dict[str, Any]:
    """Flatten a history record for tabular display"""
    conversation = record.conversation
    return {
        "title": conversation.title,
        "updated": format_history_timestamp(conversation.updated_at),
        "messages": len(conversation.messages),
    }
