"""
Directory repository - caller resolution, profiles and directory contacts.
"""

from typing import Any, Dict, List, Optional, Protocol

from services.chat_service.models import DirectoryContact
from infrastructure.database.sqlite_database import SQLiteDatabase
from utils.logging_config import get_logger


DIRECTORY_CONTACTS_TABLE = "directory_contacts"
PROFILES_TABLE = "profiles"


class DirectoryRepository(Protocol):
    """Server-side directory data access port"""

    def resolve_caller(self, access_token: str) -> Optional[str]:
        ...

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    def search_contacts(self, user_id: str, query: str) -> List[DirectoryContact]:
        ...


class SQLiteDirectoryRepository:
    """
    SQLite-backed directory; bearer tokens resolve through the sessions table.
    """

    def __init__(self, db_path: str = "data/helper.db", database: SQLiteDatabase = None):
        self.logger = get_logger(__name__)
        self.database = database or SQLiteDatabase(db_path)

    def resolve_caller(self, access_token: str) -> Optional[str]:
        return self.database.user_id_for_token(access_token)

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self.database.connect() as conn:
            row = conn.execute(
                f"SELECT * FROM {PROFILES_TABLE} WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        profile = dict(row)
        profile["is_edu_account"] = bool(profile.get("is_edu_account"))
        return profile

    def search_contacts(self, user_id: str, query: str) -> List[DirectoryContact]:
        """Case-insensitive substring match on contact name, caller's rows only"""
        with self.database.connect() as conn:
            rows = conn.execute(f'''
                SELECT * FROM {DIRECTORY_CONTACTS_TABLE}
                WHERE user_id = ? AND instr(lower(contact_name), lower(?)) > 0
                ORDER BY contact_name
            ''', (user_id, query)).fetchall()
        return [DirectoryContact.from_row(dict(row)) for row in rows]


class SupabaseDirectoryRepository:
    """
    Directory over the managed backend.
    """

    def __init__(self, client):
        self.logger = get_logger(__name__)
        self.client = client

    def resolve_caller(self, access_token: str) -> Optional[str]:
        try:
            response = self.client.auth.get_user(access_token)
        except Exception as e:
            self.logger.warning(f"Could not resolve caller from token: {e}")
            return None
        user = getattr(response, "user", None)
        return user.id if user else None

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        response = (
            self.client.table(PROFILES_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def search_contacts(self, user_id: str, query: str) -> List[DirectoryContact]:
        response = (
            self.client.table(DIRECTORY_CONTACTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .ilike("contact_name", f"%{query}%")
            .execute()
        )
        return [DirectoryContact.from_row(row) for row in response.data or []]
