"""
SQLite database for local development and tests.

Mirrors the managed backend's tables: profiles, chat_histories,
directory_contacts, plus a sessions table standing in for the auth
service's token lookup.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Sequence
import os
import sqlite3
import uuid

from utils.logging_config import get_logger


DEFAULT_EDU_DOMAINS = (".edu", "@edisonschools.org")


def is_edu_email(email: str, edu_domains: Sequence[str] = DEFAULT_EDU_DOMAINS) -> bool:
    """Whether a profile created for this email gets the educational account flag"""
    email = (email or "").strip().lower()
    return any(email.endswith(domain.lower()) for domain in edu_domains)


class SQLiteDatabase:
    """
    Connection factory and schema owner for the local SQLite database.
    """

    def __init__(self, db_path: str, edu_domains: Sequence[str] = DEFAULT_EDU_DOMAINS):
        self.logger = get_logger(__name__)
        self.db_path = db_path
        self.edu_domains = tuple(edu_domains)
        self._init_database()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and roll back on error"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        """Create tables and indexes if missing"""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            with self.connect() as conn:
                cursor = conn.cursor()

                cursor.execute('''
                    CREATE TABLE IF NOT EXISTS profiles (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL UNIQUE,
                        email TEXT NOT NULL,
                        display_name TEXT,
                        is_edu_account INTEGER DEFAULT 0,
                        password_hash TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                ''')

                cursor.execute('''
                    CREATE TABLE IF NOT EXISTS chat_histories (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        conversation_id TEXT NOT NULL,
                        title TEXT NOT NULL,
                        messages TEXT NOT NULL DEFAULT '[]',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        UNIQUE (user_id, conversation_id)
                    )
                ''')

                cursor.execute('''
                    CREATE TABLE IF NOT EXISTS directory_contacts (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        contact_name TEXT NOT NULL,
                        contact_email TEXT NOT NULL,
                        department TEXT,
                        title TEXT,
                        created_at TEXT NOT NULL
                    )
                ''')

                cursor.execute('''
                    CREATE TABLE IF NOT EXISTS sessions (
                        access_token TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                ''')

                self._run_migrations(cursor)

                cursor.execute('''
                    CREATE INDEX IF NOT EXISTS idx_chat_histories_user_updated
                    ON chat_histories (user_id, updated_at)
                ''')
                cursor.execute('''
                    CREATE INDEX IF NOT EXISTS idx_directory_contacts_user
                    ON directory_contacts (user_id)
                ''')

            self.logger.info("Helper database initialized successfully")

        except sqlite3.Error as e:
            self.logger.error(f"Error initializing helper database: {e}")
            raise

    def _run_migrations(self, cursor):
        """Run database schema migrations"""
        cursor.execute("PRAGMA table_info(profiles)")
        columns = [column[1] for column in cursor.fetchall()]

        # Migration 1: profiles created before the directory feature lack the edu flag
        if 'is_edu_account' not in columns:
            self.logger.info("Adding is_edu_account column to profiles table")
            cursor.execute("ALTER TABLE profiles ADD COLUMN is_edu_account INTEGER DEFAULT 0")
            self.logger.info("Migration 1 completed: is_edu_account column added")

        # Migration 2: local sign-in stores a bcrypt password hash
        if 'password_hash' not in columns:
            self.logger.info("Adding password_hash column to profiles table")
            cursor.execute("ALTER TABLE profiles ADD COLUMN password_hash TEXT")
            self.logger.info("Migration 2 completed: password_hash column added")

    def create_profile(self, user_id: str, email: str, display_name: Optional[str] = None,
                       password_hash: Optional[str] = None) -> dict:
        """
        Create the profile row for a newly registered user

        The educational account flag is derived from the email domain.
        """
        now = datetime.now().isoformat()
        profile = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "email": email,
            "display_name": display_name or email,
            "is_edu_account": is_edu_email(email, self.edu_domains),
            "password_hash": password_hash,
            "created_at": now,
            "updated_at": now,
        }
        with self.connect() as conn:
            conn.execute('''
                INSERT INTO profiles (id, user_id, email, display_name, is_edu_account, password_hash, created_at, updated_at)
                VALUES (:id, :user_id, :email, :display_name, :is_edu_account, :password_hash, :created_at, :updated_at)
            ''', profile)
        self.logger.info(f"Created profile for user {user_id}")
        return profile

    def create_session(self, user_id: str, access_token: Optional[str] = None) -> str:
        """Issue an access token that identifies ``user_id``"""
        token = access_token or uuid.uuid4().hex
        with self.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO sessions (access_token, user_id, created_at) VALUES (?, ?, ?)",
                (token, user_id, datetime.now().isoformat()),
            )
        return token

    def delete_session(self, access_token: str) -> bool:
        """Revoke an access token; returns False if it was unknown"""
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE access_token = ?", (access_token,))
            deleted = cursor.rowcount > 0
        if deleted:
            self.logger.info("Revoked session token")
        return deleted

    def add_directory_contact(self, user_id: str, contact_name: str, contact_email: str,
                              department: Optional[str] = None, title: Optional[str] = None) -> str:
        contact_id = str(uuid.uuid4())
        with self.connect() as conn:
            conn.execute('''
                INSERT INTO directory_contacts (id, user_id, contact_name, contact_email, department, title, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', (contact_id, user_id, contact_name, contact_email, department, title, datetime.now().isoformat()))
        return contact_id

    def user_id_for_token(self, access_token: str) -> Optional[str]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT user_id FROM sessions WHERE access_token = ?", (access_token,)
            ).fetchone()
        return row["user_id"] if row else None

    def user_id_for_email(self, email: str) -> Optional[str]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT user_id FROM profiles WHERE email = ?", (email,)
            ).fetchone()
        return row["user_id"] if row else None

    def list_profiles(self) -> List[dict]:
        with self.connect() as conn:
            return [dict(row) for row in conn.execute("SELECT * FROM profiles ORDER BY created_at")]

    def password_hash_for_email(self, email: str) -> Optional[str]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT password_hash FROM profiles WHERE email = ?", (email,)
            ).fetchone()
        return row["password_hash"] if row else None
