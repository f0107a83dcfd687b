"""
Authentication backends: the managed auth service in production and a
local SQLite stand-in for development.
"""

from typing import Callable, Optional, Protocol

import bcrypt

from infrastructure.database.sqlite_database import SQLiteDatabase
from services.auth_service.models import SessionIdentity
from utils.logging_config import get_logger


class AuthError(Exception):
    """Sign-in or registration failed; message is user-visible"""


class AuthBackend(Protocol):

    def sign_in(self, email: str, password: str) -> SessionIdentity:
        ...

    def sign_up(self, email: str, password: str) -> SessionIdentity:
        ...

    def sign_out(self, identity: SessionIdentity) -> None:
        ...


class SupabaseAuthBackend:
    """Email/password auth against Supabase; profiles are created server-side"""

    def __init__(self, client_factory: Callable[[], object]):
        self.logger = get_logger(__name__)
        self.client_factory = client_factory

    @staticmethod
    def _identity(response) -> SessionIdentity:
        session = response.session
        user = response.user
        if session is None or user is None:
            raise AuthError("Please confirm your email address before signing in")
        return SessionIdentity(
            user_id=user.id,
            email=user.email,
            access_token=session.access_token,
            provider_token=getattr(session, "provider_token", None),
        )

    def sign_in(self, email: str, password: str) -> SessionIdentity:
        try:
            response = self.client_factory().auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            self.logger.warning(f"Sign-in failed for {email}: {e}")
            raise AuthError("Invalid email or password") from e
        return self._identity(response)

    def sign_up(self, email: str, password: str) -> SessionIdentity:
        try:
            response = self.client_factory().auth.sign_up({"email": email, "password": password})
        except Exception as e:
            self.logger.warning(f"Registration failed for {email}: {e}")
            raise AuthError(str(e)) from e
        return self._identity(response)

    def sign_out(self, identity: SessionIdentity) -> None:
        # Sessions are held per Streamlit session only; the token expires server-side
        self.logger.debug(f"Session ended for {identity.user_id}")


class LocalAuthBackend:
    """
    Development sign-in over the local database.

    Passwords are stored as bcrypt hashes; signing out revokes the
    session token so the directory endpoint no longer accepts it.
    """

    INVALID_CREDENTIALS = "Invalid email or password"
    # bcrypt only hashes the first 72 bytes and rejects longer input
    MAX_PASSWORD_BYTES = 72

    def __init__(self, database: SQLiteDatabase):
        self.logger = get_logger(__name__)
        self.database = database

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt"""
        salt = bcrypt.gensalt()
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def _verify_password(self, password: str, hashed: str) -> bool:
        """Verify password against hash"""
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))

    @staticmethod
    def _normalize(email: str) -> str:
        email = (email or "").strip().lower()
        if not email:
            raise AuthError("Email is required")
        return email

    def sign_in(self, email: str, password: str) -> SessionIdentity:
        email = self._normalize(email)

        user_id = self.database.user_id_for_email(email)
        hashed = self.database.password_hash_for_email(email) if user_id else None
        if (not hashed or not password or len(password.encode("utf-8")) > self.MAX_PASSWORD_BYTES
                or not self._verify_password(password, hashed)):
            self.logger.warning(f"Failed sign-in attempt for {email}")
            raise AuthError(self.INVALID_CREDENTIALS)

        token = self.database.create_session(user_id)
        return SessionIdentity(user_id=user_id, email=email, access_token=token)

    def sign_up(self, email: str, password: str) -> SessionIdentity:
        email = self._normalize(email)
        if not password:
            raise AuthError("Password is required")
        if len(password.encode("utf-8")) > self.MAX_PASSWORD_BYTES:
            raise AuthError(f"Password must be at most {self.MAX_PASSWORD_BYTES} bytes")
        if self.database.user_id_for_email(email) is not None:
            raise AuthError("An account with this email already exists")

        profile = self.database.create_profile(
            user_id=f"local-{email}", email=email, password_hash=self._hash_password(password)
        )
        token = self.database.create_session(profile["user_id"])
        return SessionIdentity(user_id=profile["user_id"], email=email, access_token=token)

    def sign_out(self, identity: SessionIdentity) -> None:
        self.database.delete_session(identity.access_token)
        self.logger.debug(f"Local session ended for {identity.user_id}")
