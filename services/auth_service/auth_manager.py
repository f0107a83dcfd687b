"""
Authentication manager service - Streamlit sign-in, guest mode and the
session identity handed to the conversation manager.
"""

import streamlit as st
from typing import Optional, Callable

from config.app_config import AppConfig, get_config
from services.auth_service.auth_backends import AuthBackend, AuthError, LocalAuthBackend, SupabaseAuthBackend
from services.auth_service.models import SessionIdentity
from utils.logging_config import get_logger


IDENTITY_KEY = "identity"
GUEST_KEY = "guest_mode"


class AuthManager:
    """
    Main authentication manager service.
    Handles sign-in, sign-out and guest sessions.
    """

    def __init__(self, backend: AuthBackend, config: Optional[AppConfig] = None):
        self.backend = backend
        self.logger = get_logger(__name__)
        self.config = config or get_config()

    def require_authentication(self, page_func: Callable):
        """
        Render ``page_func`` for signed-in users and guests, the sign-in form otherwise
        """
        if not self.config.auth.enabled:
            return page_func()

        if self.get_identity() is not None or st.session_state.get(GUEST_KEY):
            return page_func()

        return self.render_login_form()

    def get_identity(self) -> Optional[SessionIdentity]:
        """Signed-in identity, or None for guests and signed-out users"""
        return st.session_state.get(IDENTITY_KEY)

    def login(self, email: str, password: str) -> bool:
        """
        Sign in and store the identity in session state

        Returns:
            True if successful, False otherwise
        """
        try:
            identity = self.backend.sign_in(email, password)
        except AuthError as e:
            st.session_state["auth_error"] = str(e)
            return False

        self._start_session(identity)
        self.logger.info(f"User signed in: {identity.user_id}")
        return True

    def register(self, email: str, password: str, confirm_password: str) -> tuple[bool, str]:
        if password != confirm_password:
            return False, "Passwords do not match"
        try:
            identity = self.backend.sign_up(email, password)
        except AuthError as e:
            return False, str(e)

        self._start_session(identity)
        self.logger.info(f"User registered: {identity.user_id}")
        return True, "Account created"

    def _start_session(self, identity: SessionIdentity):
        self.clear_session()
        st.session_state[IDENTITY_KEY] = identity

    def logout(self) -> bool:
        identity = self.get_identity()
        if identity is not None:
            try:
                self.backend.sign_out(identity)
            except Exception as e:
                self.logger.error(f"Error during sign-out: {e}")

        self.clear_session()
        self.logger.info("User signed out")
        return True

    def continue_as_guest(self):
        self.clear_session()
        st.session_state[GUEST_KEY] = True
        self.logger.info("Guest session started")

    def clear_session(self):
        """Clear identity and per-user state from Streamlit session state"""
        for key in (IDENTITY_KEY, GUEST_KEY, "conversation_manager", "auth_error"):
            if key in st.session_state:
                del st.session_state[key]

    def render_login_form(self):
        """Render sign-in/registration form"""
        st.title(f"🔐 {self.config.ui.app_title}")

        login_tab, register_tab = st.tabs(["🔑 Sign In", "📝 Register"])

        with login_tab:
            with st.form("login_form"):
                email = st.text_input("📧 Email")
                password = st.text_input("🔒 Password", type="password")
                if st.form_submit_button("🔑 Sign In", type="primary"):
                    if not email or not password:
                        st.error("Please enter both email and password")
                    elif self.login(email, password):
                        st.rerun()
                    else:
                        st.error(st.session_state.get("auth_error", "Invalid email or password"))

        with register_tab:
            with st.form("register_form"):
                email = st.text_input("📧 Email", key="register_email")
                password = st.text_input("🔒 Password", type="password", key="register_password")
                confirm_password = st.text_input("🔒 Confirm Password", type="password")
                if st.form_submit_button("📝 Create Account", type="primary"):
                    success, message = self.register(email, password, confirm_password)
                    if success:
                        st.rerun()
                    else:
                        st.error(f"❌ {message}")

        if self.config.auth.allow_guest_mode:
            st.divider()
            if st.button("🎭 Continue as Guest", type="secondary"):
                self.continue_as_guest()
                st.rerun()

    def render_user_menu(self):
        """Render user menu in sidebar"""
        identity = self.get_identity()

        with st.sidebar:
            st.divider()
            if identity is None:
                st.caption("Guest mode: chats are saved on this device only.")
                if st.button("🔑 Sign In", use_container_width=True):
                    self.clear_session()
                    st.rerun()
                return

            st.write(f"**{identity.label}**")
            if st.button("🚪 Sign Out", use_container_width=True):
                self.logout()
                st.rerun()


def build_auth_backend(config: AppConfig) -> AuthBackend:
    if config.storage.backend == "supabase":
        from infrastructure.external.supabase_client import get_supabase_client
        return SupabaseAuthBackend(get_supabase_client().new_client)

    from infrastructure.database.sqlite_database import SQLiteDatabase
    return LocalAuthBackend(SQLiteDatabase(config.storage.sqlite_path, config.email.edu_domains))


# Global authentication service instance
_auth_manager: Optional[AuthManager] = None


def get_auth_manager() -> AuthManager:
    """Get the global authentication manager service instance"""
    global _auth_manager
    if _auth_manager is None:
        config = get_config()
        _auth_manager = AuthManager(build_auth_backend(config), config)
    return _auth_manager


def require_auth(page_func: Callable):
    """
    Decorator to require authentication for a page
    """
    auth = get_auth_manager()
    return auth.require_authentication(page_func)
