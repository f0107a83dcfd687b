"""
Delegated Google credential handling for the email side channel.

Token lookup order: in-memory cache, on-device storage, the provider
token of the signed-in session. ``acquire`` runs the OAuth consent flow
when none of them has a token.
"""

from typing import Callable, List, Optional
import secrets
import time

from google_auth_oauthlib.flow import Flow, InstalledAppFlow

from services.chat_service.local_storage import KeyValueStorage
from services.email_service.errors import CredentialError
from utils.logging_config import get_logger


GMAIL_TOKEN_KEY = "gmail_access_token"

DEFAULT_SCOPES = [
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/directory.readonly",
]


OAUTH_STATE_NAMESPACE = "oauth-state"
OAUTH_STATE_TTL_SECONDS = 600


class OAuthStateStore:
    """
    One-time OAuth ``state`` values, each mapped to the storage namespace
    that started the consent flow

    The redirect back from Google opens a new browser session, so the
    callback uses the state to find where the token belongs.
    """

    def __init__(self, storage: KeyValueStorage, ttl_seconds: int = OAUTH_STATE_TTL_SECONDS):
        self.logger = get_logger(__name__)
        self.storage = storage
        self.ttl_seconds = ttl_seconds

    def issue(self, namespace: str) -> str:
        state = secrets.token_urlsafe(24)
        self.storage.set(state, {"namespace": namespace, "issued_at": time.time()})
        return state

    def is_pending(self, state: str) -> bool:
        return self.storage.get(state) is not None

    def consume(self, state: Optional[str]) -> str:
        """
        Resolve and invalidate a state value

        Raises:
            CredentialError: Unknown, reused or expired state
        """
        entry = self.storage.get(state) if state else None
        if not entry:
            self.logger.warning("OAuth callback with unknown state")
            raise CredentialError("Google sign-in link is invalid or was already used. Please try again.")

        self.storage.remove(state)
        if time.time() - entry.get("issued_at", 0) > self.ttl_seconds:
            raise CredentialError("Google sign-in link expired. Please try again.")
        return entry["namespace"]


class GoogleOAuthFlow:
    """
    OAuth consent flow over google-auth-oauthlib

    Streamlit apps use ``authorization_url`` + ``exchange_code`` (browser
    redirect back to the app); a locally run app can call the instance
    directly to open the consent page through a local server.
    """

    def __init__(self, client_secrets_file: str, redirect_uri: str = "http://localhost:8501/"):
        self.logger = get_logger(__name__)
        self.client_secrets_file = client_secrets_file
        self.redirect_uri = redirect_uri

    def _flow(self, scopes: List[str]) -> Flow:
        try:
            return Flow.from_client_secrets_file(
                self.client_secrets_file,
                scopes=scopes,
                redirect_uri=self.redirect_uri,
                autogenerate_code_verifier=False,
            )
        except FileNotFoundError as e:
            self.logger.error(f"Client secrets file not found: {self.client_secrets_file}")
            raise CredentialError(
                f"Google OAuth client secrets not found at {self.client_secrets_file}"
            ) from e

    def authorization_url(self, scopes: List[str], state: Optional[str] = None) -> str:
        auth_url, _ = self._flow(scopes).authorization_url(
            prompt="consent",
            include_granted_scopes="true",
            state=state,
        )
        self.logger.info("Generated OAuth authorization URL")
        return auth_url

    def exchange_code(self, code: str, scopes: List[str]) -> str:
        """Exchange the authorization code from the redirect for an access token"""
        flow = self._flow(scopes)
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            self.logger.error(f"Failed to exchange authorization code: {e}")
            raise CredentialError(f"Google sign-in failed: {e}") from e
        return flow.credentials.token

    def __call__(self, scopes: List[str]) -> Optional[str]:
        try:
            flow = InstalledAppFlow.from_client_secrets_file(self.client_secrets_file, scopes=scopes)
        except FileNotFoundError as e:
            raise CredentialError(
                f"Google OAuth client secrets not found at {self.client_secrets_file}"
            ) from e
        credentials = flow.run_local_server(port=0)
        return credentials.token


class CredentialProvider:
    """Resolves the delegated access token used for directory search and Gmail"""

    def __init__(self, storage: KeyValueStorage,
                 flow_runner: Optional[Callable[[List[str]], Optional[str]]] = None,
                 session_token_getter: Optional[Callable[[], Optional[str]]] = None,
                 token_key: str = GMAIL_TOKEN_KEY,
                 scopes: Optional[List[str]] = None):
        self.logger = get_logger(__name__)
        self.storage = storage
        self.flow_runner = flow_runner
        self.session_token_getter = session_token_getter
        self.token_key = token_key
        self.scopes = list(scopes or DEFAULT_SCOPES)
        self._token: Optional[str] = None

    def get_token(self) -> Optional[str]:
        """Cached token, stored token, or the session's provider token"""
        if self._token:
            return self._token

        stored = self.storage.get(self.token_key)
        if stored:
            self._token = stored
            return stored

        if self.session_token_getter is not None:
            provider_token = self.session_token_getter()
            if provider_token:
                return provider_token

        return None

    def store(self, token: str) -> None:
        self._token = token
        self.storage.set(self.token_key, token)

    def acquire(self) -> Optional[str]:
        """Return a token, running the consent flow if none is available"""
        token = self.get_token()
        if token:
            return token

        if self.flow_runner is None:
            self.logger.warning("No OAuth flow configured; cannot acquire Google token")
            return None

        token = self.flow_runner(self.scopes)
        if token:
            self.store(token)
            self.logger.info("Acquired Google access token")
        return token

    def require(self) -> str:
        """
        Raises:
            CredentialError: No token is available
        """
        token = self.get_token()
        if not token:
            raise CredentialError("Please sign in with Google to use email features")
        return token

    def clear(self) -> None:
        self._token = None
        self.storage.remove(self.token_key)
