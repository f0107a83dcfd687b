"""
Supabase client adapter for the application.
Handles the managed Postgres tables and the auth service.
"""

from supabase import Client, create_client
from typing import Optional

from config.app_config import AppConfig, get_config
from utils.logging_config import get_logger


class SupabaseClient:
    """
    Adapter for Supabase services.
    Auth calls get a fresh client each time since a client keeps the
    signed-in session; per-user clients carry the user's token so row
    level security applies.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        self.logger = get_logger(__name__)
        self.config = config or get_config()
        self._service_client = None

    def new_client(self, key: Optional[str] = None) -> Client:
        url = self.config.api.supabase_url
        key = key or self.config.api.supabase_anon_key
        if not url or not key:
            raise ValueError("Supabase URL and anon key are not configured")
        return create_client(url, key)

    def get_service_client(self) -> Client:
        """
        Get the shared server-side client

        Uses the service role key when configured, the anon key otherwise.

        Returns:
            Client: Supabase client
        """
        if self._service_client is None:
            try:
                self._service_client = self.new_client(self.config.api.supabase_service_role_key or None)
                self.logger.info("Supabase service client initialized successfully")
            except Exception as e:
                self.logger.error(f"Error initializing Supabase client: {e}")
                raise
        return self._service_client

    def get_user_client(self, access_token: str) -> Client:
        """Client whose table requests run as the user owning ``access_token``"""
        client = self.new_client()
        client.postgrest.auth(access_token)
        return client


# Global client instance
_supabase_client: Optional[SupabaseClient] = None


def get_supabase_client() -> SupabaseClient:
    """Get the global Supabase client instance"""
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = SupabaseClient()
    return _supabase_client
