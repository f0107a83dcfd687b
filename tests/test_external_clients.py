"""
Tests for external service adapters and manager wiring
"""

import base64
import pytest
from unittest.mock import Mock, patch

from config.app_config import AppConfig
from services.auth_service.models import SessionIdentity
from infrastructure.external.langfuse_client import LangfuseClient
from infrastructure.external.supabase_client import SupabaseClient
from services.chat_service.conversation_manager import build_conversation_manager, build_remote_store
from services.chat_service.conversation_repository import SQLiteConversationStore, SupabaseConversationStore
from services.ui_service.chat_interface import image_to_data_uri


class TestLangfuseClient:
    """Test Langfuse adapter"""

    def test_disabled(self):
        client = LangfuseClient({"secret_key": "sk", "public_key": "pk", "host": "h"}, enabled=False)

        assert client.get_client() is None
        assert client.get_callbacks() == []

    def test_missing_keys_skip_tracing(self):
        client = LangfuseClient({"secret_key": "", "public_key": "", "host": "h"})

        assert client.get_client() is None
        assert client.get_callbacks() == []

    @patch("infrastructure.external.langfuse_client.CallbackHandler")
    @patch("infrastructure.external.langfuse_client.Langfuse")
    def test_callbacks_with_keys(self, mock_langfuse, mock_handler):
        client = LangfuseClient({"secret_key": "sk", "public_key": "pk", "host": "https://lf.test"})

        callbacks = client.get_callbacks()

        mock_langfuse.assert_called_once_with(secret_key="sk", public_key="pk", host="https://lf.test")
        assert callbacks == [mock_handler.return_value]

    @patch("infrastructure.external.langfuse_client.Langfuse", side_effect=RuntimeError("bad host"))
    def test_initialization_failure_disables_tracing(self, mock_langfuse):
        client = LangfuseClient({"secret_key": "sk", "public_key": "pk", "host": "h"})

        assert client.get_callbacks() == []


class TestSupabaseClient:
    """Test Supabase adapter"""

    def setup_method(self):
        self.config = AppConfig()
        self.config.api.supabase_url = "https://example.supabase.co"
        self.config.api.supabase_anon_key = "anon-key"

    def test_missing_configuration(self):
        with pytest.raises(ValueError):
            SupabaseClient(AppConfig()).new_client()

    @patch("infrastructure.external.supabase_client.create_client")
    def test_service_client_prefers_service_role_key(self, mock_create):
        self.config.api.supabase_service_role_key = "service-key"
        client = SupabaseClient(self.config)

        first = client.get_service_client()
        second = client.get_service_client()

        assert first is second
        mock_create.assert_called_once_with("https://example.supabase.co", "service-key")

    @patch("infrastructure.external.supabase_client.create_client")
    def test_service_client_falls_back_to_anon_key(self, mock_create):
        SupabaseClient(self.config).get_service_client()

        mock_create.assert_called_once_with("https://example.supabase.co", "anon-key")

    @patch("infrastructure.external.supabase_client.create_client")
    def test_user_client_carries_token(self, mock_create):
        client = SupabaseClient(self.config).get_user_client("jwt")

        client.postgrest.auth.assert_called_once_with("jwt")


class TestWiring:
    """Test construction of the production collaborators"""

    def test_remote_store_sqlite(self, app_config, identity):
        assert isinstance(build_remote_store(app_config, identity), SQLiteConversationStore)

    def test_remote_store_supabase_guest(self, app_config):
        app_config.storage.backend = "supabase"

        assert build_remote_store(app_config, None) is None

    @patch("infrastructure.external.supabase_client.get_supabase_client")
    def test_remote_store_supabase_user(self, mock_get_client, app_config, identity):
        app_config.storage.backend = "supabase"

        store = build_remote_store(app_config, identity)

        assert isinstance(store, SupabaseConversationStore)
        mock_get_client.return_value.get_user_client.assert_called_once_with("session-token")

    def test_build_conversation_manager(self, app_config, identity):
        manager = build_conversation_manager(app_config, identity)

        assert manager.owner_id == "user-1"
        assert manager.exchange_client.proxy_url == app_config.proxy.chat_url
        assert manager.email_channel is not None

        manager.load()
        assert len(manager.conversations) == 1

    def test_managers_sharing_storage_dir_are_isolated(self, app_config):
        alice = SessionIdentity(user_id="alice", email="alice@school.edu", access_token="alice-session")
        alice_manager = build_conversation_manager(app_config, alice, device_id="shared-browser")
        alice_manager.load()
        alice_manager.append_user_turn("my private diary entry")
        alice_manager.synchronize()
        alice_manager.email_channel.credentials.store("alice-gmail-token")

        guest_manager = build_conversation_manager(app_config, None, device_id="other-browser")
        guest_manager.load()

        titles = [conversation.title for conversation in guest_manager.conversations]
        assert not any("diary" in title for title in titles)
        assert all(
            message.content != "my private diary entry"
            for conversation in guest_manager.conversations
            for message in conversation.messages
        )
        assert guest_manager.email_channel.credentials.get_token() is None

    def test_signed_in_chats_never_written_to_guest_namespace(self, app_config):
        alice = SessionIdentity(user_id="alice", email="alice@school.edu", access_token="alice-session")
        alice_manager = build_conversation_manager(app_config, alice, device_id="browser-1")
        alice_manager.load()
        alice_manager.append_user_turn("my private diary entry")
        alice_manager.synchronize()

        # Same browser session after sign-out
        guest_manager = build_conversation_manager(app_config, None, device_id="browser-1")
        guest_manager.load()

        assert len(guest_manager.conversations) == 1
        assert guest_manager.conversations[0].title == app_config.ui.default_title

    def test_guest_chats_survive_rebuild_in_same_session(self, app_config):
        first = build_conversation_manager(app_config, None, device_id="browser-1")
        first.load()
        first.rename_conversation(first.active_conversation_id, "Fractions")

        second = build_conversation_manager(app_config, None, device_id="browser-1")
        second.load()

        assert [conversation.title for conversation in second.conversations] == ["Fractions"]


class TestImageToDataUri:

    def test_encodes_with_mime(self):
        uri = image_to_data_uri(b"\x89PNG", "image/png")

        assert uri == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()

    def test_default_mime(self):
        assert image_to_data_uri(b"abc", None).startswith("data:image/jpeg;base64,")
