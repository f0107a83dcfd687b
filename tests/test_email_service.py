"""
Tests for the email side channel: directory client, credentials, Gmail sender
"""

import base64
import email
import pytest
import requests
from unittest.mock import MagicMock, Mock

from googleapiclient.errors import HttpError

from services.chat_service.local_storage import InMemoryKeyValueStorage
from services.email_service.contact_resolution import ResolutionState
from services.email_service.credential_provider import GMAIL_TOKEN_KEY, CredentialProvider, OAuthStateStore
from services.email_service.directory_client import DirectoryClient
from services.email_service.errors import (
    CredentialError,
    DirectoryAccessError,
    DirectoryLookupError,
    EmailSendError,
)
from services.email_service.gmail_sender import GmailSender, encode_message
from services.email_service.side_channel import EmailSideChannel


def make_response(status_code, body):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = body
    return response


class TestDirectoryClient:
    """Test the directory lookup client"""

    def setup_method(self):
        self.session = Mock()
        self.client = DirectoryClient("http://proxy.test/get-directory", session=self.session)

    def test_search(self):
        self.session.post.return_value = make_response(200, {"contacts": [
            {"id": "c1", "contact_name": "Jane Doe", "contact_email": "jane@school.edu"},
        ]})

        contacts = self.client.search("Jane", "google-token", "session-token")

        assert [c.contact_email for c in contacts] == ["jane@school.edu"]
        kwargs = self.session.post.call_args.kwargs
        assert kwargs["json"] == {"query": "Jane", "accessToken": "google-token"}
        assert kwargs["headers"]["Authorization"] == "Bearer session-token"

    def test_no_session_token_sends_no_authorization(self):
        self.session.post.return_value = make_response(200, {"contacts": []})

        assert self.client.search("Jane", "google-token", None) == []
        assert "Authorization" not in self.session.post.call_args.kwargs["headers"]

    def test_forbidden(self):
        self.session.post.return_value = make_response(
            403, {"error": "Directory access requires an educational account"}
        )

        with pytest.raises(DirectoryAccessError, match="educational account"):
            self.client.search("Jane", "google-token", "session-token")

    def test_server_error(self):
        self.session.post.return_value = make_response(500, {"error": "Invalid session token"})

        with pytest.raises(DirectoryLookupError, match="Invalid session token"):
            self.client.search("Jane", "google-token", "session-token")

    def test_network_error(self):
        self.session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(DirectoryLookupError):
            self.client.search("Jane", "google-token", "session-token")


class TestOAuthStateStore:
    """Test one-time OAuth state values"""

    def setup_method(self):
        self.storage = InMemoryKeyValueStorage()
        self.states = OAuthStateStore(self.storage)

    def test_consume_returns_namespace(self):
        state = self.states.issue("device-abc")

        assert self.states.is_pending(state)
        assert self.states.consume(state) == "device-abc"
        assert not self.states.is_pending(state)

    def test_states_are_unique(self):
        assert self.states.issue("device-abc") != self.states.issue("device-abc")

    def test_reused_state(self):
        state = self.states.issue("device-abc")
        self.states.consume(state)

        with pytest.raises(CredentialError, match="already used"):
            self.states.consume(state)

    @pytest.mark.parametrize("state", [None, "", "forged"])
    def test_unknown_state(self, state):
        with pytest.raises(CredentialError):
            self.states.consume(state)

    def test_expired_state(self):
        states = OAuthStateStore(self.storage, ttl_seconds=-1)
        state = states.issue("device-abc")

        with pytest.raises(CredentialError, match="expired"):
            states.consume(state)
        assert not states.is_pending(state)


class TestCredentialProvider:
    """Test delegated token lookup"""

    def setup_method(self):
        self.storage = InMemoryKeyValueStorage()

    def test_no_token(self):
        provider = CredentialProvider(self.storage)

        assert provider.get_token() is None
        with pytest.raises(CredentialError, match="sign in with Google"):
            provider.require()

    def test_stored_token(self):
        self.storage.set(GMAIL_TOKEN_KEY, "stored-token")

        assert CredentialProvider(self.storage).require() == "stored-token"

    def test_session_provider_token(self):
        provider = CredentialProvider(self.storage, session_token_getter=lambda: "provider-token")

        assert provider.get_token() == "provider-token"

    def test_stored_token_wins_over_session(self):
        self.storage.set(GMAIL_TOKEN_KEY, "stored-token")
        provider = CredentialProvider(self.storage, session_token_getter=lambda: "provider-token")

        assert provider.get_token() == "stored-token"

    def test_acquire_runs_flow_and_stores(self):
        flow = Mock(return_value="fresh-token")
        provider = CredentialProvider(self.storage, flow_runner=flow, scopes=["scope-a"])

        assert provider.acquire() == "fresh-token"
        flow.assert_called_once_with(["scope-a"])
        assert self.storage.get(GMAIL_TOKEN_KEY) == "fresh-token"

    def test_acquire_skips_flow_when_token_exists(self):
        self.storage.set(GMAIL_TOKEN_KEY, "stored-token")
        flow = Mock()

        assert CredentialProvider(self.storage, flow_runner=flow).acquire() == "stored-token"
        flow.assert_not_called()

    def test_acquire_without_flow(self):
        assert CredentialProvider(self.storage).acquire() is None

    def test_clear(self):
        provider = CredentialProvider(self.storage)
        provider.store("token")

        provider.clear()

        assert provider.get_token() is None
        assert self.storage.get(GMAIL_TOKEN_KEY) is None


class TestGmailSender:
    """Test Gmail API sending"""

    def setup_method(self):
        self.service = MagicMock()
        self.send_call = self.service.users.return_value.messages.return_value.send
        self.send_call.return_value.execute.return_value = {"id": "msg-123"}
        self.factory = Mock(return_value=self.service)
        self.sender = GmailSender(service_factory=self.factory)

    def test_send(self):
        message_id = self.sender.send("google-token", "jane@school.edu", "Hello", "See you soon")

        assert message_id == "msg-123"
        self.factory.assert_called_once_with("google-token")
        kwargs = self.send_call.call_args.kwargs
        assert kwargs["userId"] == "me"

        raw = base64.urlsafe_b64decode(kwargs["body"]["raw"])
        parsed = email.message_from_bytes(raw)
        assert parsed["to"] == "jane@school.edu"
        assert parsed["subject"] == "Hello"
        assert parsed.get_payload(decode=True).decode("utf-8") == "See you soon"

    def test_http_error(self):
        error = HttpError(Mock(status=403, reason="Forbidden"), b"insufficient scopes")
        self.send_call.return_value.execute.side_effect = error

        with pytest.raises(EmailSendError, match="jane@school.edu"):
            self.sender.send("google-token", "jane@school.edu", "Hello", "Body")

    def test_encode_message_is_urlsafe(self):
        raw = encode_message("a@b.edu", "Subject", "Body ~~~ ???")

        assert "+" not in raw and "/" not in raw


class TestEmailSideChannel:
    """Test the side channel from lookup to send"""

    def setup_method(self):
        self.storage = InMemoryKeyValueStorage({GMAIL_TOKEN_KEY: "google-token"})
        self.directory = Mock()
        self.sender = Mock()
        self.sender.send.return_value = "msg-1"
        self.channel = EmailSideChannel(
            self.directory, CredentialProvider(self.storage), self.sender,
            session_token_getter=lambda: "session-token",
        )

    def test_begin_requires_google_token(self):
        self.storage.remove(GMAIL_TOKEN_KEY)

        with pytest.raises(CredentialError):
            self.channel.begin("Jane")
        self.directory.search.assert_not_called()

    def test_begin_propagates_forbidden(self):
        self.directory.search.side_effect = DirectoryAccessError("Directory access requires an educational account")

        with pytest.raises(DirectoryAccessError):
            self.channel.begin("Jane")
        assert self.channel.state is ResolutionState.IDLE

    def test_single_match_send(self, contacts):
        self.directory.search.return_value = contacts[:1]
        self.channel.begin("Jane Doe")

        outcomes = self.channel.send("Field trip", "Is the form due Friday?")

        assert len(outcomes) == 1
        assert outcomes[0].ok and outcomes[0].message_id == "msg-1"
        self.sender.send.assert_called_once_with(
            "google-token", "jane.doe@school.edu", "Field trip", "Is the form due Friday?"
        )
        assert self.channel.state is ResolutionState.IDLE

    @pytest.mark.parametrize("subject, body", [("", "Body"), ("Subject", "   "), ("  ", "")])
    def test_blank_fields_rejected(self, contacts, subject, body):
        self.directory.search.return_value = contacts[:1]
        self.channel.begin("Jane Doe")

        with pytest.raises(ValueError, match="fill in both subject and message"):
            self.channel.send(subject, body)
        self.sender.send.assert_not_called()
        assert self.channel.state is ResolutionState.COMPOSING

    def test_send_without_recipient(self, contacts):
        self.directory.search.return_value = contacts
        self.channel.begin("Jan")

        with pytest.raises(ValueError, match="No recipient selected"):
            self.channel.send("Subject", "Body")

    def test_failed_send_is_reported_once(self, contacts):
        self.directory.search.return_value = contacts[:1]
        self.sender.send.side_effect = EmailSendError("Failed to send email to jane.doe@school.edu")
        self.channel.begin("Jane Doe")

        outcomes = self.channel.send("Subject", "Body")

        assert not outcomes[0].ok
        assert "jane.doe@school.edu" in outcomes[0].error
        assert self.sender.send.call_count == 1

    def test_dismiss(self, contacts):
        self.directory.search.return_value = contacts
        self.channel.begin("Jan")

        self.channel.dismiss()

        assert self.channel.state is ResolutionState.IDLE
