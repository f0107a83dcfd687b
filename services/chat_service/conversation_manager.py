"""
Conversation manager service - owns the conversation list, the active
conversation and the dispatch of each submitted user turn.

Collaborators are injected so the manager can run outside Streamlit.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional

from config.app_config import AppConfig
from services.ai_service.exchange_client import ExchangeClient
from services.auth_service.models import SessionIdentity
from services.chat_service.conversation_repository import ConversationStore
from services.chat_service.intent import EmailIntent, classify_intent
from services.chat_service.local_storage import KeyValueStorage
from services.chat_service.models import (
    ASSISTANT_ROLE,
    USER_ROLE,
    Conversation,
    ConversationSummary,
    Message,
    derive_title,
)
from services.email_service.contact_resolution import ContactResolution
from services.email_service.errors import EmailChannelError
from services.email_service.side_channel import EmailSideChannel
from utils.logging_config import get_logger, log_conversation_event


NOTICE_LEVELS = ("info", "warning", "error")


@dataclass(frozen=True)
class Notice:
    """User-visible notification raised while handling an action"""
    level: str
    message: str


@dataclass(frozen=True)
class SyncOutcome:
    """Outcome of one remote conversation write"""
    conversation_id: str
    ok: bool
    error: Optional[str] = None


@dataclass
class SyncReport:
    """Outcome of one synchronize pass"""
    local_ok: bool = True
    local_error: Optional[str] = None
    outcomes: List[SyncOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[SyncOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def ok(self) -> bool:
        return self.local_ok and not self.failures


@dataclass
class TurnResult:
    """What a submitted message turned into"""
    kind: str  # "ignored", "email" or "chat"
    conversation_id: Optional[str] = None
    user_message: Optional[Message] = None
    reply: Optional[Message] = None
    used_fallback: bool = False
    resolution: Optional[ContactResolution] = None
    error: Optional[str] = None


class ConversationManager:
    """
    Service for managing conversation state and operations.
    Handles conversation creation, switching, persistence and turn dispatch.
    """

    def __init__(self, local_storage: KeyValueStorage, remote_store: Optional[ConversationStore],
                 exchange_client: ExchangeClient, email_channel: Optional[EmailSideChannel] = None,
                 identity: Optional[SessionIdentity] = None, config: Optional[AppConfig] = None):
        self.logger = get_logger(__name__)
        self.local_storage = local_storage
        self.remote_store = remote_store
        self.exchange_client = exchange_client
        self.email_channel = email_channel
        self.identity = identity
        self.config = config or AppConfig()

        self._conversations: List[Conversation] = []
        self.active_conversation_id: Optional[str] = None
        self._notices: List[Notice] = []

    @property
    def conversations(self) -> List[Conversation]:
        """Conversations, most recent first"""
        return list(self._conversations)

    @property
    def active_conversation(self) -> Optional[Conversation]:
        if self.active_conversation_id is None:
            return None
        return self.get_conversation(self.active_conversation_id)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        for conversation in self._conversations:
            if conversation.conversation_id == conversation_id:
                return conversation
        return None

    def active_messages(self) -> List[Message]:
        conversation = self.active_conversation
        return list(conversation.messages) if conversation else []

    def summaries(self) -> List[ConversationSummary]:
        return [ConversationSummary.of(conversation) for conversation in self._conversations]

    @property
    def owner_id(self) -> Optional[str]:
        return self.identity.user_id if self.identity else None

    def set_identity(self, identity: Optional[SessionIdentity]) -> None:
        """Switch the signed-in user; call ``load`` afterwards"""
        self.identity = identity

    def notify(self, level: str, message: str) -> None:
        if level not in NOTICE_LEVELS:
            raise ValueError(f"Unknown notice level: {level}")
        self._notices.append(Notice(level=level, message=message))

    def drain_notices(self) -> List[Notice]:
        notices, self._notices = self._notices, []
        return notices

    def _new_conversation(self) -> Conversation:
        conversation = Conversation(title=self.config.ui.default_title)
        if self.config.persona.seed_greeting and self.config.persona.greeting:
            conversation.messages.append(
                Message(role=ASSISTANT_ROLE, content=self.config.persona.greeting)
            )
        return conversation

    def create_conversation(self) -> Conversation:
        """
        Create a conversation, make it active and persist the new set

        Returns:
            The new conversation
        """
        conversation = self._new_conversation()
        self._conversations.insert(0, conversation)
        self.active_conversation_id = conversation.conversation_id

        log_conversation_event(self.logger, "created", conversation.conversation_id)
        self.synchronize()
        return conversation

    def select_conversation(self, conversation_id: str) -> bool:
        if self.get_conversation(conversation_id) is None:
            self.logger.warning(f"Conversation not found: {conversation_id}")
            return False

        self.active_conversation_id = conversation_id
        self.logger.debug(f"Switched to conversation {conversation_id}")
        return True

    def delete_conversation(self, conversation_id: str) -> bool:
        """
        Delete a conversation locally and remotely

        Returns:
            False when the id is unknown
        """
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            self.logger.warning(f"Conversation not found for deletion: {conversation_id}")
            return False

        self._conversations.remove(conversation)

        if self.owner_id and self.remote_store is not None:
            try:
                self.remote_store.delete(self.owner_id, conversation_id)
            except Exception as e:
                self.logger.error(f"Error deleting conversation {conversation_id} remotely: {e}")
                self.notify("warning", "Could not delete the chat from your account; it may reappear.")

        log_conversation_event(self.logger, "deleted", conversation_id)

        if self.active_conversation_id == conversation_id:
            if self._conversations:
                self.active_conversation_id = self._conversations[0].conversation_id
            else:
                # create_conversation persists the set as well
                self.create_conversation()
                return True

        self.synchronize()
        return True

    def rename_conversation(self, conversation_id: str, title: str) -> bool:
        conversation = self.get_conversation(conversation_id)
        if conversation is None or not title.strip():
            return False

        conversation.title = title.strip()
        conversation.touch()
        self.logger.info(f"Renamed conversation {conversation_id}: {conversation.title}")
        self.synchronize()
        return True

    def append_user_turn(self, text: str, image: Optional[str] = None) -> Optional[Message]:
        """
        Append a user message to the active conversation

        Returns:
            The appended message, or None when there is nothing to send
        """
        text = text or ""
        if not text.strip() and not image:
            return None

        conversation = self.active_conversation
        if conversation is None:
            conversation = self.create_conversation()

        message = Message(role=USER_ROLE, content=text, image=image)
        if conversation.has_default_title and text.strip():
            conversation.title = derive_title(text, self.config.ui.title_max_length)
        conversation.append(message)

        log_conversation_event(
            self.logger, "message_added", conversation.conversation_id,
            role=USER_ROLE, has_image=bool(image),
        )
        return message

    def append_assistant_turn(self, conversation_id: str, content: str) -> Optional[Message]:
        """
        Append an assistant reply to the conversation it was requested for

        Returns:
            The appended message, or None if that conversation no longer exists
        """
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            self.logger.warning(f"Dropping reply for deleted conversation {conversation_id}")
            return None

        message = Message(role=ASSISTANT_ROLE, content=content)
        conversation.append(message)
        log_conversation_event(self.logger, "message_added", conversation_id, role=ASSISTANT_ROLE)
        return message

    def _exchange(self, conversation_id: str, text: str, image: Optional[str],
                  user_message: Message, resolution: Optional[ContactResolution] = None) -> TurnResult:
        conversation = self.get_conversation(conversation_id)
        history = conversation.messages[:-1] if conversation else []

        result = self.exchange_client.exchange(text, image, history)
        reply = self.append_assistant_turn(conversation_id, result.text)
        self.synchronize()

        return TurnResult(
            kind="chat",
            conversation_id=conversation_id,
            user_message=user_message,
            reply=reply,
            used_fallback=result.used_fallback,
            resolution=resolution,
        )

    def submit(self, text: str, image: Optional[str] = None) -> TurnResult:
        """
        Handle one submitted message: record it, then route it to the email
        side channel or to the assistant

        Args:
            text: Message text
            image: Optional image as a data URI

        Returns:
            TurnResult describing what happened
        """
        user_message = self.append_user_turn(text, image)
        if user_message is None:
            return TurnResult(kind="ignored")

        conversation_id = self.active_conversation_id
        self.synchronize()

        intent = classify_intent(text or "")
        if isinstance(intent, EmailIntent) and self.email_channel is not None:
            log_conversation_event(self.logger, "submitted", conversation_id, route="email")
            return self._begin_email(conversation_id, text, image, user_message, intent)

        log_conversation_event(self.logger, "submitted", conversation_id, route="chat")
        return self._exchange(conversation_id, text, image, user_message)

    def _begin_email(self, conversation_id: str, text: str, image: Optional[str],
                     user_message: Message, intent: EmailIntent) -> TurnResult:
        try:
            resolution = self.email_channel.begin(intent.name)
        except EmailChannelError as e:
            self.logger.warning(f"Email request for '{intent.name}' failed: {e}")
            self.notify("error", str(e))
            return TurnResult(kind="email", conversation_id=conversation_id,
                              user_message=user_message, error=str(e))

        if resolution.is_no_match:
            behavior = self.config.email.no_match_behavior
            self.logger.info(f"No directory match for '{intent.name}' ({behavior})")
            if behavior == "notify":
                self.notify("warning", f"No contact found for {intent.name}")
            elif behavior == "chat":
                return self._exchange(conversation_id, text, image, user_message, resolution)

        return TurnResult(kind="email", conversation_id=conversation_id,
                          user_message=user_message, resolution=resolution)

    def _write_local(self, report: SyncReport) -> None:
        blob = [conversation.to_dict() for conversation in self._conversations]
        try:
            self.local_storage.set(self.config.storage.conversations_key, blob)
        except Exception as e:
            self.logger.error(f"Error saving conversations to local storage: {e}")
            report.local_ok = False
            report.local_error = str(e)

    def _upsert_one(self, owner_id: str, conversation: Conversation) -> SyncOutcome:
        try:
            self.remote_store.upsert(owner_id, conversation)
            return SyncOutcome(conversation_id=conversation.conversation_id, ok=True)
        except Exception as e:
            self.logger.error(f"Error saving conversation {conversation.conversation_id}: {e}")
            return SyncOutcome(conversation_id=conversation.conversation_id, ok=False, error=str(e))

    def synchronize(self) -> SyncReport:
        """
        Persist the whole conversation set: on-device always, remotely when
        signed in. Never raises.
        """
        report = SyncReport()
        self._write_local(report)

        owner_id = self.owner_id
        if owner_id and self.remote_store is not None and self._conversations:
            snapshot = list(self._conversations)
            workers = max(1, min(self.config.storage.sync_workers, len(snapshot)))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                report.outcomes = list(executor.map(
                    lambda conversation: self._upsert_one(owner_id, conversation), snapshot
                ))

        if not report.local_ok:
            self.notify("warning", "Could not save chats on this device.")
        if report.failures:
            self.notify("warning", f"Could not save {len(report.failures)} chat(s) to your account.")

        return report

    def _read_local(self) -> List[Conversation]:
        blob = self.local_storage.get(self.config.storage.conversations_key)
        if not blob:
            return []
        try:
            return [Conversation.from_dict(item) for item in blob]
        except (KeyError, TypeError, ValueError) as e:
            self.logger.error(f"Ignoring corrupt local conversation data: {e}")
            return []

    def load(self) -> List[Conversation]:
        """
        Restore conversations from the remote store (signed in) or from
        on-device storage, creating a first conversation if none exist

        Returns:
            The loaded conversations, most recent first
        """
        conversations: List[Conversation] = []

        if self.owner_id and self.remote_store is not None:
            try:
                conversations = self.remote_store.list_for_owner(self.owner_id)
                self.logger.info(f"Loaded {len(conversations)} conversation(s) for {self.owner_id}")
            except Exception as e:
                self.logger.error(f"Error loading conversations from remote store: {e}")
                self.notify("warning", "Could not load chats from your account; showing chats saved on this device.")
                conversations = self._read_local()
        else:
            conversations = self._read_local()
            self.logger.info(f"Loaded {len(conversations)} conversation(s) from local storage")

        self._conversations = sorted(conversations, key=lambda c: c.updated_at.timestamp(), reverse=True)
        self.active_conversation_id = None

        if not self._conversations:
            self.create_conversation()
        else:
            self.active_conversation_id = self._conversations[0].conversation_id

        return self.conversations


def build_remote_store(config: AppConfig, identity: Optional[SessionIdentity] = None) -> Optional[ConversationStore]:
    """Remote store for the configured backend, or None for a guest on the managed backend"""
    if config.storage.backend == "supabase":
        if identity is None:
            return None
        from infrastructure.external.supabase_client import get_supabase_client
        from services.chat_service.conversation_repository import SupabaseConversationStore
        return SupabaseConversationStore(get_supabase_client().get_user_client(identity.access_token))

    from services.chat_service.conversation_repository import SQLiteConversationStore
    return SQLiteConversationStore(config.storage.sqlite_path)


def build_conversation_manager(config: AppConfig, identity: Optional[SessionIdentity] = None,
                               flow_runner=None, device_id: Optional[str] = None) -> ConversationManager:
    """
    Wire a manager with the production collaborators described by ``config``

    Args:
        config: Application configuration
        identity: Signed-in user, None for anonymous use
        flow_runner: OAuth consent flow used to acquire a Google token
        device_id: Browser session id; scopes a guest's on-device data
    """
    from services.chat_service.local_storage import FileKeyValueStorage, storage_namespace
    from services.email_service.credential_provider import CredentialProvider
    from services.email_service.directory_client import DirectoryClient
    from services.email_service.gmail_sender import GmailSender
    from services.ai_service.fallback_service import FallbackService

    namespace = storage_namespace(identity.user_id if identity else None, device_id)
    local_storage = FileKeyValueStorage(config.storage.local_storage_dir, namespace)

    exchange_client = ExchangeClient(
        config.proxy.chat_url,
        timeout=config.proxy.timeout_seconds,
        log_payloads=config.proxy.log_payloads,
        fallback_service=FallbackService(config.persona.fallback_text),
    )

    session_token_getter = lambda: identity.access_token if identity else None
    provider_token_getter = lambda: identity.provider_token if identity else None

    credentials = CredentialProvider(
        local_storage,
        flow_runner=flow_runner,
        session_token_getter=provider_token_getter,
        token_key=config.storage.token_key,
        scopes=config.email.oauth_scopes,
    )
    email_channel = EmailSideChannel(
        DirectoryClient(config.proxy.directory_url, timeout=config.proxy.timeout_seconds),
        credentials,
        GmailSender(),
        session_token_getter=session_token_getter,
    )

    return ConversationManager(
        local_storage=local_storage,
        remote_store=build_remote_store(config, identity),
        exchange_client=exchange_client,
        email_channel=email_channel,
        identity=identity,
        config=config,
    )
