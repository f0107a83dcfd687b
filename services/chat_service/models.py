"""
Chat service data models for conversations, messages and directory contacts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Optional, Any
import json
import uuid


USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"

# Older transcripts tag assistant turns as "ai"
_ROLE_ALIASES = {"ai": ASSISTANT_ROLE, "model": ASSISTANT_ROLE}

DEFAULT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 30
TITLE_ELLIPSIS = "..."


def new_id() -> str:
    """Generate a caller-side unique identifier"""
    return str(uuid.uuid4())


def normalize_role(role: str) -> str:
    """Map stored/legacy role tags onto user/assistant"""
    role = _ROLE_ALIASES.get(role, role)
    if role not in (USER_ROLE, ASSISTANT_ROLE):
        raise ValueError(f"Unknown message role: {role}")
    return role


def derive_title(text: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """First ``max_length`` characters of the text, with an ellipsis iff truncated"""
    if len(text) > max_length:
        return text[:max_length] + TITLE_ELLIPSIS
    return text


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now()
    # Postgres returns "Z" suffixed timestamps on some drivers
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class Message:
    """Individual message in a conversation"""
    role: str  # "user" or "assistant"
    content: str
    image: Optional[str] = None  # data URI
    message_id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.message_id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.created_at.isoformat(),
        }
        if self.image:
            data["image"] = self.image
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        return cls(
            role=normalize_role(data["role"]),
            content=data.get("content") or "",
            image=data.get("image") or None,
            message_id=data.get("id") or new_id(),
            created_at=_parse_timestamp(data.get("timestamp")),
        )


@dataclass
class Conversation:
    """Conversation containing messages and metadata"""
    conversation_id: str = field(default_factory=new_id)
    title: str = DEFAULT_TITLE
    messages: List[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def has_default_title(self) -> bool:
        return self.title == DEFAULT_TITLE

    def append(self, message: Message) -> None:
        """Append a message and bump the last-modified timestamp"""
        self.messages.append(message)
        self.touch()

    def touch(self) -> None:
        self.updated_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.conversation_id,
            "title": self.title,
            "messages": [message.to_dict() for message in self.messages],
            "created_at": self.created_at.isoformat(),
            "timestamp": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Conversation':
        updated_at = _parse_timestamp(data.get("timestamp") or data.get("updated_at"))
        return cls(
            conversation_id=data["id"],
            title=data.get("title") or DEFAULT_TITLE,
            messages=[Message.from_dict(item) for item in data.get("messages") or []],
            created_at=_parse_timestamp(data.get("created_at") or updated_at),
            updated_at=updated_at,
        )

    def to_record(self, owner_id: str) -> Dict[str, Any]:
        """Row shape of the remote ``chat_histories`` table"""
        return {
            "user_id": owner_id,
            "conversation_id": self.conversation_id,
            "title": self.title,
            "messages": [message.to_dict() for message in self.messages],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Conversation':
        messages = record.get("messages") or []
        if isinstance(messages, str):
            messages = json.loads(messages)
        return cls(
            conversation_id=record["conversation_id"],
            title=record.get("title") or DEFAULT_TITLE,
            messages=[Message.from_dict(item) for item in messages],
            created_at=_parse_timestamp(record.get("created_at")),
            updated_at=_parse_timestamp(record.get("updated_at")),
        )


@dataclass
class ConversationSummary:
    """Summary of conversation for listing/navigation"""
    conversation_id: str
    title: str
    message_count: int
    last_activity: datetime
    preview_text: Optional[str] = None

    @classmethod
    def of(cls, conversation: Conversation) -> 'ConversationSummary':
        preview = None
        for message in reversed(conversation.messages):
            if message.content:
                preview = message.content[:80]
                break
        return cls(
            conversation_id=conversation.conversation_id,
            title=conversation.title,
            message_count=len(conversation.messages),
            last_activity=conversation.updated_at,
            preview_text=preview,
        )


@dataclass(frozen=True)
class DirectoryContact:
    """Entry of the caller's organizational directory"""
    contact_id: str
    contact_name: str
    contact_email: str
    department: Optional[str] = None
    title: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'DirectoryContact':
        return cls(
            contact_id=str(row["id"]),
            contact_name=row["contact_name"],
            contact_email=row["contact_email"],
            department=row.get("department"),
            title=row.get("title"),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.contact_id,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "department": self.department,
            "title": self.title,
        }

    @property
    def display(self) -> str:
        return f"{self.contact_name} <{self.contact_email}>"


@dataclass
class HistoryRecord:
    """Persisted conversation row as seen by the admin history lookup"""
    user_id: str
    conversation: Conversation
