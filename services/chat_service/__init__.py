"""
Chat service - conversation state, intent routing and persistence.
"""

from .models import Conversation, ConversationSummary, DirectoryContact, HistoryRecord, Message
from .intent import ChatIntent, EmailIntent, classify_intent
from .local_storage import FileKeyValueStorage, InMemoryKeyValueStorage, KeyValueStorage

__all__ = [
    'Conversation',
    'ConversationSummary',
    'DirectoryContact',
    'HistoryRecord',
    'Message',
    'ChatIntent',
    'EmailIntent',
    'classify_intent',
    'FileKeyValueStorage',
    'InMemoryKeyValueStorage',
    'KeyValueStorage'
]
