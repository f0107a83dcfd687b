"""
AI service - handles the chat proxy round trip and Gemini interactions.
"""

from .fallback_service import (
    FALLBACK_TEXT,
    FallbackService,
    get_fallback_service,
    generate_fallback_response
)
from .exchange_client import ExchangeClient, ExchangeResult
from .models import ChatRequest, HistoryItem


# Lazy import keeps the Gemini SDK out of the Streamlit client
def get_gemini_chat_service():
    from .gemini_chat import get_gemini_chat_service as _get_gemini_chat_service
    return _get_gemini_chat_service()


__all__ = [
    'FALLBACK_TEXT',
    'FallbackService',
    'get_fallback_service',
    'generate_fallback_response',
    'ExchangeClient',
    'ExchangeResult',
    'ChatRequest',
    'HistoryItem',
    'get_gemini_chat_service'
]
