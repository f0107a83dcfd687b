"""
AI service data models for the chat proxy wire format.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class HistoryItem(BaseModel):
    """One prior turn of the conversation"""
    role: str
    content: str = ""
    image: Optional[str] = None


class ChatRequest(BaseModel):
    """Body of ``POST /chat-gemini``"""
    message: str = ""
    image: Optional[str] = None
    conversationHistory: List[HistoryItem] = Field(default_factory=list)


class ChatResponse(BaseModel):
    response: str


class ChatErrorResponse(BaseModel):
    error: str
    fallbackResponse: str
