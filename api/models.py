"""Request/response models for the server-side endpoints"""

from typing import List, Optional

from pydantic import BaseModel, Field

from services.ai_service.models import ChatErrorResponse, ChatRequest, ChatResponse, HistoryItem


class DirectoryRequest(BaseModel):
    """Body of ``POST /get-directory``"""
    query: str = ""
    accessToken: Optional[str] = None


class ContactOut(BaseModel):
    id: str
    contact_name: str
    contact_email: str
    department: Optional[str] = None
    title: Optional[str] = None


class DirectoryResponse(BaseModel):
    contacts: List[ContactOut] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str


__all__ = [
    "ChatErrorResponse",
    "ChatRequest",
    "ChatResponse",
    "HistoryItem",
    "DirectoryRequest",
    "ContactOut",
    "DirectoryResponse",
    "ErrorResponse",
]
