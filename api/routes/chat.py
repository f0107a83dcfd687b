"""Chat proxy endpoint: one user turn in, one assistant turn out.

The Gemini API key never leaves the server.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.models import ChatRequest, ChatResponse
from services.ai_service.fallback_service import FALLBACK_TEXT
from services.ai_service.gemini_chat import GeminiChatService
from utils.logging_config import get_logger, log_payload

logger = get_logger(__name__)

router = APIRouter(tags=["chat"])

_chat_service: Optional[GeminiChatService] = None


def get_chat_service() -> GeminiChatService:
    """Dependency returning the process-wide Gemini chat service"""
    global _chat_service
    if _chat_service is None:
        _chat_service = GeminiChatService()
    return _chat_service


def chat_error_response(error: str, fallback_text: str = FALLBACK_TEXT) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": error, "fallbackResponse": fallback_text},
    )


@router.post("/chat-gemini", response_model=ChatResponse)
def chat_gemini(request: ChatRequest, service: GeminiChatService = Depends(get_chat_service)):
    """Generate the assistant reply for one turn"""
    history = [item.model_dump() for item in request.conversationHistory]
    logger.info(f"Chat request with {len(history)} prior turn(s), image={bool(request.image)}")
    log_payload(logger, "Chat request", request.model_dump(), service.config.proxy.log_payloads)

    try:
        text = service.generate(request.message, request.image, history)
    except Exception as e:
        logger.error(f"Error in chat-gemini function: {e}", exc_info=True)
        return chat_error_response(str(e), service.config.persona.fallback_text)

    return {"response": text}
