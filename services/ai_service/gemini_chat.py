"""
Gemini chat turn: builds the LangChain message list from the persona,
the prior transcript and the current user turn, then invokes the model.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from config.app_config import AppConfig, get_config
from infrastructure.external.langfuse_client import LangfuseClient, get_langfuse_client
from services.ai_service.llm_client import LLMClient
from utils.logging_config import get_logger, log_execution_time


DEFAULT_IMAGE_MIME = "image/jpeg"

# Roles the model treats as its own turns
_MODEL_ROLES = {"assistant", "ai", "model"}


class EmptyResponseError(RuntimeError):
    """The model returned no text"""


def split_data_uri(data_uri: str) -> Tuple[str, str]:
    """
    Split ``data:<mime>;base64,<payload>`` into (mime type, base64 payload)

    A bare payload or a header without a mime type yields ``image/jpeg``.
    """
    if "," not in data_uri:
        return DEFAULT_IMAGE_MIME, data_uri

    header, payload = data_uri.split(",", 1)
    mime_type = header.split(";")[0].partition(":")[2].strip()
    return mime_type or DEFAULT_IMAGE_MIME, payload


def _content_parts(text: Optional[str], image: Optional[str]) -> List[Dict[str, Any]]:
    parts: List[Dict[str, Any]] = []
    if text:
        parts.append({"type": "text", "text": text})
    if image:
        mime_type, payload = split_data_uri(image)
        parts.append({"type": "image_url", "image_url": f"data:{mime_type};base64,{payload}"})
    return parts


def build_chat_messages(system_instruction: str, history: Iterable[Mapping[str, Any]],
                        message: str, image: Optional[str] = None) -> List[BaseMessage]:
    """
    LangChain messages for one turn

    Args:
        system_instruction: Persona instruction sent as the system message
        history: Prior turns as ``{"role", "content", "image"?}`` mappings
        message: Current user text
        image: Current user image as a data URI

    Returns:
        System message, one message per non-empty history turn, current turn
    """
    messages: List[BaseMessage] = [SystemMessage(content=system_instruction)]

    for item in history:
        parts = _content_parts(item.get("content"), item.get("image"))
        if not parts:
            continue
        if item.get("role") in _MODEL_ROLES:
            messages.append(AIMessage(content=parts))
        else:
            messages.append(HumanMessage(content=parts))

    current_parts = _content_parts(message, image)
    if current_parts:
        messages.append(HumanMessage(content=current_parts))

    return messages


def response_text(content: Any) -> str:
    """Flatten a chat model's message content to plain text"""
    if isinstance(content, str):
        return content
    texts = []
    for part in content or []:
        if isinstance(part, str):
            texts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            texts.append(part.get("text", ""))
    return "".join(texts)


class GeminiChatService:
    """
    Generates one assistant turn with Gemini.
    """

    def __init__(self, config: Optional[AppConfig] = None, llm_client: Optional[LLMClient] = None,
                 langfuse_client: Optional[LangfuseClient] = None):
        self.logger = get_logger(__name__)
        self.config = config or get_config()
        self.llm_client = llm_client or LLMClient(self.config)
        self.langfuse_client = langfuse_client

    def _callbacks(self) -> list:
        langfuse_client = self.langfuse_client or get_langfuse_client()
        return langfuse_client.get_callbacks()

    def generate(self, message: str, image: Optional[str] = None,
                 history: Iterable[Mapping[str, Any]] = ()) -> str:
        """
        Invoke the model for the current turn

        Raises:
            MissingAPIKeyError: No Gemini API key configured
            EmptyResponseError: Model produced no text
        """
        llm = self.llm_client.get_llm()
        messages = build_chat_messages(
            self.config.persona.system_instruction, history, message, image
        )

        with log_execution_time(self.logger, "gemini_generate",
                                model=self.config.llm.model_name, turns=len(messages)):
            response = llm.invoke(messages, config={"callbacks": self._callbacks()})

        text = response_text(response.content).strip()
        if not text:
            raise EmptyResponseError("No response from model")
        return text


# Global service instance
_gemini_chat_service: Optional[GeminiChatService] = None


def get_gemini_chat_service() -> GeminiChatService:
    """Get the global Gemini chat service instance"""
    global _gemini_chat_service
    if _gemini_chat_service is None:
        _gemini_chat_service = GeminiChatService()
    return _gemini_chat_service
