"""
AI exchange client - one blocking round trip to the chat proxy per user turn.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import requests

from services.ai_service.fallback_service import FallbackService
from services.chat_service.models import Message
from utils.logging_config import get_logger, log_execution_time, log_payload


@dataclass(frozen=True)
class ExchangeResult:
    """Assistant reply text and whether it is the fallback"""
    text: str
    used_fallback: bool = False


def history_payload(history: Iterable[Message]) -> List[Dict[str, Any]]:
    items = []
    for message in history:
        item = {"role": message.role, "content": message.content}
        if message.image:
            item["image"] = message.image
        items.append(item)
    return items


class ExchangeClient:
    """
    Client for the server-side chat proxy.
    Never raises: every failure is replaced by the fallback reply.
    """

    def __init__(self, proxy_url: str, timeout: float = 60.0,
                 session: Optional[requests.Session] = None, log_payloads: bool = False,
                 fallback_service: Optional[FallbackService] = None):
        self.logger = get_logger(__name__)
        self.proxy_url = proxy_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.log_payloads = log_payloads
        self.fallback_service = fallback_service or FallbackService()

    def _fallback(self, reason: str) -> ExchangeResult:
        return ExchangeResult(
            text=self.fallback_service.generate_fallback_response(reason),
            used_fallback=True,
        )

    def exchange(self, message: str, image: Optional[str] = None,
                 history: Iterable[Message] = ()) -> ExchangeResult:
        """
        Send one user turn with its prior history and return the assistant reply

        Args:
            message: Current user text
            image: Current user image as a data URI
            history: Conversation messages before the current turn

        Returns:
            ExchangeResult with the reply, or the fallback text on any failure
        """
        payload: Dict[str, Any] = {
            "message": message,
            "conversationHistory": history_payload(history),
        }
        if image:
            payload["image"] = image

        log_payload(self.logger, "Chat proxy request", payload, self.log_payloads)

        try:
            with log_execution_time(self.logger, "chat_exchange",
                                    history_length=len(payload["conversationHistory"])):
                response = self.session.post(self.proxy_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            return self._fallback(f"proxy unreachable: {e}")

        log_payload(self.logger, f"Chat proxy response {response.status_code}", response.text, self.log_payloads)

        if not response.ok:
            return self._fallback(f"proxy returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            return self._fallback("proxy returned a non-JSON body")

        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str) or not text.strip():
            return self._fallback("proxy response has no text")

        return ExchangeResult(text=text, used_fallback=False)
