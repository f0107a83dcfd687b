"""
Intent classification for submitted chat messages.

A message is routed to the email side channel when it reads like
"send ... email ... to <name>"; everything else goes to the assistant.
This is a keyword heuristic: a message that mentions sending an email to
someone for an unrelated reason is still routed to the email path.
"""

from dataclasses import dataclass
from typing import Union
import re


# Name runs from "to" up to the next sentence terminator or end of text
EMAIL_INTENT_PATTERN = re.compile(r"send.*?email.*?\bto\s+([^.!?]+)", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class EmailIntent:
    """User asked to email a directory contact"""
    name: str


@dataclass(frozen=True)
class ChatIntent:
    """Ordinary chat turn for the assistant"""


Intent = Union[EmailIntent, ChatIntent]


def mentions_email_keywords(text: str) -> bool:
    lowered = text.lower()
    return "send" in lowered and "email" in lowered


def classify_intent(text: str) -> Intent:
    """
    Classify a user message as an email request or an ordinary chat turn

    Args:
        text: Raw message text

    Returns:
        EmailIntent with the extracted contact name, or ChatIntent
    """
    if not text or not mentions_email_keywords(text):
        return ChatIntent()

    match = EMAIL_INTENT_PATTERN.search(text)
    if not match:
        return ChatIntent()

    name = match.group(1).strip()
    if not name:
        return ChatIntent()

    return EmailIntent(name=name)
