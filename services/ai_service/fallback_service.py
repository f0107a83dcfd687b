"""
AI service fallback for graceful degradation.

When the assistant cannot be reached the user still gets a reply: a fixed,
friendly message inviting them to keep going.
"""

from typing import Optional

from utils.logging_config import get_logger


FALLBACK_TEXT = (
    "I'm having trouble connecting right now, but I'm still here to help! "
    "What would you like to know or discuss?"
)


class FallbackService:
    """
    Service for providing fallback responses when the AI service is unavailable.
    """

    def __init__(self, fallback_text: str = FALLBACK_TEXT):
        self.logger = get_logger(__name__)
        self.fallback_text = fallback_text or FALLBACK_TEXT

    def generate_fallback_response(self, reason: str = "") -> str:
        """
        Fallback reply substituted for a failed exchange

        Args:
            reason: Why the exchange failed, for the log only

        Returns:
            The configured fallback text
        """
        self.logger.warning(f"Using fallback response{': ' + reason if reason else ''}")
        return self.fallback_text


# Global fallback service instance
_fallback_service: Optional[FallbackService] = None


def get_fallback_service() -> FallbackService:
    """Get the global fallback service instance"""
    global _fallback_service
    if _fallback_service is None:
        from config.app_config import get_config
        _fallback_service = FallbackService(get_config().persona.fallback_text)
    return _fallback_service


def generate_fallback_response(reason: str = "") -> str:
    """Generate fallback response (convenience function)"""
    return get_fallback_service().generate_fallback_response(reason)
