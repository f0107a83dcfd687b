"""
LLM client - handles Gemini chat model setup.
"""

from langchain_google_genai import ChatGoogleGenerativeAI
from typing import Optional

from config.app_config import AppConfig, get_config
from utils.logging_config import get_logger


class MissingAPIKeyError(RuntimeError):
    """Gemini API key is not configured"""


class LLMClient:
    """
    Client for LLM setup.
    Handles ChatGoogleGenerativeAI initialization and configuration.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        self.logger = get_logger(__name__)
        self.config = config or get_config()
        self._llm = None

    def get_llm(self) -> ChatGoogleGenerativeAI:
        """
        Get configured ChatGoogleGenerativeAI instance

        Returns:
            Configured chat model

        Raises:
            MissingAPIKeyError: No Gemini API key configured
        """
        if self._llm is None:
            api_key = self.config.api.gemini_api_key
            if not api_key:
                raise MissingAPIKeyError("Gemini API key not configured")

            try:
                self._llm = ChatGoogleGenerativeAI(
                    model=self.config.llm.model_name,
                    temperature=self.config.llm.temperature,
                    max_output_tokens=self.config.llm.max_output_tokens,
                    google_api_key=api_key,
                )

                self.logger.info(f"LLM initialized: {self.config.llm.model_name}")

            except Exception as e:
                self.logger.error(f"Error initializing LLM: {e}")
                raise

        return self._llm


# Global client instance
_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get the global LLM client instance"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
