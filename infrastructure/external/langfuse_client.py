"""
Langfuse client adapter for the application.
Handles Langfuse tracing of the proxy's model invocations.
"""

from langfuse import Langfuse
from langfuse.langchain import CallbackHandler
from typing import Dict, Optional

from utils.logging_config import get_logger


class LangfuseClient:
    """
    Adapter for Langfuse observability.
    Tracing is disabled when keys are absent.
    """

    def __init__(self, langfuse_config: Optional[Dict[str, str]] = None, enabled: bool = True):
        self.logger = get_logger(__name__)
        self._langfuse_config = langfuse_config
        self.enabled = enabled
        self._client = None
        self._callback_handler = None

    def _get_langfuse_config(self) -> Dict[str, str]:
        if self._langfuse_config is None:
            from config.app_config import get_langfuse_config
            self._langfuse_config = get_langfuse_config()
        return self._langfuse_config

    def get_client(self) -> Optional[Langfuse]:
        """
        Get configured Langfuse client

        Returns:
            Optional[Langfuse]: Configured client or None if not available
        """
        if not self.enabled:
            return None

        if self._client is None:
            try:
                langfuse_config = self._get_langfuse_config()

                if not langfuse_config["secret_key"] or not langfuse_config["public_key"]:
                    self.logger.debug("Langfuse keys not configured, skipping initialization")
                    return None

                self._client = Langfuse(
                    secret_key=langfuse_config["secret_key"],
                    public_key=langfuse_config["public_key"],
                    host=langfuse_config["host"]
                )

                self.logger.info("Langfuse client initialized successfully")

            except Exception as e:
                self.logger.warning(f"Failed to initialize Langfuse client: {e}")
                return None

        return self._client

    def get_callback_handler(self) -> Optional[CallbackHandler]:
        """
        Get Langfuse callback handler for LangChain integration

        Returns:
            Optional[CallbackHandler]: Callback handler or None if not available
        """
        if self._callback_handler is None:
            try:
                client = self.get_client()
                if client is None:
                    return None

                self._callback_handler = CallbackHandler()
                self.logger.debug("Langfuse callback handler created")

            except Exception as e:
                self.logger.warning(f"Failed to create Langfuse callback handler: {e}")
                return None

        return self._callback_handler

    def get_callbacks(self) -> list:
        """Callbacks list for a LangChain ``invoke`` config"""
        handler = self.get_callback_handler()
        return [handler] if handler is not None else []


# Global client instance
_langfuse_client: Optional[LangfuseClient] = None


def get_langfuse_client() -> LangfuseClient:
    """Get the global Langfuse client instance"""
    global _langfuse_client
    if _langfuse_client is None:
        from config.app_config import get_config
        _langfuse_client = LangfuseClient(enabled=get_config().logging.enable_langfuse_tracing)
    return _langfuse_client
