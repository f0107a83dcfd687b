"""
Tests for the Gemini chat turn
"""

import pytest
from unittest.mock import Mock

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from config.app_config import AppConfig
from services.ai_service.gemini_chat import (
    DEFAULT_IMAGE_MIME,
    EmptyResponseError,
    GeminiChatService,
    build_chat_messages,
    response_text,
    split_data_uri,
)
from services.ai_service.llm_client import LLMClient, MissingAPIKeyError


class TestSplitDataUri:

    def test_png_data_uri(self):
        assert split_data_uri("data:image/png;base64,iVBORw0") == ("image/png", "iVBORw0")

    def test_bare_payload_defaults_to_jpeg(self):
        assert split_data_uri("/9j/4AAQ") == (DEFAULT_IMAGE_MIME, "/9j/4AAQ")

    def test_header_without_mime(self):
        assert split_data_uri("data:;base64,AAAA") == (DEFAULT_IMAGE_MIME, "AAAA")


class TestBuildChatMessages:
    """Test message list construction"""

    def test_system_history_and_current_turn(self):
        history = [
            {"role": "assistant", "content": "Hi, I'm Helper"},
            {"role": "user", "content": "What is 2 + 2?"},
            {"role": "ai", "content": "4"},
        ]

        messages = build_chat_messages("Be kind.", history, "And 3 + 3?")

        assert isinstance(messages[0], SystemMessage)
        assert messages[0].content == "Be kind."
        assert [type(m) for m in messages[1:]] == [AIMessage, HumanMessage, AIMessage, HumanMessage]
        assert messages[-1].content == [{"type": "text", "text": "And 3 + 3?"}]

    def test_empty_history_turns_are_skipped(self):
        history = [{"role": "user", "content": ""}, {"role": "assistant", "content": "Hello"}]

        messages = build_chat_messages("sys", history, "Hi")

        assert len(messages) == 3

    def test_image_part(self):
        messages = build_chat_messages("sys", [], "What is this?", image="data:image/png;base64,AAAA")

        assert messages[-1].content == [
            {"type": "text", "text": "What is this?"},
            {"type": "image_url", "image_url": "data:image/png;base64,AAAA"},
        ]

    def test_image_only_turn(self):
        messages = build_chat_messages("sys", [], "", image="/9j/4AAQ")

        assert messages[-1].content == [
            {"type": "image_url", "image_url": "data:image/jpeg;base64,/9j/4AAQ"},
        ]


class TestResponseText:

    def test_string_content(self):
        assert response_text("Hello") == "Hello"

    def test_part_list_content(self):
        assert response_text([{"type": "text", "text": "Hel"}, "lo", {"type": "other"}]) == "Hello"


class TestGeminiChatService:
    """Test model invocation"""

    def setup_method(self):
        self.config = AppConfig()
        self.config.api.gemini_api_key = "test-key"
        self.llm = Mock()
        self.llm_client = Mock()
        self.llm_client.get_llm.return_value = self.llm
        self.langfuse_client = Mock()
        self.langfuse_client.get_callbacks.return_value = []
        self.service = GeminiChatService(self.config, self.llm_client, self.langfuse_client)

    def test_generate(self):
        self.llm.invoke.return_value = Mock(content="  Four.  ")

        text = self.service.generate("What is 2 + 2?", history=[{"role": "user", "content": "Hi"}])

        assert text == "Four."
        messages = self.llm.invoke.call_args.args[0]
        assert messages[0].content == self.config.persona.system_instruction
        assert self.llm.invoke.call_args.kwargs == {"config": {"callbacks": []}}

    def test_empty_response_raises(self):
        self.llm.invoke.return_value = Mock(content="")

        with pytest.raises(EmptyResponseError):
            self.service.generate("Hello")

    def test_model_errors_propagate(self):
        self.llm.invoke.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(RuntimeError, match="quota exceeded"):
            self.service.generate("Hello")


class TestLLMClient:

    def test_missing_api_key(self):
        config = AppConfig()
        config.api.gemini_api_key = ""

        with pytest.raises(MissingAPIKeyError):
            LLMClient(config).get_llm()

    def test_llm_is_cached(self):
        config = AppConfig()
        config.api.gemini_api_key = "test-key"
        client = LLMClient(config)

        assert client.get_llm() is client.get_llm()
        assert client.get_llm().model.endswith(config.llm.model_name)
