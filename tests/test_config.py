"""
Tests for configuration system
"""

import pytest
from config.app_config import AppConfig, APIConfig, LLMConfig, NO_MATCH_BEHAVIORS, reload_config


class TestAppConfig:
    """Test application configuration"""

    def test_default_config_creation(self):
        """Test creating default configuration"""
        config = AppConfig()

        assert config.llm.model_name == "gemini-2.0-flash"
        assert config.llm.temperature == 0.7
        assert config.ui.default_title == "New Chat"
        assert config.ui.title_max_length == 30
        assert config.persona.seed_greeting
        assert config.email.no_match_behavior == "silent"
        assert ".edu" in config.email.edu_domains

    def test_llm_config_to_dict(self):
        """Test LLM config serialization"""
        llm_config = LLMConfig(model_name="gemini-1.5-pro", temperature=0.5)
        config_dict = llm_config.to_dict()

        assert config_dict["model"] == "gemini-1.5-pro"
        assert config_dict["temperature"] == 0.5

    def test_api_config_from_environment(self, monkeypatch):
        """Test API config loading from environment"""
        monkeypatch.setenv("GEMINI_API_KEY", "test_gemini_key")
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        monkeypatch.delenv("LANGFUSE_HOST", raising=False)

        api_config = APIConfig.from_secrets()

        assert api_config.gemini_api_key == "test_gemini_key"
        assert api_config.supabase_url == "https://example.supabase.co"
        assert api_config.supabase_anon_key == "anon"
        assert api_config.langfuse_host == "https://cloud.langfuse.com"

    def test_config_validation_passes(self, app_config):
        assert app_config.validate() == []

    def test_config_validation_missing_gemini_key(self, app_config):
        app_config.api.gemini_api_key = ""

        errors = app_config.validate()

        assert "Gemini API key is required" in errors

    def test_config_validation_supabase_requires_credentials(self, app_config):
        app_config.storage.backend = "supabase"

        errors = app_config.validate()

        assert any("Supabase" in error for error in errors)

    def test_config_validation_unknown_values(self, app_config):
        app_config.storage.backend = "mongo"
        app_config.email.no_match_behavior = "shout"

        errors = app_config.validate()

        assert len(errors) == 2

    @pytest.mark.parametrize("behavior", NO_MATCH_BEHAVIORS)
    def test_known_no_match_behaviors(self, app_config, behavior):
        app_config.email.no_match_behavior = behavior

        assert app_config.validate() == []

    def test_langfuse_config(self):
        config = AppConfig()
        config.api.langfuse_public_key = "pk"
        config.api.langfuse_secret_key = "sk"

        assert config.get_langfuse_config() == {
            "secret_key": "sk",
            "public_key": "pk",
            "host": "https://cloud.langfuse.com",
        }


class TestGlobalConfig:

    def test_reload_config_reads_environment(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "production")
        monkeypatch.setenv("GEMINI_API_KEY", "reloaded-key")
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")

        try:
            config = reload_config()
            assert config.environment == "production"
            assert config.api.gemini_api_key == "reloaded-key"
        finally:
            monkeypatch.delenv("APP_ENV")
            reload_config()
