"""
Shared fixtures for the test suite
"""

import pytest
from unittest.mock import Mock

from config.app_config import AppConfig
from services.ai_service.exchange_client import ExchangeResult
from services.auth_service.models import SessionIdentity
from services.chat_service.local_storage import InMemoryKeyValueStorage
from services.chat_service.models import DirectoryContact


@pytest.fixture
def app_config(tmp_path):
    """Base configuration with every path inside the test's temp directory"""
    config = AppConfig()
    config.storage.backend = "sqlite"
    config.storage.sqlite_path = str(tmp_path / "helper.db")
    config.storage.local_storage_dir = str(tmp_path / "local_storage")
    config.logging.enable_file_logging = False
    config.logging.log_file = str(tmp_path / "logs" / "app.log")
    config.api.gemini_api_key = "test-gemini-key"
    return config


@pytest.fixture
def local_storage():
    return InMemoryKeyValueStorage()


@pytest.fixture
def exchange_client():
    client = Mock()
    client.exchange.return_value = ExchangeResult(text="Let's think it through together.")
    return client


@pytest.fixture
def identity():
    return SessionIdentity(user_id="user-1", email="student@school.edu", access_token="session-token")


@pytest.fixture
def contacts():
    return [
        DirectoryContact(contact_id="c1", contact_name="Jane Doe", contact_email="jane.doe@school.edu",
                         department="Math", title="Teacher"),
        DirectoryContact(contact_id="c2", contact_name="Jane Smith", contact_email="jane.smith@school.edu",
                         department="Science", title="Teacher"),
        DirectoryContact(contact_id="c3", contact_name="Janet Lee", contact_email="janet.lee@school.edu"),
    ]
