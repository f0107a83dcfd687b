"""
Development environment configuration overrides
"""

from dataclasses import dataclass
from config.app_config import AppConfig, APIConfig


@dataclass
class DevelopmentConfig(AppConfig):
    """Development environment configuration"""
    
    def __post_init__(self):
        
        # Development-specific overrides
        self.environment = "development"
        self.debug = True
        
        # More verbose logging in development
        self.logging.level = "DEBUG"
        self.logging.enable_file_logging = True
        self.logging.log_file = "logs/dev-app.log"
        
        # Development UI changes
        self.ui.app_title = "🧪 Helper (DEV)"
        
        # Outbound/inbound proxy payloads are only logged outside production
        self.proxy.log_payloads = True
        
        # Local SQLite store unless explicitly overridden
        self.storage.sqlite_path = "data/helper-dev.db"
        
        # Surface unmatched email intents while testing the side channel
        self.email.no_match_behavior = "notify"


def get_development_config() -> DevelopmentConfig:
    """Get development-specific configuration"""
    config = DevelopmentConfig()
    config.api = APIConfig.from_secrets()
    return config
