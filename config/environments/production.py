"""
Production environment configuration overrides
"""

from dataclasses import dataclass
from config.app_config import AppConfig, APIConfig


@dataclass
class ProductionConfig(AppConfig):
    """Production environment configuration"""
    
    def __post_init__(self):
        
        # Production-specific overrides
        self.environment = "production"
        self.debug = False
        
        # Production logging - less verbose, focus on errors
        self.logging.level = "WARNING"
        self.logging.enable_file_logging = True
        self.logging.log_file = "logs/prod-app.log"
        
        # Chat payloads carry user content and images
        self.proxy.log_payloads = False
        
        # Production persistence goes through the managed backend
        self.storage.backend = "supabase"
        
        # Production LLM settings - more conservative
        self.llm.temperature = 0.5


def get_production_config() -> ProductionConfig:
    """Get production-specific configuration"""
    config = ProductionConfig()
    config.api = APIConfig.from_secrets()
    return config
