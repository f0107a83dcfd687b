"""
Environment profiles for Helper, selected by ``APP_ENV``.

``development`` logs proxy payloads and uses a local SQLite store;
``production`` uses Supabase and keeps logs at WARNING. Any other name
loads the base configuration with its own environment overrides.
"""

import os
from typing import Callable, Dict, Optional

from config.app_config import AppConfig
from .development import get_development_config
from .production import get_production_config


DEFAULT_ENVIRONMENT = "development"

ENVIRONMENT_PROFILES: Dict[str, Callable[[], AppConfig]] = {
    "development": get_development_config,
    "production": get_production_config,
}

ALIASES = {
    "dev": "development",
    "local": "development",
    "prod": "production",
}


def current_environment() -> str:
    """Normalized environment name from ``APP_ENV``"""
    name = os.getenv("APP_ENV", DEFAULT_ENVIRONMENT).strip().lower() or DEFAULT_ENVIRONMENT
    return ALIASES.get(name, name)


def get_environment_config(environment: Optional[str] = None) -> AppConfig:
    """Configuration for ``environment``, or for ``APP_ENV`` when omitted"""
    name = ALIASES.get(environment.lower(), environment.lower()) if environment else current_environment()
    profile = ENVIRONMENT_PROFILES.get(name)
    if profile is None:
        return AppConfig.load()
    return profile()
