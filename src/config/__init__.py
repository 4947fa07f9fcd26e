"""
Configuration module for the grading assistant.

Provides settings, constants, the provider registry and logging configuration.
"""

from config.settings import get_settings, reload_settings, Settings
from config.logging_config import setup_logging
from config.providers import ProviderConfig, ProviderSpec, PROVIDER_REGISTRY, get_provider_config
from config.constants import (
    # Model Configuration
    MAX_TOKENS,
    TEMPERATURE,
    # API Timeouts
    API_CONNECT_TIMEOUT,
    API_READ_TIMEOUT,
    # Retry
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    # Storage
    DATA_DIR,
)

__all__ = [
    # Settings
    'get_settings',
    'reload_settings',
    'Settings',
    # Logging
    'setup_logging',
    # Providers
    'ProviderConfig',
    'ProviderSpec',
    'PROVIDER_REGISTRY',
    'get_provider_config',
    # Constants
    'MAX_TOKENS',
    'TEMPERATURE',
    'API_CONNECT_TIMEOUT',
    'API_READ_TIMEOUT',
    'MAX_RETRIES',
    'RETRY_BASE_DELAY',
    'DATA_DIR',
]
