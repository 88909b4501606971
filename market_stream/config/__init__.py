# Config module - application configuration
from .exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from .loader import ConfigLoader, load_config
from .models import AppConfig, BaseConfig, ReconnectConfig, StreamConfig

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
    # Loader
    "ConfigLoader",
    "load_config",
    # Models
    "BaseConfig",
    "StreamConfig",
    "ReconnectConfig",
    "AppConfig",
]
