# Configuration models
from .app import AppConfig
from .base import BaseConfig
from .stream import ReconnectConfig, StreamConfig

__all__ = [
    "BaseConfig",
    "StreamConfig",
    "ReconnectConfig",
    "AppConfig",
]
