"""
Application Configuration Model.

Top-level configuration combining the stream and reconnect sections.
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ConfigValidationError
from .base import BaseConfig
from .stream import ReconnectConfig, StreamConfig

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class AppConfig(BaseConfig):
    """
    Main application configuration.

    Example:
        >>> config = AppConfig(
        ...     log_level="debug",
        ...     stream=StreamConfig(testnet=True),
        ...     reconnect=ReconnectConfig(max_attempts=5),
        ... )
        >>> config.log_level
        'DEBUG'
    """

    app_name: str = Field(
        default="market-stream",
        description="Application name",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Rotating log file path (console only if unset)",
    )

    stream: StreamConfig = Field(
        default_factory=StreamConfig,
        description="Stream connection configuration",
    )
    reconnect: ReconnectConfig = Field(
        default_factory=ReconnectConfig,
        description="Reconnect policy",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        v = v.upper().strip()
        if v not in VALID_LOG_LEVELS:
            v = "INFO"
        return v

    @field_validator("log_file")
    @classmethod
    def validate_log_file(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def is_testnet(self) -> bool:
        return self.stream.testnet

    def with_overrides(self, **sections: Any) -> "AppConfig":
        """
        Return a copy with per-section overrides applied and re-validated.

        Args:
            **sections: Top-level field values, or dicts merged into a section

        Raises:
            ConfigValidationError: If the result does not validate

        Example:
            >>> config.with_overrides(stream={"testnet": True}, log_level="DEBUG")
        """
        data = self.model_dump()
        for key, value in sections.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value
        try:
            return type(self).model_validate(data)
        except PydanticValidationError as e:
            raise ConfigValidationError.from_pydantic(e) from e

    def to_yaml(self, path: Optional[str | Path] = None) -> str:
        """
        Render the configuration as YAML with sensitive fields masked.

        Args:
            path: Also write the text to this file

        Returns:
            The YAML text
        """
        text = yaml.safe_dump(
            self.masked_dict(),
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )
        if path is not None:
            Path(path).write_text(text, encoding="utf-8")
        return text
