"""
Configuration Loader.

Loads YAML configuration files, applies an optional environment overlay
and ``.env`` variables, and validates the result into ``AppConfig``.
"""

import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError

from .exceptions import (
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from .models import AppConfig
from .models.base import ENV_VAR_PATTERN

TRUE_WORDS = ("true", "yes", "on")
FALSE_WORDS = ("false", "no", "off")


class ConfigLoader:
    """
    Configuration loader with YAML support and environment variable substitution.

    Example:
        >>> loader = ConfigLoader()
        >>> config = loader.load("config/market_stream.yaml", env="testnet")
        >>> config.stream.endpoint
        'wss://testnet.binance.vision/ws'
    """

    def __init__(self, env_file: Optional[str | Path] = None):
        """
        Initialize ConfigLoader.

        Args:
            env_file: Optional path to .env file. If not provided,
                     will look for .env next to the config file.
        """
        self._env_file = Path(env_file) if env_file else None
        self._loaded_env = False

    def load(
        self,
        path: Optional[str | Path] = None,
        env: Optional[str] = None,
    ) -> AppConfig:
        """
        Load configuration.

        Loading flow:
        1. Load .env file (if exists)
        2. Load base YAML (defaults only when ``path`` is None)
        3. Deep merge ``<name>.<env>.yaml`` (if env given and file exists)
        4. Substitute environment variables
        5. Validate with Pydantic

        Args:
            path: Path to base configuration file
            env: Optional environment name (testnet, mainnet, ...)

        Returns:
            Validated AppConfig instance

        Raises:
            ConfigFileNotFoundError: If base config file not found
            ConfigParseError: If YAML parsing fails
            ConfigValidationError: If Pydantic validation fails
        """
        if path is None:
            self._load_env_file(Path.cwd())
            return self.validate({})

        path = Path(path)
        self._load_env_file(path.parent)

        data = self.load_yaml(path)
        if env:
            env_config_path = path.parent / f"{path.stem}.{env}{path.suffix}"
            if env_config_path.exists():
                data = self.merge_configs(data, self.load_yaml(env_config_path))

        return self.validate(self.substitute_env_vars(data))

    def validate(self, data: dict[str, Any]) -> AppConfig:
        """Validate a raw mapping into ``AppConfig``."""
        try:
            return AppConfig(**data)
        except PydanticValidationError as e:
            raise ConfigValidationError.from_pydantic(e) from e

    def load_yaml(self, path: str | Path) -> dict[str, Any]:
        """
        Load a YAML configuration file.

        Raises:
            ConfigFileNotFoundError: If file not found
            ConfigParseError: If YAML parsing fails or the top level is not a mapping
        """
        path = Path(path)

        if not path.exists():
            raise ConfigFileNotFoundError(str(path))

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigParseError(str(path), str(e)) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigParseError(str(path), f"top level must be a mapping, got {type(data).__name__}")
        return data

    def merge_configs(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Deep merge two configuration dictionaries.

        Override values take precedence. Nested dictionaries are merged recursively.

        Example:
            >>> base = {"stream": {"testnet": False, "request_timeout": 5}}
            >>> override = {"stream": {"testnet": True}}
            >>> loader.merge_configs(base, override)
            {'stream': {'testnet': True, 'request_timeout': 5}}
        """
        result = deepcopy(base)

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self.merge_configs(result[key], value)
            else:
                result[key] = deepcopy(value)

        return result

    def substitute_env_vars(self, data: Any) -> Any:
        """
        Substitute ``${VAR}`` and ``${VAR:default}`` in configuration data.

        A string that is exactly one reference is converted to bool, int or
        float where the value looks like one.
        """
        if isinstance(data, dict):
            return {k: self.substitute_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [self.substitute_env_vars(item) for item in data]
        elif isinstance(data, str):
            return self._substitute_string(data)
        else:
            return data

    def _substitute_string(self, value: str) -> Any:
        full_match = ENV_VAR_PATTERN.fullmatch(value)
        if full_match:
            var_name, default = full_match.groups()
            env_value = os.environ.get(var_name, default)
            if env_value is None:
                return value
            return self._convert_value(env_value)

        def replace_match(match):
            var_name, default = match.groups()
            return os.environ.get(var_name, default if default is not None else match.group(0))

        return ENV_VAR_PATTERN.sub(replace_match, value)

    def _convert_value(self, value: str) -> Any:
        lowered = value.strip().lower()
        if lowered in TRUE_WORDS:
            return True
        if lowered in FALSE_WORDS:
            return False

        try:
            float_val = float(value)
        except ValueError:
            return value
        if float_val.is_integer() and "." not in value and "e" not in lowered:
            return int(float_val)
        return float_val

    def _load_env_file(self, config_dir: Path) -> None:
        if self._loaded_env:
            return

        candidates = [config_dir / ".env", config_dir.parent / ".env", Path.cwd() / ".env"]
        if self._env_file is not None:
            candidates.insert(0, self._env_file)

        for env_path in candidates:
            if env_path.exists():
                load_dotenv(env_path)
                self._loaded_env = True
                return


def load_config(
    path: Optional[str | Path] = None,
    env: Optional[str] = None,
    env_file: Optional[str | Path] = None,
) -> AppConfig:
    """
    Load configuration from YAML file.

    Args:
        path: Path to base configuration file (defaults only when None)
        env: Optional environment name
        env_file: Optional path to .env file

    Returns:
        Validated AppConfig instance
    """
    loader = ConfigLoader(env_file=env_file)
    return loader.load(path, env=env)
