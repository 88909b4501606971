"""
Configuration Exceptions.

Provides custom exceptions for configuration loading.
"""

from pydantic import ValidationError as PydanticValidationError


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigFileNotFoundError(ConfigError):
    """Raised when a configuration file is not found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Configuration file not found: {path}")


class ConfigParseError(ConfigError):
    """Raised when a configuration file cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse configuration file '{path}': {reason}")


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        message = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ConfigValidationError":
        """Flatten pydantic errors into one ``field.path: message`` line each."""
        errors = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
            errors.append(f"{location}: {error.get('msg', 'invalid value')}")
        return cls(errors)
