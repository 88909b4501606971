"""
Base Configuration Model.

Frozen pydantic base with ``${VAR}`` / ``${VAR:default}`` substitution and
masking of sensitive values in ``repr``.
"""

import os
import re
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_validator

# ${VAR} or ${VAR:default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


def substitute_env_vars(value: str) -> str:
    """
    Substitute environment variables in a string.

    ``${VAR}`` becomes the value of VAR (empty if unset); ``${VAR:default}``
    falls back to ``default``.
    """

    def replace_match(match: re.Match) -> str:
        var_name, default_value = match.groups()
        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        return default_value if default_value is not None else ""

    return ENV_VAR_PATTERN.sub(replace_match, value)


def process_value(value: Any) -> Any:
    """Recursively substitute env vars in strings, dicts and lists."""
    if isinstance(value, str):
        return substitute_env_vars(value)
    elif isinstance(value, dict):
        return {k: process_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [process_value(item) for item in value]
    return value


class BaseConfig(BaseModel):
    """
    Base configuration model.

    Example:
        >>> class ProxyConfig(BaseConfig):
        ...     url: str = "${HTTPS_PROXY:}"
        ...     token: str = ""
        ...
        >>> ProxyConfig(token="${PROXY_TOKEN:abc}")
        ProxyConfig(url='', token='***')
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        validate_default=True,
        str_strip_whitespace=True,
    )

    _sensitive_fields: ClassVar[frozenset[str]] = frozenset(
        {"api_key", "api_secret", "password", "secret", "token"}
    )

    @model_validator(mode="before")
    @classmethod
    def substitute_environment_variables(cls, data: Any) -> Any:
        """Substitute environment variables in all string values."""
        if isinstance(data, dict):
            return process_value(data)
        return data

    def masked_dict(self) -> dict[str, Any]:
        """Dump with sensitive values replaced by '***'."""
        return self._mask_sensitive(self.model_dump(mode="json"))

    def _mask_sensitive(self, data: dict[str, Any]) -> dict[str, Any]:
        result = {}
        for key, value in data.items():
            if self._is_sensitive_field(key) and value:
                result[key] = "***"
            elif isinstance(value, dict):
                result[key] = self._mask_sensitive(value)
            else:
                result[key] = value
        return result

    def _is_sensitive_field(self, field_name: str) -> bool:
        field_lower = field_name.lower()
        return any(sensitive in field_lower for sensitive in self._sensitive_fields)

    def __repr__(self) -> str:
        masked = self.masked_dict()
        fields = ", ".join(f"{k}={v!r}" for k, v in masked.items())
        return f"{self.__class__.__name__}({fields})"

    def __str__(self) -> str:
        return self.__repr__()
