from __future__ import annotations

import structlog
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqlazure_resilience.logging import configure_structlog, get_log_level_value

ENV_PREFIX = "SQLAZURE_"


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class ClassifierSettings(BaseSettings):
    """Settings for the transient error classifier.

    ``additional_error_numbers`` is read from the environment as a JSON list,
    e.g. ``SQLAZURE_ADDITIONAL_ERROR_NUMBERS='[4060, 4221]'``.
    """

    model_config = prefixed_settings_config(ENV_PREFIX)

    additional_error_numbers: frozenset[int] = frozenset()
    timeout_is_transient: bool = True
    log_level: str = "INFO"

    @field_validator("additional_error_numbers")
    @classmethod
    def _validate_additional_error_numbers(
        cls, value: frozenset[int]
    ) -> frozenset[int]:
        if any(number <= 0 for number in value):
            raise ValueError("additional_error_numbers must all be > 0")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        get_log_level_value(value)
        return value.strip().upper()

    def configure_logging(self) -> structlog.stdlib.BoundLogger:
        """Configure structlog at ``log_level`` and return the root logger."""
        return configure_structlog(log_level=self.log_level)
