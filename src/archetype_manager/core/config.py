"""Configuration management for the Archetype Manager engine.

Centralized configuration using pydantic-settings, supporting environment
variables, .env files, and runtime overrides.

Example:
    >>> from archetype_manager.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.guard_scope
    'instance'

Environment Variables:
    ARCHETYPE_MANAGER_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    ARCHETYPE_MANAGER_GUARD_SCOPE: Operation guard scope ('instance' or 'process')
    ARCHETYPE_MANAGER_ENFORCE_VALIDATION: Block writes that fail validation
    ARCHETYPE_MANAGER_STORE_PATH: Directory holding repository section files
    ARCHETYPE_MANAGER_DATASET_PATH: Bulk archetype dataset (JSON)
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from archetype_manager.core.constants import DEFAULT_FLAG_SCOPE
from archetype_manager.core.exceptions import ConfigurationError


class StorageSettings(BaseSettings):
    """Configuration for the archetype repository.

    Attributes:
        store_path: Directory holding one JSON file per repository section.
        dataset_path: Bulk dataset of archetypes and their features.
    """

    model_config = SettingsConfigDict(
        env_prefix="ARCHETYPE_MANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    store_path: Path = Field(
        default=Path("data/archetype-db"),
        description="Directory for repository section files",
    )
    dataset_path: Path = Field(
        default=Path("data/archetypes.json"),
        description="Bulk archetype dataset",
    )

    @field_validator("store_path", "dataset_path", mode="after")
    @classmethod
    def expand_user(cls, value: Path) -> Path:
        """Expand ``~`` in configured paths."""
        return value.expanduser()


class Settings(BaseSettings):
    """Main engine settings.

    Attributes:
        app_name: Application name.
        debug: Enable debug mode.
        log_level: Application logging level.
        json_logs: Emit JSON log lines instead of console output.
        flag_scope: Scope under which engine flags are stored on host records.
        guard_scope: Whether apply/remove guards are keyed per class instance
            or shared by the whole process.
        enforce_validation: Refuse to persist feature lists that fail
            ``validate_final_state``.
        show_parse_warnings: Log a warning for each feature that needs
            manual correction after parsing.
        storage: Repository settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="ARCHETYPE_MANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = Field(
        default="Archetype Manager",
        description="Application name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(
        default=False,
        description="Emit JSON logs",
    )
    flag_scope: str = Field(
        default=DEFAULT_FLAG_SCOPE,
        min_length=1,
        description="Scope for flags written to host records",
    )
    guard_scope: Literal["instance", "process"] = Field(
        default="instance",
        description="Key apply/remove guards per class instance or per process",
    )
    enforce_validation: bool = Field(
        default=True,
        description="Block persistence of feature lists that fail validation",
    )
    show_parse_warnings: bool = Field(
        default=True,
        description="Warn about features that need manual correction",
    )

    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The application Settings instance.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    try:
        return Settings()
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load application settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing a reload on next access."""
    get_settings.cache_clear()


__all__ = [
    "Settings",
    "StorageSettings",
    "get_settings",
    "clear_settings_cache",
]
