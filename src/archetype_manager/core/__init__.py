"""Core module providing configuration, logging, and base exceptions.

Exports:
    Exceptions:
        ArchetypeManagerError: Base exception for all engine errors.
        ConfigurationError, ClassificationError, ParseAmbiguity,
        MatchFailure, ApplicationError, ConcurrencyRejection,
        PersistenceFailure, ValidationFailure, StoreError,
        InvalidSectionError, PermissionDeniedError.

    Configuration:
        Settings: Main engine settings class.
        get_settings: Get the settings singleton.
        clear_settings_cache: Force settings reload.

    Logging:
        configure_logging: Set up application logging.
        get_logger: Get a configured logger instance.
        bind_context: Add context to log entries.
        clear_context: Clear logging context.
        log_operation: Bind operation context for a block.
"""

from __future__ import annotations

from archetype_manager.core.config import (
    Settings,
    StorageSettings,
    clear_settings_cache,
    get_settings,
)
from archetype_manager.core.exceptions import (
    ApplicationError,
    ArchetypeManagerError,
    ClassificationError,
    ConcurrencyRejection,
    ConfigurationError,
    InvalidSectionError,
    MatchFailure,
    ParseAmbiguity,
    PermissionDeniedError,
    PersistenceFailure,
    StoreError,
    ValidationFailure,
)
from archetype_manager.core.logging import (
    bind_context,
    clear_context,
    configure_from_settings,
    configure_logging,
    get_logger,
    log_operation,
)


__all__ = [
    # Base exception
    "ArchetypeManagerError",
    # Configuration exceptions
    "ConfigurationError",
    # Classification exceptions
    "ClassificationError",
    "ParseAmbiguity",
    "MatchFailure",
    # Application exceptions
    "ApplicationError",
    "ConcurrencyRejection",
    "PersistenceFailure",
    "ValidationFailure",
    # Storage exceptions
    "StoreError",
    "InvalidSectionError",
    "PermissionDeniedError",
    # Configuration
    "Settings",
    "StorageSettings",
    "get_settings",
    "clear_settings_cache",
    # Logging
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "clear_context",
    "log_operation",
]
