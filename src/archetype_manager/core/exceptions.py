"""Custom exception hierarchy for the Archetype Manager engine.

All exceptions inherit from ArchetypeManagerError so that the public
operation boundary (apply, remove, restore) can catch a single base class
and turn any failure into a ``False`` result plus a notice.

Example:
    >>> from archetype_manager.core.exceptions import PersistenceFailure
    >>> raise PersistenceFailure("Feature write failed", operation="apply")
"""

from __future__ import annotations

from typing import Any


class ArchetypeManagerError(Exception):
    """Base exception for all Archetype Manager errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        """Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional details.

        Returns:
            Formatted error message including any provided details.
        """
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def __repr__(self) -> str:
        """Return a detailed string representation of the exception."""
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationError(ArchetypeManagerError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error with the offending key.

        Args:
            message: Human-readable error description.
            config_key: The configuration key that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if config_key:
            combined_details["config_key"] = config_key
        super().__init__(message, details=combined_details)


# =============================================================================
# Classification Exceptions
# =============================================================================


class ClassificationError(ArchetypeManagerError):
    """Base exception for problems turning feature text into edit intents.

    Classification problems are non-fatal. They are recorded on the parsed
    feature (``needs_user_input``) and logged rather than raised past the
    classifier.
    """

    def __init__(
        self,
        message: str,
        *,
        feature_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize classification error with feature context.

        Args:
            message: Human-readable error description.
            feature_name: Name of the archetype feature being classified.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if feature_name:
            combined_details["feature_name"] = feature_name
        super().__init__(message, details=combined_details)


class ParseAmbiguity(ClassificationError):
    """A feature description matched no known pattern and no level tag."""


class MatchFailure(ClassificationError):
    """A replacement or modification target has no matching base feature."""

    def __init__(
        self,
        message: str,
        *,
        feature_name: str | None = None,
        target: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize match failure with the unmatched target.

        Args:
            message: Human-readable error description.
            feature_name: Name of the archetype feature.
            target: The normalized target that failed to match.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if target:
            combined_details["target"] = target
        super().__init__(message, feature_name=feature_name, details=combined_details)


# =============================================================================
# Application Exceptions
# =============================================================================


class ApplicationError(ArchetypeManagerError):
    """Base exception for apply/remove/restore failures."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        slug: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application error with operation context.

        Args:
            message: Human-readable error description.
            operation: The engine operation (apply, remove, restore).
            slug: Archetype slug involved, if any.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if operation:
            combined_details["operation"] = operation
        if slug:
            combined_details["slug"] = slug
        super().__init__(message, details=combined_details)


class ConcurrencyRejection(ApplicationError):
    """An operation of the same kind is already in flight for this key."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize concurrency rejection with the busy guard key.

        Args:
            message: Human-readable error description.
            operation: The guarded operation.
            key: The guard key that is currently held.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if key:
            combined_details["key"] = key
        super().__init__(message, operation=operation, details=combined_details)


class PersistenceFailure(ApplicationError):
    """A host write (features or flags) raised."""


class ValidationFailure(ApplicationError):
    """A prospective feature list failed structural validation.

    Attributes:
        errors: Every violation found, in record order.
    """

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        operation: str | None = None,
        slug: str | None = None,
    ) -> None:
        """Initialize validation failure with collected errors.

        Args:
            message: Human-readable error description.
            errors: Human-readable violation messages.
            operation: The engine operation.
            slug: Archetype slug involved, if any.
        """
        self.errors = list(errors or [])
        super().__init__(
            message,
            operation=operation,
            slug=slug,
            details={"error_count": len(self.errors)},
        )


# =============================================================================
# Storage Exceptions
# =============================================================================


class StoreError(ArchetypeManagerError):
    """Base exception for archetype repository errors."""

    def __init__(
        self,
        message: str,
        *,
        section: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize store error with section context.

        Args:
            message: Human-readable error description.
            section: Repository section involved.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if section:
            combined_details["section"] = section
        super().__init__(message, details=combined_details)


class InvalidSectionError(StoreError):
    """The requested repository section does not exist."""


class PermissionDeniedError(StoreError):
    """The caller's role may not write to the requested section."""


__all__ = [
    "ArchetypeManagerError",
    "ConfigurationError",
    "ClassificationError",
    "ParseAmbiguity",
    "MatchFailure",
    "ApplicationError",
    "ConcurrencyRejection",
    "PersistenceFailure",
    "ValidationFailure",
    "StoreError",
    "InvalidSectionError",
    "PermissionDeniedError",
]
