"""Protocols for the host the engine runs inside.

The engine needs very little from its host: scoped flags on characters and
class instances, a single-write replacement of a class instance's feature
list, an identifier resolver, and somewhere to send notices and activity
messages. Any object with these methods works; ``host.memory`` provides
in-memory implementations.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class FlagStore(Protocol):
    """Scoped attribute storage on a host record."""

    def get_flag(self, scope: str, key: str) -> Any: ...

    async def set_flag(self, scope: str, key: str, value: Any) -> None: ...

    async def unset_flag(self, scope: str, key: str) -> None: ...


@runtime_checkable
class CharacterRecord(FlagStore, Protocol):
    """A character owning one or more class instances."""

    id: str
    name: str


@runtime_checkable
class ClassInstanceRecord(FlagStore, Protocol):
    """One character's levels in one class.

    ``features`` returns the stored feature list as plain mappings
    (``{"id", "level", "name", ...}``) in stored order.
    """

    id: str
    name: str
    tag: str | None

    @property
    def features(self) -> list[dict[str, Any]]: ...

    async def update_features(self, features: list[dict[str, Any]]) -> None: ...


@runtime_checkable
class FeatureResolver(Protocol):
    """Resolves an opaque feature identifier to ``{"name": ...}``."""

    async def resolve(self, identifier: str) -> Mapping[str, Any] | None: ...


@runtime_checkable
class Notifier(Protocol):
    """User-facing notices."""

    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


@runtime_checkable
class ActivityLog(Protocol):
    """Human-readable activity messages (a chat log, journal, etc.)."""

    async def post(self, message: str) -> None: ...


__all__ = [
    "FlagStore",
    "CharacterRecord",
    "ClassInstanceRecord",
    "FeatureResolver",
    "Notifier",
    "ActivityLog",
]
