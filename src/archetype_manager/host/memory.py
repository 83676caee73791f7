"""In-memory host implementation.

Used by the test suite and for scripting the engine without a live host.
Every write awaits ``asyncio.sleep(write_delay)`` so concurrent operations
interleave at the same points they would against a real host, and writes can
be made to fail on demand.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from archetype_manager.core.logging import get_logger

logger = get_logger(__name__)


class SimulatedWriteError(RuntimeError):
    """Raised by memory records configured to fail writes."""


@dataclass
class MemoryRecord:
    """Flag storage shared by memory characters and class instances."""

    id: str
    name: str
    write_delay: float = 0.0
    fail_flag_writes: bool = False
    flags: dict[str, dict[str, Any]] = field(default_factory=dict)

    def get_flag(self, scope: str, key: str) -> Any:
        return copy.deepcopy(self.flags.get(scope, {}).get(key))

    async def set_flag(self, scope: str, key: str, value: Any) -> None:
        await asyncio.sleep(self.write_delay)
        if self.fail_flag_writes:
            raise SimulatedWriteError(f"flag write failed: {scope}.{key}")
        self.flags.setdefault(scope, {})[key] = copy.deepcopy(value)

    async def unset_flag(self, scope: str, key: str) -> None:
        await asyncio.sleep(self.write_delay)
        if self.fail_flag_writes:
            raise SimulatedWriteError(f"flag unset failed: {scope}.{key}")
        self.flags.get(scope, {}).pop(key, None)


@dataclass
class MemoryCharacter(MemoryRecord):
    """A character record held in memory."""


@dataclass
class MemoryClassInstance(MemoryRecord):
    """A class instance record held in memory.

    Attributes:
        tag: Short class identifier (e.g. ``fighter``).
        stored_features: The persisted feature list.
        fail_feature_writes: Make ``update_features`` raise.
        feature_writes: Number of successful feature-list writes.
    """

    tag: str | None = None
    stored_features: list[dict[str, Any]] = field(default_factory=list)
    fail_feature_writes: bool = False
    feature_writes: int = 0

    @property
    def features(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self.stored_features)

    async def update_features(self, features: list[dict[str, Any]]) -> None:
        await asyncio.sleep(self.write_delay)
        if self.fail_feature_writes:
            raise SimulatedWriteError(f"feature write failed for {self.name}")
        self.stored_features = copy.deepcopy(features)
        self.feature_writes += 1


@dataclass
class MemoryResolver:
    """Resolves identifiers from a lookup table.

    Identifiers listed in ``failing`` raise; unknown identifiers resolve to
    None.
    """

    names: dict[str, str] = field(default_factory=dict)
    failing: set[str] = field(default_factory=set)

    async def resolve(self, identifier: str) -> Mapping[str, Any] | None:
        await asyncio.sleep(0)
        if identifier in self.failing:
            raise LookupError(f"cannot resolve {identifier}")
        name = self.names.get(identifier)
        return {"name": name} if name is not None else None


@dataclass
class RecordingNotifier:
    """Collects notices as ``(level, message)`` pairs."""

    notices: list[tuple[str, str]] = field(default_factory=list)

    def info(self, message: str) -> None:
        self.notices.append(("info", message))

    def warn(self, message: str) -> None:
        self.notices.append(("warn", message))

    def error(self, message: str) -> None:
        self.notices.append(("error", message))

    def messages(self, level: str) -> list[str]:
        return [message for lvl, message in self.notices if lvl == level]


class LoggingNotifier:
    """Sends notices to the structured log."""

    def info(self, message: str) -> None:
        logger.info(message, notice=True)

    def warn(self, message: str) -> None:
        logger.warning(message, notice=True)

    def error(self, message: str) -> None:
        logger.error(message, notice=True)


@dataclass
class MemoryActivityLog:
    """Activity messages kept in a list."""

    entries: list[str] = field(default_factory=list)

    async def post(self, message: str) -> None:
        await asyncio.sleep(0)
        self.entries.append(message)


__all__ = [
    "SimulatedWriteError",
    "MemoryRecord",
    "MemoryCharacter",
    "MemoryClassInstance",
    "MemoryResolver",
    "RecordingNotifier",
    "LoggingNotifier",
    "MemoryActivityLog",
]
