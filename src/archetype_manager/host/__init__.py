"""Host integration: protocols and an in-memory implementation."""

from __future__ import annotations

from archetype_manager.host.interfaces import (
    ActivityLog,
    CharacterRecord,
    ClassInstanceRecord,
    FeatureResolver,
    FlagStore,
    Notifier,
)
from archetype_manager.host.memory import (
    LoggingNotifier,
    MemoryActivityLog,
    MemoryCharacter,
    MemoryClassInstance,
    MemoryResolver,
    RecordingNotifier,
    SimulatedWriteError,
)


__all__ = [
    # Protocols
    "FlagStore",
    "CharacterRecord",
    "ClassInstanceRecord",
    "FeatureResolver",
    "Notifier",
    "ActivityLog",
    # Memory implementation
    "MemoryCharacter",
    "MemoryClassInstance",
    "MemoryResolver",
    "RecordingNotifier",
    "LoggingNotifier",
    "MemoryActivityLog",
    "SimulatedWriteError",
]
