"""Storage module for curated archetype data.

Provides a section-keyed repository for:
- Fixes overriding automatically parsed archetypes
- Archetypes missing from the bulk dataset
- Custom (homebrew) archetypes
"""

from __future__ import annotations

from archetype_manager.core.config import Settings, get_settings
from archetype_manager.storage.repository import (
    ArchetypeRepository,
    JsonFileRepository,
    Role,
)


def get_repository(settings: Settings | None = None, role: Role = Role.PLAYER) -> JsonFileRepository:
    """Build a file-backed repository from settings.

    Args:
        settings: Settings to read storage paths from. Defaults to the
            cached application settings.
        role: Caller role used for write checks.

    Returns:
        A JsonFileRepository with its store directory created.
    """
    storage = (settings or get_settings()).storage
    repository = JsonFileRepository(storage.store_path, storage.dataset_path, role=role)
    repository.ensure_database()
    return repository


__all__ = [
    "ArchetypeRepository",
    "JsonFileRepository",
    "Role",
    "get_repository",
]
