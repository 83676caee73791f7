"""Section-keyed archetype repository.

Curated archetype data lives in three sections:

- ``fixes``: corrections overriding bad automatically parsed data
- ``missing``: archetypes absent from the bulk dataset
- ``custom``: homebrew archetypes

Each section is a JSON object keyed by archetype slug. Lookups check the
sections in that priority order. Only the GM role may write ``fixes`` and
``missing``; every role may read everything and write ``custom``.

The bulk dataset (``{"archetypes": [...], "features": [...]}``) is read-only
and loaded separately.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from enum import StrEnum
from pathlib import Path
from typing import Any

from archetype_manager.core.constants import PRIVILEGED_SECTIONS, SECTIONS
from archetype_manager.core.exceptions import InvalidSectionError, PermissionDeniedError
from archetype_manager.core.logging import get_logger

logger = get_logger(__name__)


class Role(StrEnum):
    """Caller role for repository writes."""

    GM = "gm"
    PLAYER = "player"


# =============================================================================
# Repository Interface
# =============================================================================


class ArchetypeRepository(ABC):
    """Role-checked access to curated archetype sections.

    Subclasses provide raw storage through ``_load_raw``/``_store_raw`` and
    the bulk dataset through ``_load_dataset``; parsing, corruption recovery,
    and permission checks live here.
    """

    def __init__(self, role: Role = Role.PLAYER) -> None:
        self.role = Role(role)

    # -------------------------------------------------------------------------
    # Storage hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def _load_raw(self, section: str) -> str | None:
        """Return the stored text of a section, or None if absent."""

    @abstractmethod
    def _store_raw(self, section: str, content: str) -> None:
        """Persist the text of a section."""

    @abstractmethod
    def _load_dataset(self) -> dict[str, Any]:
        """Return the bulk dataset mapping."""

    # -------------------------------------------------------------------------
    # Sections
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_section(section: str) -> None:
        if section not in SECTIONS:
            raise InvalidSectionError(
                f"Invalid section: {section}. Must be one of: {', '.join(SECTIONS)}",
                section=section,
            )

    def can_write(self, section: str) -> bool:
        """Whether the current role may write ``section``."""
        self._check_section(section)
        return section not in PRIVILEGED_SECTIONS or self.role is Role.GM

    def read_section(self, section: str) -> dict[str, Any]:
        """Read a section as a mapping.

        Content that is not valid JSON, or is JSON but not an object, is
        reset to ``{}`` in storage and an empty mapping returned.

        Raises:
            InvalidSectionError: If ``section`` is not a known section.
        """
        self._check_section(section)
        raw = self._load_raw(section)
        if raw is None or not raw.strip():
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Corrupted section reset", section=section, error=str(exc))
            self._store_raw(section, "{}")
            return {}
        if not isinstance(parsed, dict):
            logger.warning(
                "Unexpected JSON type in section, reset",
                section=section,
                found=type(parsed).__name__,
            )
            self._store_raw(section, "{}")
            return {}
        return parsed

    def write_section(self, section: str, data: dict[str, Any]) -> None:
        """Replace a section's content.

        Raises:
            InvalidSectionError: If ``section`` is not a known section.
            PermissionDeniedError: If the role may not write ``section``.
        """
        if not self.can_write(section):
            raise PermissionDeniedError(
                f"Only the GM can modify the {section} section",
                section=section,
                details={"role": self.role.value},
            )
        self._store_raw(section, json.dumps(data, indent=2))
        logger.debug("Section written", section=section, entries=len(data))

    # -------------------------------------------------------------------------
    # Archetype entries
    # -------------------------------------------------------------------------

    def get_archetype(self, slug: str) -> dict[str, Any] | None:
        """Find an archetype entry, checking fixes, missing, then custom.

        Returns:
            A copy of the entry with ``_section`` naming where it was found,
            or None.
        """
        for section in SECTIONS:
            entry = self.read_section(section).get(slug)
            if entry:
                return {**entry, "_section": section}
        return None

    def set_archetype(self, section: str, slug: str, entry: dict[str, Any]) -> None:
        """Store ``entry`` under ``slug`` in ``section``."""
        data = self.read_section(section)
        data[slug] = {k: v for k, v in entry.items() if k != "_section"}
        self.write_section(section, data)
        logger.info("Archetype entry saved", section=section, slug=slug)

    def delete_archetype(self, section: str, slug: str) -> bool:
        """Delete ``slug`` from ``section``.

        Returns:
            True if an entry was removed.
        """
        data = self.read_section(section)
        if slug not in data:
            return False
        del data[slug]
        self.write_section(section, data)
        logger.info("Archetype entry deleted", section=section, slug=slug)
        return True

    def feature_overrides(self, slug: str) -> dict[str, Any]:
        """Curated per-feature overrides for an archetype, keyed by feature slug."""
        entry = self.get_archetype(slug)
        if not entry:
            return {}
        return dict(entry.get("features") or {})

    # -------------------------------------------------------------------------
    # Bulk dataset
    # -------------------------------------------------------------------------

    def load_archetype_list(self) -> list[dict[str, Any]]:
        """Archetype documents from the bulk dataset."""
        archetypes = list(self._load_dataset().get("archetypes") or [])
        logger.info("Loaded archetype list", count=len(archetypes))
        return archetypes

    def load_archetype_features(self) -> list[dict[str, Any]]:
        """Archetype feature documents from the bulk dataset."""
        features = list(self._load_dataset().get("features") or [])
        logger.info("Loaded archetype features", count=len(features))
        return features


# =============================================================================
# JSON File Implementation
# =============================================================================


class JsonFileRepository(ArchetypeRepository):
    """Repository storing one ``<section>.json`` file per section.

    Example:
        >>> repo = JsonFileRepository("data/archetype-db", "data/archetypes.json", role=Role.GM)
        >>> repo.set_archetype("fixes", "two-handed-fighter", {"features": {...}})
    """

    def __init__(
        self,
        store_path: str | Path,
        dataset_path: str | Path | None = None,
        role: Role = Role.PLAYER,
    ) -> None:
        """Initialize the repository.

        Args:
            store_path: Directory holding the section files.
            dataset_path: Bulk dataset JSON file; None for curated-only mode.
            role: Caller role used for write checks.
        """
        super().__init__(role)
        self.store_path = Path(store_path)
        self.dataset_path = Path(dataset_path) if dataset_path is not None else None

    def _section_file(self, section: str) -> Path:
        return self.store_path / f"{section}.json"

    def ensure_database(self) -> None:
        """Create the store directory and any missing section files."""
        self.store_path.mkdir(parents=True, exist_ok=True)
        for section in SECTIONS:
            path = self._section_file(section)
            if not path.exists():
                path.write_text("{}", encoding="utf-8")
                logger.info("Created section file", section=section, path=str(path))

    def _load_raw(self, section: str) -> str | None:
        path = self._section_file(section)
        if not path.exists():
            self.ensure_database()
            return None
        return path.read_text(encoding="utf-8")

    def _store_raw(self, section: str, content: str) -> None:
        self.store_path.mkdir(parents=True, exist_ok=True)
        self._section_file(section).write_text(content, encoding="utf-8")

    def _load_dataset(self) -> dict[str, Any]:
        if self.dataset_path is None or not self.dataset_path.exists():
            logger.warning("Archetype dataset not available", path=str(self.dataset_path))
            return {}
        try:
            data = json.loads(self.dataset_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.error("Archetype dataset unreadable", path=str(self.dataset_path), error=str(exc))
            return {}
        return data if isinstance(data, dict) else {}


__all__ = [
    "Role",
    "ArchetypeRepository",
    "JsonFileRepository",
]
