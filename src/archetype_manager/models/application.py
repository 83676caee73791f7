"""Per-class-instance bookkeeping for applied archetypes.

The whole record is persisted as a single flag on the class instance, so
every transition (first apply, stacking, partial removal, full clear) is a
single write and observers never see a backup without slugs or slugs
without snapshots.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from archetype_manager.models.features import ArchetypeDefinition, DiffEntry


class ApplicationLogEntry(BaseModel):
    """The diff an archetype contributed when it was (re)applied."""

    model_config = ConfigDict(frozen=True)

    slug: str = Field(min_length=1)
    diff: tuple[DiffEntry, ...] = Field(default=())
    split_class: str | None = Field(
        default=None, description="Class key condensed series were split under"
    )


class ApplicationRecord(BaseModel):
    """Archetype tracking state for one class instance.

    Attributes:
        archetype_slugs: Applied slugs, in application order.
        last_applied_at: Time of the most recent successful apply.
        backup: Feature list captured before the first archetype, exactly as
            the host stored it.
        snapshots: Archetype definitions captured at apply time, by slug.
        log: Ordered ``{slug, diff}`` entries used to replay the stack.
    """

    model_config = ConfigDict(frozen=True)

    archetype_slugs: tuple[str, ...] = Field(default=())
    last_applied_at: datetime | None = None
    backup: tuple[dict[str, Any], ...] | None = None
    snapshots: dict[str, ArchetypeDefinition] = Field(default_factory=dict)
    log: tuple[ApplicationLogEntry, ...] = Field(default=())

    @model_validator(mode="after")
    def check_invariants(self) -> "ApplicationRecord":
        """Backup exists iff slugs exist, and slugs match snapshot keys."""
        if bool(self.archetype_slugs) != (self.backup is not None):
            raise ValueError("backup must exist exactly when archetypes are applied")
        if list(self.archetype_slugs) != list(self.snapshots):
            raise ValueError("archetype_slugs and snapshots must list the same slugs in order")
        if len(set(self.archetype_slugs)) != len(self.archetype_slugs):
            raise ValueError("archetype_slugs must not repeat")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.archetype_slugs

    def has(self, slug: str) -> bool:
        return slug in self.archetype_slugs

    def definitions(self) -> list[ArchetypeDefinition]:
        """Snapshots in application order."""
        return [self.snapshots[slug] for slug in self.archetype_slugs]

    def with_applied(
        self,
        definition: ArchetypeDefinition,
        diff: list[DiffEntry],
        backup: list[dict[str, Any]],
        *,
        applied_at: datetime | None = None,
        split_class: str | None = None,
    ) -> "ApplicationRecord":
        """Return a new record with ``definition`` appended to the stack.

        ``backup`` is only kept when this is the first archetype.
        ``split_class`` records that the diff was computed with condensed
        series split into tiers, so a replay can do the same.
        """
        snapshots = dict(self.snapshots)
        snapshots[definition.slug] = definition
        return ApplicationRecord(
            archetype_slugs=(*self.archetype_slugs, definition.slug),
            last_applied_at=applied_at or datetime.now(timezone.utc),
            backup=self.backup if self.backup is not None else tuple(copy.deepcopy(backup)),
            snapshots=snapshots,
            log=(
                *self.log,
                ApplicationLogEntry(slug=definition.slug, diff=tuple(diff), split_class=split_class),
            ),
        )

    def without(
        self, slug: str, log: list[ApplicationLogEntry] | None = None
    ) -> "ApplicationRecord":
        """Return a new record with ``slug`` dropped.

        Dropping the last slug yields an empty record. ``log`` replaces the
        replay log when the remaining stack was re-derived.
        """
        remaining = tuple(s for s in self.archetype_slugs if s != slug)
        if not remaining:
            return ApplicationRecord()
        return ApplicationRecord(
            archetype_slugs=remaining,
            last_applied_at=self.last_applied_at,
            backup=self.backup,
            snapshots={s: self.snapshots[s] for s in remaining},
            log=tuple(log) if log is not None else tuple(e for e in self.log if e.slug != slug),
        )

    def backup_list(self) -> list[dict[str, Any]]:
        """Deep copy of the backup as a mutable list."""
        return copy.deepcopy(list(self.backup or ()))

    def to_flag(self) -> dict[str, Any] | None:
        """Serialize for storage; an empty record serializes to None."""
        if self.is_empty:
            return None
        return self.model_dump(mode="json")

    @classmethod
    def from_flag(cls, data: dict[str, Any] | None) -> "ApplicationRecord":
        """Load a record from a stored flag value."""
        if not data:
            return cls()
        return cls.model_validate(data)


__all__ = [
    "ApplicationLogEntry",
    "ApplicationRecord",
]
