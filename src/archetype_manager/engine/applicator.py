"""Applying and removing archetypes on live class instances.

The ApplicationEngine turns a computed diff into a persisted feature list and
keeps the bookkeeping needed to undo it: a backup of the feature list taken
before the first archetype, a snapshot of every applied definition, and an
ordered ``{slug, diff}`` log. Removing one archetype from a stack rebuilds
the list from the backup by replaying the remaining snapshots.

Every public coroutine catches failures at its boundary, reports them through
the notifier and the log, and returns a falsy result instead of raising.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from archetype_manager.core.config import Settings, get_settings
from archetype_manager.core.constants import APPLICATION_FLAG, CHARACTER_ARCHETYPES_FLAG
from archetype_manager.core.exceptions import (
    ArchetypeManagerError,
    ConcurrencyRejection,
    PersistenceFailure,
    ValidationFailure,
)
from archetype_manager.core.logging import get_logger, log_operation
from archetype_manager.engine.classifier import slugify
from archetype_manager.engine.diff import generate_diff, validate_final_state
from archetype_manager.engine.guards import OperationGuard
from archetype_manager.host.memory import LoggingNotifier
from archetype_manager.models.application import ApplicationLogEntry, ApplicationRecord
from archetype_manager.models.features import (
    ArchetypeDefinition,
    DiffEntry,
    DiffStatus,
    FeatureClassification,
    FeatureRecord,
)


if TYPE_CHECKING:
    from archetype_manager.host.interfaces import (
        ActivityLog,
        CharacterRecord,
        ClassInstanceRecord,
        FlagStore,
        Notifier,
    )

logger = get_logger(__name__)


@dataclass
class RestoreResult:
    """Outcome of an emergency restore.

    Attributes:
        success: Whether the backup was written back.
        message: Human-readable outcome.
        restored_count: Number of features restored.
    """

    success: bool
    message: str
    restored_count: int = 0


# =============================================================================
# Feature List Construction
# =============================================================================


def _matches(entry: Mapping[str, Any], record: FeatureRecord) -> bool:
    return (entry.get("id") or entry.get("uuid")) == record.id and entry.get("level") == record.level


def _entry_id(entry: Mapping[str, Any]) -> Any:
    return entry.get("id") or entry.get("uuid")


def condensed_ids(current: Sequence[Mapping[str, Any]], diff: Sequence[DiffEntry]) -> set[str]:
    """Identifiers of condensed entries the diff split into tiers.

    An identifier counts as condensed when the current list holds it but the
    diff refers to tier records of that identifier the list does not contain.
    """
    present = {_entry_id(entry) for entry in current}
    condensed: set[str] = set()
    for entry in diff:
        original = entry.original
        if original is None or original.id not in present:
            continue
        if not any(_matches(item, original) for item in current):
            condensed.add(original.id)
    return condensed


def build_feature_list(
    current: Sequence[Mapping[str, Any]],
    diff: Sequence[DiffEntry],
) -> list[dict[str, Any]]:
    """Apply a diff to a host feature list.

    Condensed entries the diff split into tiers are first replaced in place
    by their tier records. Each removed original is then dropped (by id and
    level, falling back to id), and one entry per added or modified line is
    appended in diff order. The result is not re-sorted.

    Args:
        current: Feature mappings as the host stores them.
        diff: Output of ``generate_diff`` for ``current``.

    Returns:
        A new list; ``current`` is not mutated.
    """
    features = [dict(entry) for entry in copy.deepcopy(list(current))]

    for feature_id in condensed_ids(features, diff):
        tiers = [e.original for e in diff if e.original is not None and e.original.id == feature_id]
        position = next(i for i, entry in enumerate(features) if _entry_id(entry) == feature_id)
        condensed = features.pop(position)
        features[position:position] = [{**condensed, **tier.to_mapping()} for tier in tiers]

    for entry in diff:
        if entry.status is not DiffStatus.REMOVED or entry.original is None:
            continue
        index = next((i for i, item in enumerate(features) if _matches(item, entry.original)), None)
        if index is None:
            index = next(
                (i for i, item in enumerate(features) if _entry_id(item) == entry.original.id),
                None,
            )
        if index is not None:
            del features[index]

    for entry in diff:
        if entry.status not in (DiffStatus.ADDED, DiffStatus.MODIFIED):
            continue
        feature = entry.archetype_feature
        if feature is None:
            continue
        features.append({"id": feature.source_id, "level": entry.level, "name": feature.name})

    return features


def records_of(features: Sequence[Mapping[str, Any]]) -> list[FeatureRecord]:
    """Validate host mappings into FeatureRecords."""
    return [FeatureRecord.from_mapping(dict(entry)) for entry in features]


# =============================================================================
# Application Engine
# =============================================================================


class ApplicationEngine:
    """Apply, stack, and remove archetypes on class instances.

    Collaborators are injected so hosts and tests can substitute their own.
    Apply and remove use separate guards keyed by class instance id.

    Example:
        >>> engine = ApplicationEngine(notifier=notifier, activity_log=chat)
        >>> await engine.apply(character, fighter, definition, diff)
        True
    """

    def __init__(
        self,
        *,
        notifier: Notifier | None = None,
        activity_log: ActivityLog | None = None,
        settings: Settings | None = None,
        apply_guard: OperationGuard | None = None,
        remove_guard: OperationGuard | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            notifier: Receives user-facing notices. Defaults to the log.
            activity_log: Receives activity messages; skipped when None.
            settings: Engine settings. Defaults to ``get_settings()``.
            apply_guard: Guard for apply. Built from settings when None.
            remove_guard: Guard for remove and restore.
            clock: Returns the current time for ``last_applied_at``.
        """
        self.settings = settings or get_settings()
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.activity_log = activity_log
        self.apply_guard = apply_guard or OperationGuard("apply", scope=self.settings.guard_scope)
        self.remove_guard = remove_guard or OperationGuard("remove", scope=self.settings.guard_scope)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # -------------------------------------------------------------------------
    # Bookkeeping access
    # -------------------------------------------------------------------------

    @property
    def scope(self) -> str:
        return self.settings.flag_scope

    def get_record(self, class_instance: ClassInstanceRecord) -> ApplicationRecord:
        """Load the application record stored on a class instance."""
        return ApplicationRecord.from_flag(class_instance.get_flag(self.scope, APPLICATION_FLAG))

    def applied_definitions(self, class_instance: ClassInstanceRecord) -> list[ArchetypeDefinition]:
        """Snapshots of the applied archetypes, in application order."""
        return self.get_record(class_instance).definitions()

    def character_map(self, character: CharacterRecord) -> dict[str, list[str]]:
        """The character-level ``tag -> slugs`` mapping."""
        stored = character.get_flag(self.scope, CHARACTER_ARCHETYPES_FLAG) or {}
        return {tag: list(slugs) for tag, slugs in stored.items()}

    @staticmethod
    def class_tag(class_instance: ClassInstanceRecord) -> str:
        return class_instance.tag or slugify(class_instance.name)

    def _class_matches(self, definition: ArchetypeDefinition, class_instance: ClassInstanceRecord) -> bool:
        if not definition.class_key:
            return True
        wanted = definition.class_key.strip().lower()
        accepted = {self.class_tag(class_instance).lower(), class_instance.name.strip().lower()}
        return wanted in accepted or slugify(wanted) in accepted

    # -------------------------------------------------------------------------
    # Apply
    # -------------------------------------------------------------------------

    async def apply(
        self,
        character: CharacterRecord,
        class_instance: ClassInstanceRecord,
        definition: ArchetypeDefinition,
        diff: Sequence[DiffEntry] | None = None,
    ) -> bool:
        """Apply an archetype to a class instance.

        Args:
            character: Owner of the class instance.
            class_instance: Instance whose feature list changes.
            definition: Classified archetype.
            diff: Diff computed against the instance's current features. When
                None it is generated here, splitting condensed series.

        Returns:
            True when the feature list and bookkeeping were persisted.
        """
        try:
            with log_operation("apply", slug=definition.slug, class_instance=class_instance.id):
                async with self.apply_guard.hold(class_instance.id):
                    return await self._apply(character, class_instance, definition, diff)
        except ConcurrencyRejection:
            self.notifier.warn("Archetype application already in progress")
            return False
        except ValidationFailure as exc:
            logger.error("Archetype validation failed", slug=definition.slug, errors=exc.errors)
            self.notifier.error(f"Cannot apply {definition.name}: {'; '.join(exc.errors)}")
            return False
        except ArchetypeManagerError as exc:
            logger.error("Archetype apply failed", slug=definition.slug, error=str(exc))
            self.notifier.error(f"Failed to apply {definition.name}: {exc.message}")
            return False
        except Exception as exc:
            logger.exception("Unexpected error applying archetype", slug=definition.slug)
            self.notifier.error(f"Failed to apply {definition.name}: {exc}")
            return False

    async def _apply(
        self,
        character: CharacterRecord,
        class_instance: ClassInstanceRecord,
        definition: ArchetypeDefinition,
        diff: Sequence[DiffEntry] | None,
    ) -> bool:
        record = self.get_record(class_instance)

        if record.has(definition.slug):
            self.notifier.warn(f"{definition.name} is already applied to {class_instance.name}")
            return False
        if not self._class_matches(definition, class_instance):
            self.notifier.error(
                f"{definition.name} is a {definition.class_key} archetype, "
                f"not {class_instance.name}"
            )
            return False

        current = class_instance.features
        backup = current if record.backup is None else record.backup_list()
        if diff is None:
            diff = generate_diff(
                records_of(current),
                definition,
                class_key=definition.class_key or self.class_tag(class_instance),
            )
        diff = list(diff)

        split_class = None
        if condensed_ids(current, diff):
            split_class = definition.class_key or self.class_tag(class_instance)

        features = build_feature_list(current, diff)
        self._check(features, operation="apply", slug=definition.slug)

        new_record = record.with_applied(
            definition,
            diff,
            backup,
            applied_at=self._clock(),
            split_class=split_class,
        )
        class_map = self.character_map(character)
        tag = self.class_tag(class_instance)
        class_map[tag] = [*class_map.get(tag, []), definition.slug]

        await self._commit(
            character,
            class_instance,
            features,
            new_record,
            class_map,
            operation="apply",
            slug=definition.slug,
        )

        await self._report_success(
            "Archetype applied",
            f"Applied {definition.name} to {class_instance.name}",
            activity=self._apply_message(character, class_instance, definition, diff),
            slug=definition.slug,
            class_instance=class_instance.id,
            slugs=list(new_record.archetype_slugs),
            feature_count=len(features),
        )
        return True

    def _check(self, features: list[dict[str, Any]], *, operation: str, slug: str) -> None:
        report = validate_final_state(features)
        if report.valid:
            return
        if self.settings.enforce_validation:
            raise ValidationFailure(
                "Feature list failed validation",
                errors=report.errors,
                operation=operation,
                slug=slug,
            )
        logger.warning("Persisting invalid feature list", slug=slug, errors=report.errors)

    # -------------------------------------------------------------------------
    # Remove
    # -------------------------------------------------------------------------

    async def remove(
        self,
        character: CharacterRecord,
        class_instance: ClassInstanceRecord,
        slug: str,
    ) -> bool:
        """Remove one archetype from a class instance.

        Removing the only archetype restores the backup verbatim. Removing one
        of several rebuilds the list from the backup with the rest re-applied
        in their original order.

        Returns:
            True when the removal was persisted.
        """
        try:
            with log_operation("remove", slug=slug, class_instance=class_instance.id):
                async with self.remove_guard.hold(class_instance.id):
                    return await self._remove(character, class_instance, slug)
        except ConcurrencyRejection:
            self.notifier.warn("Archetype removal already in progress")
            return False
        except ValidationFailure as exc:
            logger.error("Rebuilt feature list invalid", slug=slug, errors=exc.errors)
            self.notifier.error(f"Cannot remove {slug}: {'; '.join(exc.errors)}")
            return False
        except ArchetypeManagerError as exc:
            logger.error("Archetype remove failed", slug=slug, error=str(exc))
            self.notifier.error(f"Failed to remove {slug}: {exc.message}")
            return False
        except Exception as exc:
            logger.exception("Unexpected error removing archetype", slug=slug)
            self.notifier.error(f"Failed to remove {slug}: {exc}")
            return False

    async def _remove(
        self,
        character: CharacterRecord,
        class_instance: ClassInstanceRecord,
        slug: str,
    ) -> bool:
        record = self.get_record(class_instance)
        if not record.has(slug):
            self.notifier.warn(f"{slug} is not applied to {class_instance.name}")
            return False

        definition = record.snapshots[slug]
        remaining = record.without(slug)

        if remaining.is_empty:
            features = record.backup_list()
            new_record = remaining
        else:
            features, log = self._replay(record, remaining)
            self._check(features, operation="remove", slug=slug)
            new_record = record.without(slug, log=log)

        class_map = self.character_map(character)
        tag = self.class_tag(class_instance)
        slugs = [s for s in class_map.get(tag, []) if s != slug]
        if slugs:
            class_map[tag] = slugs
        else:
            class_map.pop(tag, None)

        await self._commit(
            character,
            class_instance,
            features,
            new_record,
            class_map,
            operation="remove",
            slug=slug,
        )

        await self._report_success(
            "Archetype removed",
            f"Removed {definition.name} from {class_instance.name}",
            activity=f"{character.name} removed {definition.name} from {class_instance.name}.",
            slug=slug,
            class_instance=class_instance.id,
            slugs=list(new_record.archetype_slugs),
        )
        return True

    def _replay(
        self, record: ApplicationRecord, remaining: ApplicationRecord
    ) -> tuple[list[dict[str, Any]], list[ApplicationLogEntry]]:
        """Rebuild the feature list from backup with ``remaining`` re-applied."""
        split_classes = {entry.slug: entry.split_class for entry in record.log}
        features = record.backup_list()
        log: list[ApplicationLogEntry] = []

        for definition in remaining.definitions():
            split_class = split_classes.get(definition.slug)
            diff = generate_diff(records_of(features), definition, class_key=split_class)
            features = build_feature_list(features, diff)
            log.append(ApplicationLogEntry(slug=definition.slug, diff=tuple(diff), split_class=split_class))
            logger.debug("Replayed archetype", slug=definition.slug, feature_count=len(features))

        return features, log

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    async def restore_from_backup(
        self,
        character: CharacterRecord,
        class_instance: ClassInstanceRecord,
    ) -> RestoreResult:
        """Write the backup back and clear all tracking for the instance.

        Intended for recovery when bookkeeping and features have drifted
        apart. Shares the remove guard.
        """
        try:
            async with self.remove_guard.hold(class_instance.id):
                record = self.get_record(class_instance)
                if record.backup is None:
                    return RestoreResult(False, f"No backup found for {class_instance.name}")

                features = record.backup_list()
                class_map = self.character_map(character)
                class_map.pop(self.class_tag(class_instance), None)

                await self._commit(
                    character,
                    class_instance,
                    features,
                    ApplicationRecord(),
                    class_map,
                    operation="restore",
                    slug=None,
                )
        except ConcurrencyRejection:
            self.notifier.warn("Archetype removal already in progress")
            return RestoreResult(False, "Another operation is in progress")
        except Exception as exc:
            logger.exception("Restore from backup failed", class_instance=class_instance.id)
            self.notifier.error(f"Failed to restore {class_instance.name}: {exc}")
            return RestoreResult(False, f"Restore failed: {exc}")

        await self._report_success(
            "Restored from backup",
            f"Restored {class_instance.name} from backup",
            class_instance=class_instance.id,
            feature_count=len(features),
        )
        return RestoreResult(
            True,
            f"Restored {len(features)} features on {class_instance.name}",
            restored_count=len(features),
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def _write_flag(self, target: FlagStore, key: str, value: Any) -> None:
        if value is None:
            await target.unset_flag(self.scope, key)
        else:
            await target.set_flag(self.scope, key, value)

    async def _commit(
        self,
        character: CharacterRecord,
        class_instance: ClassInstanceRecord,
        features: list[dict[str, Any]],
        record: ApplicationRecord,
        class_map: dict[str, list[str]],
        *,
        operation: str,
        slug: str | None,
    ) -> None:
        """Persist features, then the record, then the character map.

        On failure every completed write is reverted in reverse order.

        Raises:
            PersistenceFailure: If any write fails.
        """
        previous_features = class_instance.features
        previous_record = class_instance.get_flag(self.scope, APPLICATION_FLAG)
        previous_map = character.get_flag(self.scope, CHARACTER_ARCHETYPES_FLAG)
        undo: list[tuple[str, Callable[[], Any]]] = []

        try:
            await class_instance.update_features(features)
            undo.append(("features", lambda: class_instance.update_features(previous_features)))

            await self._write_flag(class_instance, APPLICATION_FLAG, record.to_flag())
            undo.append(("record", lambda: self._write_flag(class_instance, APPLICATION_FLAG, previous_record)))

            await self._write_flag(character, CHARACTER_ARCHETYPES_FLAG, class_map or None)
        except Exception as exc:
            logger.error("Write failed, rolling back", operation=operation, slug=slug, error=str(exc))
            for name, step in reversed(undo):
                try:
                    await step()
                except Exception:
                    logger.exception("Rollback step failed", step=name, operation=operation, slug=slug)
            raise PersistenceFailure(
                f"Could not save {operation}",
                operation=operation,
                slug=slug,
                details={"cause": str(exc)},
            ) from exc

    # -------------------------------------------------------------------------
    # Activity messages
    # -------------------------------------------------------------------------

    def _apply_message(
        self,
        character: CharacterRecord,
        class_instance: ClassInstanceRecord,
        definition: ArchetypeDefinition,
        diff: Sequence[DiffEntry],
    ) -> str:
        replaced: list[str] = []
        added: list[str] = []
        modified: list[str] = []
        for entry in diff:
            feature = entry.archetype_feature
            if entry.status is DiffStatus.MODIFIED:
                modified.append(entry.name)
            elif entry.status is DiffStatus.ADDED and feature is not None:
                if feature.classification is FeatureClassification.REPLACEMENT:
                    replaced.append(entry.name)
                else:
                    added.append(entry.name)

        parts = [f"{character.name} applied {definition.name} to {class_instance.name}."]
        for label, names in (("Replaced", replaced), ("Added", added), ("Modified", modified)):
            if names:
                parts.append(f"{label}: {', '.join(names)}.")
        return " ".join(parts)

    async def _report_success(
        self,
        event: str,
        notice: str,
        *,
        activity: str | None = None,
        **context: Any,
    ) -> None:
        """Log, post, and notify after a completed commit.

        The commit has already landed, so a failure here is logged and
        otherwise ignored.
        """
        try:
            logger.info(event, **context)
        except Exception:
            logger.exception("Could not log success event", success_event=event)
        if activity is not None:
            await self._post(activity)
        try:
            self.notifier.info(notice)
        except Exception:
            logger.exception("Success notice failed", success_event=event)

    async def _post(self, message: str) -> None:
        if self.activity_log is None:
            return
        try:
            await self.activity_log.post(message)
        except Exception:
            logger.exception("Activity log post failed")


__all__ = [
    "ApplicationEngine",
    "RestoreResult",
    "build_feature_list",
    "condensed_ids",
    "records_of",
]
