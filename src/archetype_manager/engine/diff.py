"""Diff generation and validation between base features and an archetype.

``generate_diff`` produces an ordered list of DiffEntry lines describing how
an archetype changes a feature list. ``validate_final_state`` checks the
structural integrity of a prospective list. Neither function mutates its
inputs or raises for bad data: unmatched targets degrade to plain additions
and validation returns every violation as a string.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from archetype_manager.core.logging import get_logger
from archetype_manager.engine.classifier import match_target, normalize_name
from archetype_manager.engine.scalable import (
    is_condensed,
    series_base_name,
    series_conflict,
    split_into_tiers,
)
from archetype_manager.models.features import (
    ArchetypeDefinition,
    ArchetypeFeature,
    DiffEntry,
    DiffStatus,
    FeatureClassification,
    FeatureRecord,
)

logger = get_logger(__name__)


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class ValidationReport:
    """Outcome of ``validate_final_state``."""

    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Conflict:
    """Two archetypes that touch the same base feature.

    Attributes:
        feature_name: The contested target (or series display name).
        archetype_a: Name of the first archetype.
        feature_a: Feature of the first archetype touching the target.
        archetype_b: Name of the second archetype.
        feature_b: Feature of the second archetype touching the target.
        is_series_conflict: True when the archetypes touch different tiers of
            the same series rather than the same target.
    """

    feature_name: str
    archetype_a: str
    feature_a: str
    archetype_b: str
    feature_b: str
    is_series_conflict: bool = False


@dataclass
class StackValidation:
    """Outcome of ``validate_stack``."""

    valid: bool
    conflicts: list[Conflict] = field(default_factory=list)
    conflict_pairs: list[tuple[str, str]] = field(default_factory=list)


# =============================================================================
# Diff Generation
# =============================================================================


def _expand_scalable(
    base_records: Sequence[FeatureRecord],
    definition: ArchetypeDefinition,
    class_key: str,
) -> list[FeatureRecord]:
    """Split condensed series records the archetype targets into tiers.

    A record is only split when it is the base's single record of a numbered
    series and is not itself named for one tier. A base that already lists
    each tier is left alone, as is a single scaling feature such as Bravery.
    """
    targeted = {
        base
        for feature in definition.features
        if feature.target and (base := series_base_name(feature.target, class_key))
    }
    if not targeted:
        return list(base_records)

    per_series: dict[str, int] = {}
    for record in base_records:
        key = series_base_name(record.name, class_key)
        if key:
            per_series[key] = per_series.get(key, 0) + 1

    expanded: list[FeatureRecord] = []
    for record in base_records:
        key = series_base_name(record.name, class_key)
        if key in targeted and per_series.get(key) == 1 and is_condensed(record, class_key):
            tiers = split_into_tiers(record, class_key)
            if tiers:
                expanded.extend(tiers)
                continue
        expanded.append(record)
    return expanded


def _find_original(
    feature: ArchetypeFeature,
    base: Sequence[FeatureRecord],
    consumed: set[int],
) -> int | None:
    """Index of the base record a replacement/modification pairs with.

    Checked in order: the matched record itself, a record of the same series
    at the feature's own level (a tier split out of a condensed record), the
    matched record's id and level, its id and name, then the target name.
    """
    available = [(i, r) for i, r in enumerate(base) if i not in consumed]
    matched = feature.matched_record
    if matched is not None:
        for i, record in available:
            if record == matched:
                return i
    if feature.level is not None and feature.target:
        for i, record in available:
            same_series = matched is not None and record.id == matched.id
            if record.level == feature.level and (
                same_series or normalize_name(record.name) == feature.target
            ):
                return i
    if matched is not None:
        for i, record in available:
            if record.id == matched.id and record.level == matched.level:
                return i
        for i, record in available:
            if record.id == matched.id and normalize_name(record.name) == normalize_name(matched.name):
                return i
    if not feature.target:
        return None
    record = match_target(feature.target, (r for _, r in available))
    if record is None:
        return None
    return next(i for i, r in available if r is record)


def generate_diff(
    base_records: Sequence[FeatureRecord],
    definition: ArchetypeDefinition,
    class_key: str | None = None,
) -> list[DiffEntry]:
    """Compute the ordered diff an archetype makes to a feature list.

    Replacements remove their paired base record (when one is found) and
    always add the new feature. Modifications remove their paired record and
    add a ``modified`` line carrying both sides. Additive features are plain
    additions. Unknown features are skipped. Every unpaired base record is
    ``unchanged``. The result is stably sorted by level.

    Args:
        base_records: Current feature records, in progression order.
        definition: Classified archetype.
        class_key: When given, condensed scalable series targeted by the
            archetype are split into tiers before pairing.

    Returns:
        Diff entries sorted ascending by level.
    """
    base = _expand_scalable(base_records, definition, class_key) if class_key else list(base_records)

    consumed: set[int] = set()
    pending: list[DiffEntry] = []

    for feature in definition.features:
        if feature.classification is FeatureClassification.REPLACEMENT:
            index = _find_original(feature, base, consumed)
            original = base[index] if index is not None else None
            if index is not None:
                consumed.add(index)
            else:
                logger.debug("Replacement target unmatched", feature=feature.name, target=feature.target)
            pending.append(
                DiffEntry(
                    status=DiffStatus.ADDED,
                    level=_entry_level(feature, original),
                    name=feature.name,
                    archetype_feature=feature,
                )
            )
        elif feature.classification is FeatureClassification.MODIFICATION:
            index = _find_original(feature, base, consumed)
            original = base[index] if index is not None else None
            if index is not None:
                consumed.add(index)
            pending.append(
                DiffEntry(
                    status=DiffStatus.MODIFIED,
                    level=_entry_level(feature, original),
                    name=feature.name,
                    original=original,
                    archetype_feature=feature,
                )
            )
        elif feature.classification is FeatureClassification.ADDITIVE:
            pending.append(
                DiffEntry(
                    status=DiffStatus.ADDED,
                    level=feature.level,
                    name=feature.name,
                    archetype_feature=feature,
                )
            )

    diff = [
        DiffEntry(
            status=DiffStatus.REMOVED if i in consumed else DiffStatus.UNCHANGED,
            level=record.level,
            name=record.name or record.id,
            original=record,
        )
        for i, record in enumerate(base)
    ]
    diff.extend(pending)
    diff.sort(key=lambda entry: entry.level or 0)
    return diff


def _entry_level(feature: ArchetypeFeature, original: FeatureRecord | None) -> int | None:
    if feature.level is not None:
        return feature.level
    return original.level if original is not None else None


def summarize_diff(diff: Iterable[DiffEntry]) -> dict[str, int]:
    """Count diff entries per status."""
    counts = {status.value: 0 for status in DiffStatus}
    for entry in diff:
        counts[DiffStatus(entry.status).value] += 1
    return counts


# =============================================================================
# Validation
# =============================================================================


def _field(record: FeatureRecord | Mapping[str, Any], name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def validate_final_state(
    records: Iterable[FeatureRecord | Mapping[str, Any]],
) -> ValidationReport:
    """Check a prospective feature list for structural problems.

    Collects one error per record without an identifier and one per record
    whose level is missing or below 1. Does not stop at the first problem.

    Args:
        records: FeatureRecords or host mappings.

    Returns:
        ValidationReport listing every violation.
    """
    errors: list[str] = []
    for record in records:
        level = _field(record, "level")
        if not (_field(record, "id") or _field(record, "uuid")):
            errors.append(f"Entry at level {level} has no identifier")
        if level is None or level < 1:
            name = _field(record, "name") or _field(record, "resolvedName") or "unknown"
            errors.append(f'Entry "{name}" has invalid level: {level}')
    return ValidationReport(valid=not errors, errors=errors)


# =============================================================================
# Stacking
# =============================================================================


def detect_conflicts(
    archetype_a: ArchetypeDefinition,
    archetype_b: ArchetypeDefinition,
    class_key: str | None = None,
) -> list[Conflict]:
    """Find base features both archetypes replace or modify.

    With ``class_key``, archetypes touching different tiers of the same
    scalable series also conflict.
    """
    conflicts: list[Conflict] = []
    targets_a = {f.target: f for f in archetype_a.features if f.target}

    for feature_b in archetype_b.features:
        if not feature_b.target:
            continue
        feature_a = targets_a.get(feature_b.target)
        if feature_a is not None:
            conflicts.append(
                Conflict(
                    feature_name=feature_b.target,
                    archetype_a=archetype_a.name,
                    feature_a=feature_a.name,
                    archetype_b=archetype_b.name,
                    feature_b=feature_b.name,
                )
            )
            continue
        if class_key:
            for target_a, candidate in targets_a.items():
                series = series_conflict(target_a, feature_b.target, class_key)
                if series:
                    conflicts.append(
                        Conflict(
                            feature_name=series,
                            archetype_a=archetype_a.name,
                            feature_a=candidate.name,
                            archetype_b=archetype_b.name,
                            feature_b=feature_b.name,
                            is_series_conflict=True,
                        )
                    )
                    break
    return conflicts


def validate_stack(
    definitions: Sequence[ArchetypeDefinition],
    class_key: str | None = None,
) -> StackValidation:
    """Check every pair in a prospective archetype stack for conflicts."""
    conflicts: list[Conflict] = []
    seen: set[tuple[str, str, str]] = set()
    pairs: list[tuple[str, str]] = []

    for i, archetype_a in enumerate(definitions):
        for archetype_b in definitions[i + 1 :]:
            for conflict in detect_conflicts(archetype_a, archetype_b, class_key):
                key = (conflict.archetype_a, conflict.archetype_b, conflict.feature_name)
                if key in seen:
                    continue
                seen.add(key)
                conflicts.append(conflict)
                pair = tuple(sorted((conflict.archetype_a, conflict.archetype_b)))
                if pair not in pairs:
                    pairs.append(pair)  # type: ignore[arg-type]

    return StackValidation(valid=not conflicts, conflicts=conflicts, conflict_pairs=pairs)


__all__ = [
    "ValidationReport",
    "Conflict",
    "StackValidation",
    "generate_diff",
    "summarize_diff",
    "validate_final_state",
    "detect_conflicts",
    "validate_stack",
]
