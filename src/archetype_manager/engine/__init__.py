"""Archetype engine: classification, diffing, and application.

Submodules:
    classifier: Free-text feature classification and name matching
    scalable: Registry of tiered class feature series
    diff: Diff generation, final-state validation, and stack conflicts
    guards: Keyed non-blocking operation guards
    applicator: Applying, stacking, and removing archetypes

Example:
    >>> from archetype_manager.engine import (
    ...     ApplicationEngine, generate_diff, parse_archetype
    ... )
    >>>
    >>> definition = parse_archetype("Two-Handed Fighter", raw, base, class_key="fighter")
    >>> diff = generate_diff(base, definition, class_key="fighter")
    >>> await ApplicationEngine().apply(character, fighter, definition, diff)
"""

from __future__ import annotations

# =============================================================================
# Classification
# =============================================================================
from archetype_manager.engine.classifier import (
    Classification,
    classify_feature,
    is_as_but_variant,
    match_target,
    normalize_name,
    parse_archetype,
    parse_level,
    parse_modifies,
    parse_replaces,
    resolve_associations,
    slugify,
    strip_parentheticals,
    suggest_matches,
)

# =============================================================================
# Scalable Features
# =============================================================================
from archetype_manager.engine.scalable import (
    ScalableSeries,
    Tier,
    series_base_name,
    series_conflict,
    split_into_tiers,
)

# =============================================================================
# Diff
# =============================================================================
from archetype_manager.engine.diff import (
    Conflict,
    StackValidation,
    ValidationReport,
    detect_conflicts,
    generate_diff,
    summarize_diff,
    validate_final_state,
    validate_stack,
)

# =============================================================================
# Application
# =============================================================================
from archetype_manager.engine.guards import OperationGuard
from archetype_manager.engine.applicator import (
    ApplicationEngine,
    RestoreResult,
    build_feature_list,
)


__all__ = [
    # Classification
    "Classification",
    "classify_feature",
    "is_as_but_variant",
    "match_target",
    "normalize_name",
    "parse_archetype",
    "parse_level",
    "parse_modifies",
    "parse_replaces",
    "resolve_associations",
    "slugify",
    "strip_parentheticals",
    "suggest_matches",
    # Scalable
    "ScalableSeries",
    "Tier",
    "series_base_name",
    "series_conflict",
    "split_into_tiers",
    # Diff
    "Conflict",
    "StackValidation",
    "ValidationReport",
    "detect_conflicts",
    "generate_diff",
    "summarize_diff",
    "validate_final_state",
    "validate_stack",
    # Application
    "OperationGuard",
    "ApplicationEngine",
    "RestoreResult",
    "build_feature_list",
]
