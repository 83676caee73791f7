"""Archetype Manager - class archetype engine for tabletop characters.

An archetype swaps some of a class's level-gated features for alternatives.
This package classifies free-text archetype features, diffs them against a
class's feature progression, and applies the result to live character data
with a restorable backup and support for stacking.

Example:
    >>> from archetype_manager import ApplicationEngine, generate_diff, parse_archetype
    >>>
    >>> definition = parse_archetype("Two-Handed Fighter", raw_features, base, class_key="fighter")
    >>> diff = generate_diff(base, definition, class_key="fighter")
    >>> await ApplicationEngine().apply(character, fighter, definition, diff)
    True

Modules:
    core: Configuration, logging, and base exceptions.
    models: Pydantic V2 schemas for features, archetypes, and bookkeeping.
    engine: Classifier, diff engine, guards, and application engine.
    host: Host protocols and an in-memory implementation.
    storage: Section-keyed archetype repository.
"""

from __future__ import annotations

# Core
from archetype_manager.core.config import Settings, get_settings
from archetype_manager.core.exceptions import ArchetypeManagerError
from archetype_manager.core.logging import configure_logging, get_logger

# Models
from archetype_manager.models import (
    ApplicationRecord,
    ArchetypeDefinition,
    ArchetypeFeature,
    DiffEntry,
    DiffStatus,
    FeatureClassification,
    FeatureRecord,
)

# Engine
from archetype_manager.engine import (
    ApplicationEngine,
    RestoreResult,
    classify_feature,
    generate_diff,
    normalize_name,
    parse_archetype,
    resolve_associations,
    validate_final_state,
    validate_stack,
)

# Storage
from archetype_manager.storage import JsonFileRepository, Role, get_repository

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Core
    "Settings",
    "get_settings",
    "ArchetypeManagerError",
    "configure_logging",
    "get_logger",
    # Models
    "ApplicationRecord",
    "ArchetypeDefinition",
    "ArchetypeFeature",
    "DiffEntry",
    "DiffStatus",
    "FeatureClassification",
    "FeatureRecord",
    # Engine
    "ApplicationEngine",
    "RestoreResult",
    "classify_feature",
    "generate_diff",
    "normalize_name",
    "parse_archetype",
    "resolve_associations",
    "validate_final_state",
    "validate_stack",
    # Storage
    "JsonFileRepository",
    "Role",
    "get_repository",
]
