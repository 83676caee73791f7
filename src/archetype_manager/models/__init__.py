"""Pydantic models for the Archetype Manager engine."""

from __future__ import annotations

from archetype_manager.models.application import ApplicationLogEntry, ApplicationRecord
from archetype_manager.models.features import (
    ArchetypeDefinition,
    ArchetypeFeature,
    DiffEntry,
    DiffStatus,
    FeatureClassification,
    FeatureRecord,
)


__all__ = [
    "FeatureClassification",
    "DiffStatus",
    "FeatureRecord",
    "ArchetypeFeature",
    "ArchetypeDefinition",
    "DiffEntry",
    "ApplicationLogEntry",
    "ApplicationRecord",
]
