"""Pydantic V2 schemas for features, archetypes, and diff entries.

FeatureRecords come from the host's class data and are read-only to the
engine. ArchetypeFeature and ArchetypeDefinition are classifier output and
are frozen once built, because the applicator stores them verbatim as
snapshots. DiffEntry lists are transient per call.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from archetype_manager.core.constants import MAX_FEATURE_LEVEL, MIN_FEATURE_LEVEL


class FeatureClassification(StrEnum):
    """Edit intent of an archetype feature."""

    ADDITIVE = "additive"
    REPLACEMENT = "replacement"
    MODIFICATION = "modification"
    UNKNOWN = "unknown"


class DiffStatus(StrEnum):
    """Status of a single line in a computed diff."""

    UNCHANGED = "unchanged"
    REMOVED = "removed"
    ADDED = "added"
    MODIFIED = "modified"


class FeatureRecord(BaseModel):
    """One entry in a class's ordered feature progression.

    Attributes:
        id: Opaque identifier of the feature document.
        level: Class level the feature is gained at (1-20).
        name: Display name, possibly resolved after the fact.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1, description="Feature identifier")
    level: int = Field(ge=MIN_FEATURE_LEVEL, le=MAX_FEATURE_LEVEL, description="Gained at level")
    name: str = Field(default="", description="Display name")

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "FeatureRecord":
        """Build a record from a host mapping.

        Host lists sometimes key the identifier as ``uuid`` and the name as
        ``resolvedName``; both spellings are accepted.
        """
        return cls(
            id=str(data.get("id") or data.get("uuid") or ""),
            level=data.get("level"),
            name=data.get("name") or data.get("resolvedName") or "",
        )

    def to_mapping(self) -> dict[str, Any]:
        """Serialize to the plain mapping shape hosts persist."""
        return {"id": self.id, "level": self.level, "name": self.name}


class ArchetypeFeature(BaseModel):
    """A classified archetype feature.

    Attributes:
        name: Feature display name.
        level: Level parsed from the description; None when absent.
        classification: Edit intent.
        target: Normalized name of the base feature it replaces or modifies.
        matched_record: Base record the target was matched to, if any.
        source_id: Identifier of the archetype feature document.
        description: Raw description text.
        source: Whether the fields came from automatic parsing or a curated
            override.
        needs_user_input: True when the feature could not be fully resolved.
        suggestions: Closest base feature names for an unmatched target.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1, description="Feature name")
    level: int | None = Field(default=None, description="Gained at level")
    classification: FeatureClassification = Field(default=FeatureClassification.UNKNOWN)
    target: str | None = Field(default=None, description="Normalized target name")
    matched_record: FeatureRecord | None = Field(default=None)
    source_id: str | None = Field(default=None, description="Feature document identifier")
    description: str = Field(default="", description="Raw description")
    source: Literal["auto-parse", "override"] = Field(default="auto-parse")
    needs_user_input: bool = Field(default=False)
    suggestions: tuple[str, ...] = Field(default=())


class ArchetypeDefinition(BaseModel):
    """A fully classified archetype.

    Attributes:
        name: Archetype display name.
        slug: Tracking key.
        class_key: Class the archetype belongs to (tag or name), if known.
        features: Classified features in source order.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1, description="Archetype name")
    slug: str = Field(min_length=1, description="Tracking key")
    class_key: str | None = Field(default=None, description="Owning class")
    features: tuple[ArchetypeFeature, ...] = Field(default=())

    @property
    def unresolved_features(self) -> list[ArchetypeFeature]:
        """Features flagged for manual correction."""
        return [f for f in self.features if f.needs_user_input]


class DiffEntry(BaseModel):
    """One line of the comparison between current features and an archetype.

    Attributes:
        status: Diff status.
        level: Level used for ordering.
        name: Display name of the line.
        original: Base record involved, for unchanged/removed/modified lines.
        archetype_feature: Archetype feature involved, for added/modified lines.
    """

    model_config = ConfigDict(frozen=True)

    status: DiffStatus
    level: int | None = None
    name: str = ""
    original: FeatureRecord | None = None
    archetype_feature: ArchetypeFeature | None = None


__all__ = [
    "FeatureClassification",
    "DiffStatus",
    "FeatureRecord",
    "ArchetypeFeature",
    "ArchetypeDefinition",
    "DiffEntry",
]
