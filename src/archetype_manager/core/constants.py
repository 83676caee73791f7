"""Application-wide constants for the Archetype Manager engine.

Flag keys name the scoped attributes the engine reads and writes on host
records. Changing them orphans previously persisted bookkeeping.
"""

from __future__ import annotations

# =============================================================================
# Level Bounds
# =============================================================================

MIN_FEATURE_LEVEL = 1
"""Lowest class level a feature record can be gained at."""

MAX_FEATURE_LEVEL = 20
"""Highest class level a feature record can be gained at."""

# =============================================================================
# Flag Keys
# =============================================================================

DEFAULT_FLAG_SCOPE = "archetype-manager"
"""Scope under which all engine flags are stored."""

APPLICATION_FLAG = "application"
"""Class-instance flag holding the serialized ApplicationRecord."""

CHARACTER_ARCHETYPES_FLAG = "appliedArchetypes"
"""Character flag holding the ``tag -> slugs`` cross-class mapping."""

# =============================================================================
# Repository Sections
# =============================================================================

SECTION_FIXES = "fixes"
"""Curated corrections to bad source data (GM-only writes)."""

SECTION_MISSING = "missing"
"""Official archetypes absent from the bulk dataset (GM-only writes)."""

SECTION_CUSTOM = "custom"
"""Homebrew archetypes (writable by anyone)."""

SECTIONS: tuple[str, ...] = (SECTION_FIXES, SECTION_MISSING, SECTION_CUSTOM)
"""All sections, in lookup priority order."""

PRIVILEGED_SECTIONS: frozenset[str] = frozenset({SECTION_FIXES, SECTION_MISSING})
"""Sections that require the GM role to write."""

# =============================================================================
# Display
# =============================================================================

MODULE_TITLE = "Archetype Manager"
"""Prefix used on notices and activity-log messages."""


__all__ = [
    "MIN_FEATURE_LEVEL",
    "MAX_FEATURE_LEVEL",
    "DEFAULT_FLAG_SCOPE",
    "APPLICATION_FLAG",
    "CHARACTER_ARCHETYPES_FLAG",
    "SECTION_FIXES",
    "SECTION_MISSING",
    "SECTION_CUSTOM",
    "SECTIONS",
    "PRIVILEGED_SECTIONS",
    "MODULE_TITLE",
]
