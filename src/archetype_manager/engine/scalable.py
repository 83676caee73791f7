"""Registry of scalable (tiered) class features.

Some classes gain one feature repeatedly at fixed levels (Bravery at 2, 6,
10, ...; Armor Training 1-4). Hosts often store such a series as a single
condensed record at its first level. When an archetype targets one tier of a
condensed series, the DiffEngine splits the record into one record per tier
so the targeted tier can be removed on its own.

Registry keys are class keys (lowercase tag or name) and normalized series
names.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from archetype_manager.engine.classifier import normalize_name, strip_parentheticals
from archetype_manager.models.features import FeatureRecord


@dataclass(frozen=True)
class Tier:
    """One tier of a scalable series."""

    tier: int
    level: int
    name: str


@dataclass(frozen=True)
class ScalableSeries:
    """A named series of tiers.

    Attributes:
        base_name: Display name of the series.
        tiers: Tiers in level order.
    """

    base_name: str
    tiers: tuple[Tier, ...]

    @property
    def numbered(self) -> bool:
        """True when tiers have distinct names and can be targeted one at a time."""
        return len({tier.name for tier in self.tiers}) > 1


def _series(base_name: str, levels: Sequence[int], names: Sequence[str] | None = None) -> ScalableSeries:
    names = names or [base_name] * len(levels)
    return ScalableSeries(
        base_name=base_name,
        tiers=tuple(Tier(i + 1, level, name) for i, (level, name) in enumerate(zip(levels, names))),
    )


def _numbered(base_name: str, levels: Sequence[int], fmt: str = "{base} {n}") -> ScalableSeries:
    return _series(
        base_name,
        levels,
        [fmt.format(base=base_name, n=i + 1) for i in range(len(levels))],
    )


REGISTRY: dict[str, dict[str, ScalableSeries]] = {
    "fighter": {
        "bravery": _series("Bravery", [2, 6, 10, 14, 18]),
        "armor training": _numbered("Armor Training", [3, 7, 11, 15]),
        "weapon training": _numbered("Weapon Training", [5, 9, 13, 17]),
    },
    "rogue": {
        "sneak attack": _numbered("Sneak Attack", range(1, 20, 2), "{base} +{n}d6"),
        "trap sense": _numbered("Trap Sense", [3, 6, 9, 12, 15, 18], "{base} +{n}"),
        "rogue talent": _series("Rogue Talent", range(2, 21, 2)),
    },
    "barbarian": {
        "rage power": _series("Rage Power", range(2, 21, 2)),
        "trap sense": _numbered("Trap Sense", [3, 6, 9, 12, 15, 18], "{base} +{n}"),
        "damage reduction": _numbered("Damage Reduction", [7, 10, 13, 16, 19], "{base} {n}/-"),
    },
    "paladin": {
        "mercy": _series("Mercy", [3, 6, 9, 12, 15, 18]),
        "smite evil": _series("Smite Evil", [1, 4, 7, 10, 13, 16, 19]),
    },
    "ranger": {
        "favored enemy": _series("Favored Enemy", [1, 5, 10, 15, 20]),
        "favored terrain": _series("Favored Terrain", [3, 8, 13, 18]),
        "combat style feat": _series("Combat Style Feat", [2, 6, 10, 14, 18]),
    },
    "monk": {
        "bonus feat": _series("Bonus Feat", [1, 2, 6, 10, 14, 18]),
    },
    "bard": {
        "versatile performance": _series("Versatile Performance", [2, 6, 10, 14, 18]),
    },
}


def series_base_name(name: str | None, class_key: str | None) -> str | None:
    """Return the registry key of the series ``name`` belongs to, if any.

    Example:
        >>> series_base_name("Weapon Training 2", "Fighter")
        'weapon training'
    """
    if not name or not class_key:
        return None
    registry = REGISTRY.get(class_key.lower().strip())
    if not registry:
        return None
    normalized = normalize_name(name)
    if normalized in registry:
        return normalized
    for key in registry:
        if normalized.startswith(key):
            return key
    return None


def get_series(base_name: str | None, class_key: str | None) -> ScalableSeries | None:
    if not base_name or not class_key:
        return None
    return REGISTRY.get(class_key.lower().strip(), {}).get(base_name.lower())


def is_condensed(record: FeatureRecord, class_key: str | None) -> bool:
    """True when ``record`` stands for a whole numbered series rather than one tier.

    Example:
        >>> is_condensed(FeatureRecord(id="a", level=3, name="Armor Training"), "fighter")
        True
        >>> is_condensed(FeatureRecord(id="a", level=3, name="Armor Training 1"), "fighter")
        False
    """
    series = get_series(series_base_name(record.name, class_key), class_key)
    if series is None or not series.numbered:
        return False
    label = strip_parentheticals(record.name)
    return label not in {tier.name.lower() for tier in series.tiers}


def split_into_tiers(record: FeatureRecord, class_key: str | None) -> list[FeatureRecord] | None:
    """Expand a condensed series record into one record per tier.

    Tier records keep the condensed record's identifier.

    Returns:
        Tier records in level order, or None when ``record`` is not part of a
        known series.
    """
    series = get_series(series_base_name(record.name, class_key), class_key)
    if series is None:
        return None
    return [FeatureRecord(id=record.id, level=t.level, name=t.name) for t in series.tiers]


def series_conflict(target_a: str | None, target_b: str | None, class_key: str | None) -> str | None:
    """Return the series display name when both targets touch the same series."""
    series_a = series_base_name(target_a, class_key)
    if series_a is None or series_a != series_base_name(target_b, class_key):
        return None
    series = get_series(series_a, class_key)
    return series.base_name if series else series_a


__all__ = [
    "Tier",
    "ScalableSeries",
    "REGISTRY",
    "series_base_name",
    "get_series",
    "is_condensed",
    "split_into_tiers",
    "series_conflict",
]
