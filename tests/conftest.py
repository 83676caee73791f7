"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the Archetype Manager test suite: a fighter progression, two fighter
archetypes classified from raw feature text, and an in-memory host.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from archetype_manager.core.config import Settings, StorageSettings
from archetype_manager.engine.applicator import ApplicationEngine
from archetype_manager.engine.classifier import parse_archetype
from archetype_manager.host.memory import (
    MemoryActivityLog,
    MemoryCharacter,
    MemoryClassInstance,
    RecordingNotifier,
)
from archetype_manager.models.features import ArchetypeDefinition, FeatureRecord


if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


FIGHTER_PROGRESSION: list[tuple[str, int, str]] = [
    ("ftr-bonus-feat", 1, "Bonus Feat"),
    ("ftr-bravery", 2, "Bravery"),
    ("ftr-armor-training-1", 3, "Armor Training 1"),
    ("ftr-weapon-training-1", 5, "Weapon Training 1"),
    ("ftr-armor-training-2", 7, "Armor Training 2"),
    ("ftr-weapon-training-2", 9, "Weapon Training 2"),
    ("ftr-armor-training-3", 11, "Armor Training 3"),
    ("ftr-weapon-training-3", 13, "Weapon Training 3"),
    ("ftr-armor-training-4", 15, "Armor Training 4"),
    ("ftr-weapon-training-4", 17, "Weapon Training 4"),
    ("ftr-armor-mastery", 19, "Armor Mastery"),
    ("ftr-weapon-mastery", 20, "Weapon Mastery"),
]


def raw_feature(feature_id: str, name: str, level: int | None, text: str) -> dict[str, Any]:
    """Build a raw archetype feature document the way hosts provide them."""
    label = f"<p><strong>Level</strong>: {level}</p>" if level is not None else ""
    return {"id": feature_id, "name": name, "description": {"value": f"{label}<p>{text}</p>"}}


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reset the settings cache before and after each test."""
    from archetype_manager.core.config import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Provide settings isolated from the environment and any .env file.

    Args:
        tmp_path: Pytest temporary path fixture.
    """
    return Settings(
        _env_file=None,
        storage=StorageSettings(
            _env_file=None,
            store_path=tmp_path / "archetype-db",
            dataset_path=tmp_path / "archetypes.json",
        ),
    )


# =============================================================================
# Feature Fixtures
# =============================================================================


@pytest.fixture
def fighter_features() -> list[dict[str, Any]]:
    """Provide the fighter's stored feature list as host mappings."""
    return [{"id": fid, "level": level, "name": name} for fid, level, name in FIGHTER_PROGRESSION]


@pytest.fixture
def fighter_base(fighter_features: list[dict[str, Any]]) -> list[FeatureRecord]:
    """Provide the fighter progression as FeatureRecords (12 entries)."""
    return [FeatureRecord.from_mapping(entry) for entry in fighter_features]


@pytest.fixture
def two_handed_fighter_raw() -> list[dict[str, Any]]:
    """Provide raw Two-Handed Fighter features: 6 replacements, 1 addition."""
    return [
        raw_feature(
            "thf-steadfast-grip",
            "Steadfast Grip",
            1,
            "A two-handed fighter gains a +1 bonus on checks to resist being disarmed.",
        ),
        raw_feature(
            "thf-shattering-strike",
            "Shattering Strike",
            2,
            "A two-handed fighter gains a bonus on sunder attempts. This ability replaces bravery.",
        ),
        raw_feature(
            "thf-overhand-chop",
            "Overhand Chop",
            3,
            "Double Strength bonus on damage. This ability replaces armor training 1.",
        ),
        raw_feature(
            "thf-backswing",
            "Backswing",
            7,
            "Full Strength bonus on damage. This ability replaces armor training 2.",
        ),
        raw_feature(
            "thf-piledriver",
            "Piledriver",
            11,
            "Bull rush or trip as a free action. This ability replaces armor training 3.",
        ),
        raw_feature(
            "thf-greater-power-attack",
            "Greater Power Attack",
            15,
            "Increased Power Attack bonus. This ability replaces armor training 4.",
        ),
        raw_feature(
            "thf-devastating-blow",
            "Devastating Blow",
            19,
            "Automatic confirmation once per round. This ability replaces armor mastery.",
        ),
    ]


@pytest.fixture
def two_handed_fighter(
    two_handed_fighter_raw: list[dict[str, Any]],
    fighter_base: list[FeatureRecord],
) -> ArchetypeDefinition:
    """Provide the classified Two-Handed Fighter archetype."""
    return parse_archetype(
        "Two-Handed Fighter",
        two_handed_fighter_raw,
        fighter_base,
        class_key="fighter",
        warn=False,
    )


@pytest.fixture
def weapon_master(fighter_base: list[FeatureRecord]) -> ArchetypeDefinition:
    """Provide the classified Weapon Master archetype (1 replacement)."""
    raw = [
        raw_feature(
            "wm-weapon-guard",
            "Weapon Guard",
            5,
            "Bonus to CMD against disarm and sunder. This ability replaces weapon training 1.",
        ),
    ]
    return parse_archetype("Weapon Master", raw, fighter_base, class_key="fighter", warn=False)


# =============================================================================
# Host Fixtures
# =============================================================================


@pytest.fixture
def character() -> MemoryCharacter:
    """Provide an in-memory character."""
    return MemoryCharacter(id="char-valeros", name="Valeros")


@pytest.fixture
def fighter(fighter_features: list[dict[str, Any]]) -> MemoryClassInstance:
    """Provide an in-memory fighter class instance with the base progression."""
    return MemoryClassInstance(
        id="class-fighter",
        name="Fighter",
        tag="fighter",
        stored_features=fighter_features,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    """Provide a notifier that records notices."""
    return RecordingNotifier()


@pytest.fixture
def activity_log() -> MemoryActivityLog:
    """Provide an in-memory activity log."""
    return MemoryActivityLog()


@pytest.fixture
def engine(
    settings: Settings,
    notifier: RecordingNotifier,
    activity_log: MemoryActivityLog,
) -> ApplicationEngine:
    """Provide an ApplicationEngine wired to the in-memory host."""
    return ApplicationEngine(notifier=notifier, activity_log=activity_log, settings=settings)
