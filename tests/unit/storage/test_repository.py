"""Tests for the section-keyed archetype repository."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from archetype_manager.core.config import Settings
from archetype_manager.core.exceptions import InvalidSectionError, PermissionDeniedError
from archetype_manager.storage import get_repository
from archetype_manager.storage.repository import JsonFileRepository, Role


@pytest.fixture
def gm_repo(tmp_path: Path) -> JsonFileRepository:
    """Provide a GM repository with its section files created."""
    repo = JsonFileRepository(tmp_path / "db", tmp_path / "archetypes.json", role=Role.GM)
    repo.ensure_database()
    return repo


@pytest.fixture
def player_repo(gm_repo: JsonFileRepository) -> JsonFileRepository:
    """Provide a player repository over the same files."""
    return JsonFileRepository(gm_repo.store_path, gm_repo.dataset_path, role=Role.PLAYER)


class TestSections:
    """Tests for reading and writing sections."""

    def test_ensure_database(self, gm_repo: JsonFileRepository) -> None:
        """Test that every section file is created empty."""
        for section in ("fixes", "missing", "custom"):
            assert (gm_repo.store_path / f"{section}.json").read_text() == "{}"
            assert gm_repo.read_section(section) == {}

    def test_invalid_section(self, gm_repo: JsonFileRepository) -> None:
        """Test that unknown sections are rejected."""
        with pytest.raises(InvalidSectionError):
            gm_repo.read_section("homebrew")
        with pytest.raises(InvalidSectionError):
            gm_repo.write_section("homebrew", {})

    def test_write_and_read(self, gm_repo: JsonFileRepository) -> None:
        """Test a write/read cycle."""
        gm_repo.write_section("custom", {"brute": {"name": "Brute"}})
        assert gm_repo.read_section("custom") == {"brute": {"name": "Brute"}}

    @pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", "null", "42"])
    def test_corrupted_section_reset(self, gm_repo: JsonFileRepository, content: str) -> None:
        """Test that corrupted or non-object content is reset to an empty object."""
        path = gm_repo.store_path / "custom.json"
        path.write_text(content)

        assert gm_repo.read_section("custom") == {}
        assert json.loads(path.read_text()) == {}

    def test_missing_store_created_on_read(self, tmp_path: Path) -> None:
        """Test that reading from a fresh directory creates it."""
        repo = JsonFileRepository(tmp_path / "fresh")

        assert repo.read_section("fixes") == {}
        assert (tmp_path / "fresh" / "fixes.json").exists()


class TestPermissions:
    """Tests for role checks."""

    @pytest.mark.parametrize("section", ["fixes", "missing"])
    def test_player_cannot_write_privileged(
        self, player_repo: JsonFileRepository, section: str
    ) -> None:
        """Test that players cannot modify fixes or missing."""
        assert not player_repo.can_write(section)
        with pytest.raises(PermissionDeniedError) as exc_info:
            player_repo.write_section(section, {})
        assert exc_info.value.details == {"role": "player", "section": section}

    def test_player_can_write_custom(self, player_repo: JsonFileRepository) -> None:
        """Test that players may write custom archetypes."""
        player_repo.set_archetype("custom", "brute", {"name": "Brute"})
        assert player_repo.get_archetype("brute") == {"name": "Brute", "_section": "custom"}

    def test_player_can_read_everything(
        self, gm_repo: JsonFileRepository, player_repo: JsonFileRepository
    ) -> None:
        """Test that all sections are readable by players."""
        gm_repo.set_archetype("fixes", "brute", {"name": "Brute"})
        assert player_repo.read_section("fixes") == {"brute": {"name": "Brute"}}


class TestArchetypeEntries:
    """Tests for archetype-level operations."""

    def test_priority_order(self, gm_repo: JsonFileRepository) -> None:
        """Test lookup priority fixes > missing > custom."""
        gm_repo.set_archetype("custom", "brute", {"name": "Custom Brute"})
        gm_repo.set_archetype("missing", "brute", {"name": "Missing Brute"})
        assert gm_repo.get_archetype("brute")["_section"] == "missing"

        gm_repo.set_archetype("fixes", "brute", {"name": "Fixed Brute"})
        entry = gm_repo.get_archetype("brute")
        assert entry == {"name": "Fixed Brute", "_section": "fixes"}

    def test_section_marker_not_stored(self, gm_repo: JsonFileRepository) -> None:
        """Test that re-saving a looked-up entry drops the section marker."""
        gm_repo.set_archetype("custom", "brute", {"name": "Brute"})
        entry = gm_repo.get_archetype("brute")

        gm_repo.set_archetype("custom", "brute", entry)

        assert gm_repo.read_section("custom") == {"brute": {"name": "Brute"}}

    def test_missing_archetype(self, gm_repo: JsonFileRepository) -> None:
        """Test that unknown slugs return None."""
        assert gm_repo.get_archetype("nobody") is None

    def test_delete(self, gm_repo: JsonFileRepository) -> None:
        """Test deleting entries."""
        gm_repo.set_archetype("custom", "brute", {"name": "Brute"})

        assert gm_repo.delete_archetype("custom", "brute") is True
        assert gm_repo.delete_archetype("custom", "brute") is False
        assert gm_repo.get_archetype("brute") is None

    def test_feature_overrides(self, gm_repo: JsonFileRepository) -> None:
        """Test per-feature overrides lookup."""
        overrides = {"overhand-chop": {"classification": "replacement", "target": "Armor Training 1"}}
        gm_repo.set_archetype("fixes", "two-handed-fighter", {"features": overrides})

        assert gm_repo.feature_overrides("two-handed-fighter") == overrides
        assert gm_repo.feature_overrides("weapon-master") == {}


class TestDataset:
    """Tests for bulk dataset loading."""

    def test_load_dataset(self, gm_repo: JsonFileRepository) -> None:
        """Test loading archetypes and features."""
        gm_repo.dataset_path.write_text(
            json.dumps(
                {
                    "archetypes": [{"name": "Two-Handed Fighter", "class": "fighter"}],
                    "features": [{"id": "thf-backswing", "name": "Backswing"}],
                }
            )
        )

        assert gm_repo.load_archetype_list() == [{"name": "Two-Handed Fighter", "class": "fighter"}]
        assert gm_repo.load_archetype_features() == [{"id": "thf-backswing", "name": "Backswing"}]

    def test_missing_dataset(self, gm_repo: JsonFileRepository) -> None:
        """Test curated-only mode without a dataset."""
        assert gm_repo.load_archetype_list() == []
        assert gm_repo.load_archetype_features() == []

    def test_unreadable_dataset(self, gm_repo: JsonFileRepository) -> None:
        """Test that a broken dataset yields nothing."""
        gm_repo.dataset_path.write_text("{broken")
        assert gm_repo.load_archetype_list() == []


class TestGetRepository:
    """Tests for the repository factory."""

    def test_from_settings(self, settings: Settings) -> None:
        """Test building a repository from storage settings."""
        repo = get_repository(settings, role=Role.GM)

        assert repo.store_path == settings.storage.store_path
        assert repo.dataset_path == settings.storage.dataset_path
        assert repo.role is Role.GM
        assert (settings.storage.store_path / "custom.json").exists()
