"""Tests for configuration management."""

from __future__ import annotations

from pathlib import Path

import pytest

from archetype_manager.core.config import (
    Settings,
    StorageSettings,
    clear_settings_cache,
    get_settings,
)
from archetype_manager.core.constants import DEFAULT_FLAG_SCOPE
from archetype_manager.core.exceptions import ConfigurationError


class TestStorageSettings:
    """Tests for StorageSettings configuration."""

    def test_default_paths(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test default repository paths."""
        monkeypatch.chdir(tmp_path)

        settings = StorageSettings(_env_file=None)

        assert settings.store_path == Path("data/archetype-db")
        assert settings.dataset_path == Path("data/archetypes.json")

    def test_custom_paths(self, tmp_path: Path) -> None:
        """Test custom storage paths."""
        store = tmp_path / "custom_store"

        settings = StorageSettings(_env_file=None, store_path=store)

        assert settings.store_path == store

    def test_home_expansion(self) -> None:
        """Test that ~ is expanded in configured paths."""
        settings = StorageSettings(_env_file=None, store_path=Path("~/archetypes"))

        assert "~" not in str(settings.store_path)
        assert settings.store_path == Path.home() / "archetypes"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that the dataset path can be set from the environment."""
        monkeypatch.setenv("ARCHETYPE_MANAGER_DATASET_PATH", str(tmp_path / "dump.json"))

        settings = StorageSettings(_env_file=None)

        assert settings.dataset_path == tmp_path / "dump.json"


class TestSettings:
    """Tests for main Settings configuration."""

    def test_default_settings(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test default settings initialization."""
        monkeypatch.chdir(tmp_path)

        settings = Settings(_env_file=None)

        assert settings.app_name == "Archetype Manager"
        assert settings.debug is False
        assert settings.log_level == "INFO"
        assert settings.flag_scope == DEFAULT_FLAG_SCOPE
        assert settings.guard_scope == "instance"
        assert settings.enforce_validation is True
        assert settings.show_parse_warnings is True

    def test_guard_scope_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test guard scope setting from the environment."""
        monkeypatch.setenv("ARCHETYPE_MANAGER_GUARD_SCOPE", "process")

        settings = Settings(_env_file=None)

        assert settings.guard_scope == "process"

    def test_enforce_validation_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test validation enforcement can be disabled."""
        monkeypatch.setenv("ARCHETYPE_MANAGER_ENFORCE_VALIDATION", "false")

        settings = Settings(_env_file=None)

        assert settings.enforce_validation is False

    def test_invalid_guard_scope_rejected(self) -> None:
        """Test that unknown guard scopes fail validation."""
        with pytest.raises(ValueError):
            Settings(_env_file=None, guard_scope="global")


class TestGetSettings:
    """Tests for get_settings singleton function."""

    def test_returns_settings_instance(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that get_settings returns a Settings instance."""
        monkeypatch.chdir(tmp_path)
        clear_settings_cache()

        settings = get_settings()

        assert isinstance(settings, Settings)

    def test_caching(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that settings are cached."""
        monkeypatch.chdir(tmp_path)
        clear_settings_cache()

        settings1 = get_settings()
        settings2 = get_settings()

        assert settings1 is settings2

    def test_cache_clear(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that cache can be cleared."""
        monkeypatch.chdir(tmp_path)
        clear_settings_cache()

        settings1 = get_settings()
        clear_settings_cache()
        settings2 = get_settings()

        assert settings1 is not settings2

    def test_invalid_env_raises_configuration_error(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that invalid configuration is wrapped in ConfigurationError."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("ARCHETYPE_MANAGER_LOG_LEVEL", "VERBOSE")
        clear_settings_cache()

        with pytest.raises(ConfigurationError) as exc_info:
            get_settings()

        assert "original_error" in exc_info.value.details
