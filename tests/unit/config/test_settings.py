"""Unit tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from mediarr.config.settings import ImportSettings, Settings, get_settings
from mediarr.domain.value_objects.naming_templates import DEFAULT_PATTERNS


class TestSettings:
    """Tests for Settings loading."""

    def test_defaults(self) -> None:
        """Test that an empty environment gives a working configuration."""
        settings = Settings(_env_file=None)  # type: ignore[call-arg]

        assert settings.log_level == "INFO"
        assert settings.database.url.startswith("sqlite+aiosqlite://")
        assert settings.imports.path_timeout_seconds == 3.0
        assert settings.imports.remote_path_mappings == []
        assert settings.tmdb.api_key is None
        assert settings.naming.to_patterns() == DEFAULT_PATTERNS

    def test_nested_environment_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test MEDIARR_ prefix and the double-underscore nesting."""
        monkeypatch.setenv("MEDIARR_LOG_LEVEL", "debug")
        monkeypatch.setenv("MEDIARR_IMPORTS__PATH_TIMEOUT_SECONDS", "5")
        monkeypatch.setenv("MEDIARR_NAMING__ALBUM_FOLDER", "{album_title} ({year})")
        monkeypatch.setenv("MEDIARR_TMDB__API_KEY", "secret")
        monkeypatch.setenv(
            "MEDIARR_IMPORTS__REMOTE_PATH_MAPPINGS",
            '[{"remote_path": "/downloads", "local_path": "/mnt/dl"}]',
        )

        settings = Settings(_env_file=None)  # type: ignore[call-arg]

        assert settings.log_level == "DEBUG"
        assert settings.imports.path_timeout_seconds == 5.0
        assert settings.naming.to_patterns().album_folder == "{album_title} ({year})"
        assert settings.tmdb.api_key == "secret"
        mapping = settings.imports.remote_path_mappings[0]
        assert (mapping.remote_path, mapping.local_path) == ("/downloads", "/mnt/dl")

    def test_invalid_log_level(self) -> None:
        """Test that a typo in the log level is rejected at startup."""
        with pytest.raises(ValidationError, match="Invalid log level"):
            Settings(_env_file=None, log_level="LOUD")  # type: ignore[call-arg]

    @pytest.mark.parametrize(
        "fields",
        [{"path_timeout_seconds": 0}, {"fuzzy_title_threshold": 101}],
    )
    def test_import_bounds(self, fields: dict[str, float]) -> None:
        """Test that nonsensical import settings are rejected."""
        with pytest.raises(ValidationError):
            ImportSettings(**fields)

    def test_get_settings_is_cached(self) -> None:
        """Test that get_settings() returns one shared instance."""
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
