"""
Settings Tests

Environment parsing, defaults and validation.
"""

import pytest

from flambient.settings import SettingsError, WorkflowSettings


class TestFromEnv:
    """WorkflowSettings.from_env."""

    def test_defaults_without_environment(self):
        settings = WorkflowSettings.from_env({})
        assert settings.imagen.api_key is None
        assert settings.imagen.profile_key == "309406"
        assert settings.imagen.retry_times == 3
        assert settings.imagen.poll_interval == 30
        assert settings.imagen.poll_max_attempts == 240
        assert settings.blend.binary == "magick"
        assert (settings.blend.level_low, settings.blend.level_high, settings.blend.gamma) == ("40%", "140%", "1.0")
        assert settings.parallel_uploads == 1
        assert settings.database_path.endswith("flambient.db")

    def test_values_read(self):
        settings = WorkflowSettings.from_env({
            "IMAGEN_AI_API_KEY": "k",
            "IMAGEN_API_BASE_URL": "https://example.test/v1/",
            "IMAGEN_PROFILE_KEY": "42",
            "IMAGEN_POLL_INTERVAL": "2.5",
            "IMAGEMAGICK_LEVEL_LOW": "35%",
            "IMAGEMAGICK_DARKEN_EXPORT": "yes",
            "FLAMBIENT_DATABASE": "/tmp/x.db",
            "FLAMBIENT_PARALLEL_UPLOADS": "4",
            "EXIFTOOL_BINARY": "/opt/exiftool",
        })
        assert settings.imagen.api_key == "k"
        assert settings.imagen.base_url == "https://example.test/v1"
        assert settings.imagen.profile_key == "42"
        assert settings.imagen.poll_interval == 2.5
        assert settings.blend.level_low == "35%"
        assert settings.blend.darken_export is True
        assert settings.database_path == "/tmp/x.db"
        assert settings.parallel_uploads == 4
        assert settings.exiftool_binary == "/opt/exiftool"

    @pytest.mark.parametrize("name,value", [
        ("IMAGEN_RETRY_TIMES", "three"),
        ("IMAGEN_RETRY_TIMES", "0"),
        ("IMAGEN_TIMEOUT", "-1"),
        ("IMAGEN_POLL_MAX_ATTEMPTS", "0"),
        ("IMAGEMAGICK_DARKEN_EXPORT", "maybe"),
        ("FLAMBIENT_PARALLEL_DOWNLOADS", "0"),
    ])
    def test_invalid_values_rejected(self, name, value):
        with pytest.raises(SettingsError) as exc:
            WorkflowSettings.from_env({name: value})
        assert name in str(exc.value)

    def test_blank_values_use_defaults(self):
        settings = WorkflowSettings.from_env({"IMAGEN_TIMEOUT": "  ", "IMAGEN_AI_API_KEY": ""})
        assert settings.imagen.timeout == 30
        assert settings.imagen.api_key is None


class TestSettingsHelpers:
    """Overrides and serialization."""

    def test_api_key_masked(self):
        settings = WorkflowSettings.from_env({"IMAGEN_AI_API_KEY": "secret"})
        assert settings.to_dict()["imagen"]["api_key"] == "***"

    def test_with_overrides_copies(self):
        settings = WorkflowSettings.from_env({})
        changed = settings.with_overrides(database_path="/tmp/other.db")
        assert changed.database_path == "/tmp/other.db"
        assert settings.database_path != "/tmp/other.db"
