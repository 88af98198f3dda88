"""
WorkflowSettings: one explicit configuration object for the whole pipeline.

Settings are frozen once built. The CLI builds them from the environment
(after loading a .env file) and passes them into the client, the compositing
runner and the job engine. Nothing below the CLI reads os.environ.
"""

import os
from dataclasses import dataclass, field, asdict, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


DEFAULT_BASE_URL = "https://api-beta.imagen-ai.com/v1"
DEFAULT_PROFILE_KEY = "309406"
DEFAULT_DATABASE_PATH = str(Path.home() / ".flambient" / "flambient.db")


class SettingsError(ValueError):
    """Raised when an environment value cannot be parsed."""

    def __init__(self, variable: str, value: str, expected: str):
        self.variable = variable
        self.value = value
        super().__init__(f"Invalid value for {variable}: {value!r} (expected {expected})")


@dataclass(frozen=True)
class ImagenSettings:
    """Remote editing service connection and polling parameters."""

    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    profile_key: str = DEFAULT_PROFILE_KEY
    timeout: float = 30.0
    retry_times: int = 3
    retry_backoff: float = 1.0
    transfer_timeout: float = 300.0
    poll_interval: float = 30.0
    poll_max_attempts: int = 240
    export_link_retry_delay: float = 10.0


@dataclass(frozen=True)
class BlendSettings:
    """Compositing engine binary and default blend parameters."""

    binary: str = "magick"
    level_low: str = "40%"
    level_high: str = "140%"
    gamma: str = "1.0"
    output_prefix: str = "flambient"
    darken_export: bool = False
    darken_suffix: str = "_tmp"
    run_timeout: float = 1800.0


@dataclass(frozen=True)
class WorkflowSettings:
    """
    Complete pipeline configuration.

    parallel_uploads / parallel_downloads of 1 keep transfers sequential;
    larger values enable a bounded worker pool inside the transfer steps.
    """

    imagen: ImagenSettings = field(default_factory=ImagenSettings)
    blend: BlendSettings = field(default_factory=BlendSettings)
    database_path: str = DEFAULT_DATABASE_PATH
    parallel_uploads: int = 1
    parallel_downloads: int = 1
    exiftool_binary: str = "exiftool"
    verify_uploads: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a plain dict (API key masked)."""
        data = asdict(self)
        if data["imagen"]["api_key"]:
            data["imagen"]["api_key"] = "***"
        return data

    def with_overrides(self, **changes: Any) -> "WorkflowSettings":
        """Return a copy with top-level fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "WorkflowSettings":
        """
        Build settings from environment variables.

        Unset variables fall back to the dataclass defaults.

        Raises:
            SettingsError: If a numeric or boolean variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        defaults_imagen = ImagenSettings()
        defaults_blend = BlendSettings()

        imagen = ImagenSettings(
            api_key=env.get("IMAGEN_AI_API_KEY") or None,
            base_url=env.get("IMAGEN_API_BASE_URL", defaults_imagen.base_url).rstrip("/"),
            profile_key=env.get("IMAGEN_PROFILE_KEY", defaults_imagen.profile_key),
            timeout=_float(env, "IMAGEN_TIMEOUT", defaults_imagen.timeout),
            retry_times=_int(env, "IMAGEN_RETRY_TIMES", defaults_imagen.retry_times, minimum=1),
            poll_interval=_float(env, "IMAGEN_POLL_INTERVAL", defaults_imagen.poll_interval),
            poll_max_attempts=_int(env, "IMAGEN_POLL_MAX_ATTEMPTS", defaults_imagen.poll_max_attempts, minimum=1),
        )
        blend = BlendSettings(
            binary=env.get("IMAGEMAGICK_BINARY", defaults_blend.binary),
            level_low=env.get("IMAGEMAGICK_LEVEL_LOW", defaults_blend.level_low),
            level_high=env.get("IMAGEMAGICK_LEVEL_HIGH", defaults_blend.level_high),
            gamma=env.get("IMAGEMAGICK_GAMMA", defaults_blend.gamma),
            output_prefix=env.get("IMAGEMAGICK_OUTPUT_PREFIX", defaults_blend.output_prefix),
            darken_export=_bool(env, "IMAGEMAGICK_DARKEN_EXPORT", defaults_blend.darken_export),
        )
        return cls(
            imagen=imagen,
            blend=blend,
            database_path=env.get("FLAMBIENT_DATABASE", DEFAULT_DATABASE_PATH),
            parallel_uploads=_int(env, "FLAMBIENT_PARALLEL_UPLOADS", 1, minimum=1),
            parallel_downloads=_int(env, "FLAMBIENT_PARALLEL_DOWNLOADS", 1, minimum=1),
            exiftool_binary=env.get("EXIFTOOL_BINARY", "exiftool"),
        )


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise SettingsError(name, raw, "an integer") from None
    if value < minimum:
        raise SettingsError(name, raw, f"an integer >= {minimum}")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise SettingsError(name, raw, "a number") from None
    if value < 0:
        raise SettingsError(name, raw, "a non-negative number")
    return value


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise SettingsError(name, raw, "true/false")


DEFAULT_SETTINGS = WorkflowSettings()
