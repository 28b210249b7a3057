"""Layered configuration for groq-whisper.

Settings are resolved once per invocation, lowest priority first: built-in
defaults, the YAML config file, environment variables, command line flags.
"""

import os
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/groq/whisper.yaml")
DEFAULT_API_URL = "https://api.groq.com/openai/v1/audio/transcriptions"

BACKENDS = ("pyaudio", "sox")
METRICS = ("rms", "peak")

# Environment variable -> settings field
ENVIRONMENT_OVERRIDES = {
    "GROQ_API_KEY": "api_key",
    "GROQ_WHISPER_MIC": "mic",
}


@dataclass(frozen=True)
class Settings:
    """Immutable settings for one CLI invocation.

    ``silence_threshold`` is a percentage of full-scale amplitude, as in the
    config file; lower values are more sensitive (quieter sounds count as
    speech). Use ``silence_threshold_fraction`` for the detector.
    """
    api_key: Optional[str] = None
    mic: Optional[str] = None
    duration: float = 60.0
    silence_duration: float = 3.0
    silence_threshold: float = 0.2
    silence_metric: str = "rms"
    start_prompt: str = "🎙️"
    model: str = "whisper-large-v3-turbo"
    language: str = "en"
    backend: str = "pyaudio"
    chunk_size: int = 1600
    startup_timeout: float = 5.0
    stop_grace: float = 2.0
    trim_leading_silence: bool = False
    keep_partial_on_cancel: bool = True
    request_timeout: float = 60.0
    api_url: str = DEFAULT_API_URL
    log_file: Optional[str] = None

    @property
    def silence_threshold_fraction(self) -> float:
        return self.silence_threshold / 100.0

    def require_api_key(self) -> str:
        """Get the API key - raises if not configured."""
        if not self.api_key:
            raise ConfigError("GROQ_API_KEY environment variable not set")
        return self.api_key


_FIELD_TYPES = {f.name: f.type for f in fields(Settings)}


class GroqWhisperConfig:
    """YAML configuration file loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, the default
                ~/.config/groq/whisper.yaml is used when it exists.
        """
        explicit = config_path is not None
        self.config_file = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()

        if not self.config_file.exists():
            if explicit:
                raise ConfigError(f"Configuration file not found: {self.config_file}")
            logger.debug(f"No configuration file at {self.config_file}, using defaults")
            self.config: Dict[str, Any] = {}
            return

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to load configuration: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(f"Configuration file must contain a mapping: {self.config_file}")

        unknown = sorted(set(config) - set(_FIELD_TYPES))
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        logger.info("Configuration loaded successfully")
        return config

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)


def _coerce(key: str, value: Any) -> Any:
    """Convert a raw file/environment value to the settings field type."""
    if value is None:
        return None
    field_type = _FIELD_TYPES[key]
    try:
        if field_type is float:
            return float(value)
        if field_type is int:
            return int(value)
        if field_type is bool:
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in ("1", "true", "yes", "on"):
                    return True
                if lowered in ("0", "false", "no", "off"):
                    return False
                raise ValueError(value)
            return bool(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e
    return str(value)


def validate_settings(settings: Settings) -> Settings:
    """Check ranges and choices; returns the settings unchanged."""
    for key in ("duration", "silence_duration", "startup_timeout", "stop_grace", "request_timeout"):
        if getattr(settings, key) <= 0:
            raise ConfigError(f"{key} must be positive, got {getattr(settings, key)}")
    if not 0 < settings.silence_threshold <= 100:
        raise ConfigError(
            f"silence_threshold is a percentage in (0, 100], got {settings.silence_threshold}")
    if settings.chunk_size <= 0:
        raise ConfigError(f"chunk_size must be positive, got {settings.chunk_size}")
    if settings.backend not in BACKENDS:
        raise ConfigError(f"Unknown backend {settings.backend!r}, expected one of {BACKENDS}")
    if settings.silence_metric not in METRICS:
        raise ConfigError(f"Unknown silence_metric {settings.silence_metric!r}, expected one of {METRICS}")
    return settings


def resolve_settings(
    config: Optional[GroqWhisperConfig] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Settings:
    """Merge defaults, config file, environment and CLI overrides.

    Args:
        config: Loaded config file, or None for defaults only
        environ: Environment mapping (os.environ when None)
        **overrides: Command line values; None means "not given"
    """
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    if config is not None:
        for key, value in config.config.items():
            if key in _FIELD_TYPES and value is not None:
                values[key] = _coerce(key, value)

    for env_name, key in ENVIRONMENT_OVERRIDES.items():
        if environ.get(env_name):
            values[key] = environ[env_name]
            logger.debug(f"{key} taken from ${env_name}")

    for key, value in overrides.items():
        if key not in _FIELD_TYPES:
            raise ConfigError(f"Unknown setting: {key}")
        if value is not None:
            values[key] = _coerce(key, value)

    settings = validate_settings(replace(Settings(), **values))
    logger.debug(f"Settings: mic={settings.mic or 'default'}, duration={settings.duration}s, "
                 f"silence={settings.silence_duration}s@{settings.silence_threshold}%, "
                 f"model={settings.model}, language={settings.language}, backend={settings.backend}")
    return settings
