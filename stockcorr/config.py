"""
Settings for the correlation engine's outer layers.

Settings come from a YAML file (config/settings.yaml by default) and can be
overridden per key with STOCKCORR_<KEY> environment variables, e.g.
STOCKCORR_API_BASE or STOCKCORR_WINDOW_CHOICES=10,30,60.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Mapping, Optional
import yaml
from stockcorr.errors import ConfigError

DEFAULT_SETTINGS_PATH = Path(__file__).parent.parent / "config" / "settings.yaml"
ENV_PREFIX = "STOCKCORR_"
FETCH_ERROR_POLICIES = ("abort", "empty")


@dataclass
class Settings:
    """
    Runtime settings.

    Representation Invariants:
        - api_base is a non-empty http(s) URL
        - request_timeout > 0 and max_workers > 0
        - window_choices is non-empty, all positive, and contains
          default_window_minutes
        - on_fetch_error is "abort" or "empty"
    """
    api_base: str = "http://20.244.56.144/evaluation-service"
    request_timeout: float = 10.0
    default_window_minutes: int = 30
    window_choices: List[int] = field(default_factory=lambda: [10, 30, 60, 120])
    max_workers: int = 8
    use_cache: bool = False
    cache_dir: str = ".cache"
    cache_max_age_seconds: float = 10.0
    on_fetch_error: str = "abort"
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate representation invariants."""
        if not self.api_base or not self.api_base.startswith(("http://", "https://")):
            raise ConfigError(f"api_base must be an http(s) URL, got {self.api_base!r}")
        self.api_base = self.api_base.rstrip("/")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        if self.max_workers <= 0:
            raise ConfigError("max_workers must be positive")
        if self.cache_max_age_seconds <= 0:
            raise ConfigError("cache_max_age_seconds must be positive")
        if not self.window_choices or any(w <= 0 for w in self.window_choices):
            raise ConfigError("window_choices must be a non-empty list of positive minutes")
        if self.default_window_minutes not in self.window_choices:
            raise ConfigError(
                f"default_window_minutes {self.default_window_minutes} is not in window_choices"
            )
        if self.on_fetch_error not in FETCH_ERROR_POLICIES:
            raise ConfigError(
                f"on_fetch_error must be one of {FETCH_ERROR_POLICIES}, got {self.on_fetch_error!r}"
            )


def _coerce(name: str, raw, target_type):
    """Convert a YAML or environment value to the field's type."""
    try:
        if target_type is bool:
            if isinstance(raw, bool):
                return raw
            value = str(raw).strip().lower()
            if value in ("1", "true", "yes", "on"):
                return True
            if value in ("0", "false", "no", "off"):
                return False
            raise ValueError(f"not a boolean: {raw!r}")
        if target_type is int:
            if isinstance(raw, bool):
                raise ValueError(f"not an integer: {raw!r}")
            return int(raw)
        if target_type is float:
            return float(raw)
        if target_type is str:
            return str(raw)
        # List[int]
        if isinstance(raw, str):
            raw = [part for part in raw.split(",") if part.strip()]
        return [int(item) for item in raw]
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value for {name}: {e}") from e


_FIELD_TYPES = {
    "api_base": str,
    "request_timeout": float,
    "default_window_minutes": int,
    "window_choices": list,
    "max_workers": int,
    "use_cache": bool,
    "cache_dir": str,
    "cache_max_age_seconds": float,
    "on_fetch_error": str,
    "log_level": str,
}


def load_settings(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """
    Load settings from YAML, then apply environment overrides.

    Args:
        path: YAML file to read. Defaults to config/settings.yaml; a missing
            default file is not an error, a missing explicit path is.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated Settings

    Raises:
        ConfigError: If the file is unreadable, not a mapping, has unknown
            keys, or any value is invalid
    """
    environ = os.environ if environ is None else environ
    settings_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH

    values = {}
    if settings_path.exists():
        try:
            with open(settings_path) as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read settings file {settings_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"settings file {settings_path} must contain a mapping")
        values.update(loaded)
    elif path is not None:
        raise ConfigError(f"settings file not found: {settings_path}")

    known = {f.name for f in fields(Settings)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"unknown settings: {', '.join(sorted(unknown))}")

    for name in known:
        env_value = environ.get(ENV_PREFIX + name.upper())
        if env_value is not None:
            values[name] = env_value

    coerced = {name: _coerce(name, raw, _FIELD_TYPES[name]) for name, raw in values.items()}
    return Settings(**coerced)
