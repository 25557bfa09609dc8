from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from platformdirs import user_config_dir

from .errors import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "alarmaudio"

# Points at a JSON file that replaces the default config location
ENV_CONFIG_PATH = "ALARMAUDIO_CONFIG"


def default_config_path() -> Path:
    env = os.getenv(ENV_CONFIG_PATH)
    if env:
        return Path(env).expanduser()
    return Path(user_config_dir(appname=APP_NAME, appauthor=False)) / "config.json"


@dataclass
class AudioConfig:
    """
    Playback timing and volume configuration with sensible defaults.

    You can override by providing a JSON file (see ``default_config_path``) with keys:
      - tick_interval_ms: int (default 100), fade scheduler tick period
      - watchdog_timeout_ms: int (default 180000), hard cap on session length
      - min_volume: float (default 0.0)
      - max_volume: float (default 1.0)
      - assets_dir: str (default None, current working directory)
      - documents_dir: str (default None, platform user data directory)
    """

    tick_interval_ms: int = 100
    watchdog_timeout_ms: int = 180_000
    min_volume: float = 0.0
    max_volume: float = 1.0
    assets_dir: Optional[str] = None
    documents_dir: Optional[str] = None

    def __post_init__(self) -> None:
        self.tick_interval_ms = _positive_millis("tick_interval_ms", self.tick_interval_ms)
        self.watchdog_timeout_ms = _positive_millis("watchdog_timeout_ms", self.watchdog_timeout_ms)
        try:
            lo, hi = float(self.min_volume), float(self.max_volume)
        except (TypeError, ValueError) as exc:
            raise ConfigError("min_volume and max_volume must be numbers") from exc
        if not (0.0 <= lo <= hi <= 1.0):
            raise ConfigError(f"volume range must satisfy 0 <= min <= max <= 1, got [{lo}, {hi}]")
        self.min_volume, self.max_volume = lo, hi

    @property
    def volume_range(self) -> Tuple[float, float]:
        return self.min_volume, self.max_volume

    def clamp_volume(self, volume: float) -> float:
        if volume != volume:  # NaN check
            return self.min_volume
        return max(self.min_volume, min(self.max_volume, float(volume)))

    @staticmethod
    def default() -> "AudioConfig":
        return AudioConfig()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AudioConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown audio config keys: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "AudioConfig":
        cfg_path = Path(path) if path is not None else default_config_path()
        if not cfg_path.exists():
            logger.debug("No audio config at %s; using defaults", cfg_path)
            return cls.default()
        try:
            data = json.loads(cfg_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to load audio config from %s: %s", cfg_path, e)
            return cls.default()
        if not isinstance(data, dict):
            logger.warning("Audio config at %s must be an object mapping", cfg_path)
            return cls.default()
        cfg = cls.from_dict(data)
        logger.info("Loaded audio config from %s", cfg_path)
        return cfg


def _positive_millis(name: str, value: Any) -> Union[int, float]:
    """Coerce a millisecond setting (which may arrive as a JSON string) to a number."""
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number of milliseconds, got {value!r}")
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number of milliseconds, got {value!r}") from exc
    if not (math.isfinite(v) and v > 0):
        raise ConfigError(f"{name} must be > 0, got {value!r}")
    return int(v) if v.is_integer() else v
