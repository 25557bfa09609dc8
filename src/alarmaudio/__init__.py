"""
Alarm audio playback sessions.

This package supervises concurrently playing audio sessions keyed by alarm id:
- Linear and staircase fade-in curves driven by a per-session scheduler
- A per-session watchdog that force-stops playback after a fixed limit
- A session registry that guarantees timers are cancelled before handles are
  released, whichever path ends a session

Audio output is pluggable (arcade-backed in production, fake in tests).
"""
from importlib.metadata import version, PackageNotFoundError

from .config import AudioConfig
from .engine import FakePlaybackEngine, FakePlaybackHandle, PlaybackEngine, PlaybackHandle
from .errors import AudioError, BackendUnavailable, ConfigError, InvalidFadeSpec, OpenFailed, ResolutionFailed
from .fade import FadeCurve, FadeStep, LinearFade, StaircaseFade, build_fade_curve
from .registry import Session, SessionRegistry
from .resources import ResolvedResource, ResourceKind, ResourceResolver
from .service import AudioService, VolumeFadeStep
from .timers import FadeScheduler, Watchdog

try:
    __version__ = version("alarmaudio")
except PackageNotFoundError:  # pragma: no cover - during tests without packaging
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "AudioConfig",
    "AudioError",
    "AudioService",
    "BackendUnavailable",
    "ConfigError",
    "FadeCurve",
    "FadeScheduler",
    "FadeStep",
    "FakePlaybackEngine",
    "FakePlaybackHandle",
    "InvalidFadeSpec",
    "LinearFade",
    "OpenFailed",
    "PlaybackEngine",
    "PlaybackHandle",
    "ResolutionFailed",
    "ResolvedResource",
    "ResourceKind",
    "ResourceResolver",
    "Session",
    "SessionRegistry",
    "StaircaseFade",
    "VolumeFadeStep",
    "Watchdog",
    "build_fade_curve",
]
