class AudioError(Exception):
    """Base error for alarmaudio playback exceptions."""


class ResolutionFailed(AudioError):
    """Raised when a resource reference cannot be mapped to a playable resource."""


class OpenFailed(AudioError):
    """Raised when the playback engine cannot open, prepare or start a resource."""


class InvalidFadeSpec(AudioError, ValueError):
    """Raised for malformed fade parameters (bad control points or durations)."""


class ConfigError(AudioError, ValueError):
    """Raised when configuration values are out of range."""


class BackendUnavailable(AudioError):
    """Raised when the audio backend library cannot be loaded."""
