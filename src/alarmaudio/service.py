from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import AudioConfig
from .engine import PlaybackEngine
from .errors import InvalidFadeSpec
from .fade import FadeStep
from .registry import CompleteListener, SessionCompleteListener, SessionRegistry
from .resources import ResourceResolver

logger = logging.getLogger(__name__)

DurationLike = Union[timedelta, int, float]


class VolumeFadeStep(BaseModel):
    """One step of a staircase fade as supplied by callers.

    ``time`` accepts a timedelta or a number of seconds.
    """

    model_config = ConfigDict(frozen=True)

    time: timedelta = Field(..., description="Offset from playback start")
    volume: float = Field(..., ge=0.0, le=1.0, allow_inf_nan=False, description="Target volume [0..1]")

    def to_fade_step(self) -> FadeStep:
        return FadeStep(time_ms=self.time.total_seconds() * 1000.0, volume=self.volume)


def _to_millis(duration: Optional[DurationLike]) -> Optional[float]:
    if duration is None:
        return None
    if isinstance(duration, timedelta):
        return duration.total_seconds() * 1000.0
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise InvalidFadeSpec(f"Fade duration must be a timedelta or seconds, got {duration!r}")
    return float(duration) * 1000.0


def _to_fade_steps(steps: Iterable[Union[VolumeFadeStep, dict, Any]]) -> List[FadeStep]:
    out: List[FadeStep] = []
    for step in steps or ():
        try:
            parsed = step if isinstance(step, VolumeFadeStep) else VolumeFadeStep.model_validate(step)
        except ValidationError as exc:
            raise InvalidFadeSpec(f"Invalid fade step {step!r}: {exc.errors()[0]['msg']}") from exc
        if parsed.time < timedelta(0):
            raise InvalidFadeSpec(f"Fade step time must not be negative: {parsed.time}")
        out.append(parsed.to_fade_step())
    return out


class AudioService:
    """Caller-facing facade over the session registry.

    Usage:
        service = AudioService()
        service.set_on_complete_listener(on_alarm_audio_done)
        service.play_audio(42, "assets/alarm.mp3", loop_audio=True,
                           fade_duration=timedelta(seconds=10))
        ...
        service.stop_audio(42)
        service.clean_up()

    The production engine is arcade-backed; tests inject FakePlaybackEngine.
    """

    def __init__(
        self,
        config: Optional[AudioConfig] = None,
        *,
        engine: Optional[PlaybackEngine] = None,
        resolver: Optional[ResourceResolver] = None,
    ) -> None:
        self.config = config or AudioConfig.load()
        if engine is None:
            from .engine import ArcadeAudioEngine

            engine = ArcadeAudioEngine()
        self.engine = engine
        self.registry = SessionRegistry(engine, resolver, self.config)

    def __enter__(self) -> "AudioService":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.clean_up()

    def set_on_complete_listener(self, listener: Optional[CompleteListener]) -> None:
        self.registry.set_on_complete_listener(listener)

    def set_on_session_complete_listener(self, listener: Optional[SessionCompleteListener]) -> None:
        self.registry.set_on_session_complete_listener(listener)

    def is_empty(self) -> bool:
        return self.registry.is_empty()

    def get_playing_ids(self) -> List[int]:
        return sorted(self.registry.active_keys())

    def play_audio(
        self,
        id: int,
        file_path: str,
        loop_audio: bool = False,
        fade_duration: Optional[DurationLike] = None,
        fade_steps: Iterable[Union[VolumeFadeStep, dict]] = (),
    ) -> None:
        """Start or replace the session for alarm ``id``.

        Raises ResolutionFailed, OpenFailed or InvalidFadeSpec; on failure no
        session is left registered under ``id``.
        """
        self.registry.start(
            id,
            file_path,
            loop=loop_audio,
            fade_duration_ms=_to_millis(fade_duration),
            fade_steps=_to_fade_steps(fade_steps),
        )

    def stop_audio(self, id: int) -> None:
        self.registry.stop(id)

    def clean_up(self) -> None:
        self.registry.teardown_all()
