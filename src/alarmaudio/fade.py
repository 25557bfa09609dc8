from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from bisect import bisect_left
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidFadeSpec

logger = logging.getLogger(__name__)


class FadeStep(BaseModel):
    """A staircase control point: the target volume at an offset from playback start."""

    model_config = ConfigDict(frozen=True)

    time_ms: float = Field(..., ge=0, allow_inf_nan=False, description="Offset from playback start in milliseconds")
    volume: float = Field(..., ge=0.0, le=1.0, allow_inf_nan=False, description="Target volume [0..1]")


class FadeCurve(ABC):
    """Maps elapsed playback time (milliseconds) to a target volume in [0, 1].

    Curves are immutable and stateless; the scheduler polls them with the
    elapsed time on every tick.
    """

    @abstractmethod
    def volume_at(self, elapsed_ms: float) -> float:
        """Return the target volume at ``elapsed_ms`` after playback started."""

    @abstractmethod
    def is_done(self, elapsed_ms: float) -> bool:
        """Return True once the curve has reached its terminal volume."""

    @property
    @abstractmethod
    def final_volume(self) -> float:
        """Volume applied once when the curve completes."""


@dataclass(frozen=True)
class LinearFade(FadeCurve):
    """Uniform ramp from silence to full volume over ``duration_ms``."""

    duration_ms: float

    def __post_init__(self) -> None:
        d = self.duration_ms
        if isinstance(d, bool) or not isinstance(d, (int, float)) or not math.isfinite(d) or d <= 0:
            raise InvalidFadeSpec(f"Linear fade duration must be a positive number of ms, got {d!r}")

    def volume_at(self, elapsed_ms: float) -> float:
        t = max(0.0, float(elapsed_ms))
        return max(0.0, min(1.0, t / self.duration_ms))

    def is_done(self, elapsed_ms: float) -> bool:
        return elapsed_ms >= self.duration_ms

    @property
    def final_volume(self) -> float:
        return 1.0


class StaircaseFade(FadeCurve):
    """Piecewise fade through ordered control points with linear interpolation.

    For elapsed time ``t`` the first control point whose time is >= ``t`` is
    located. Before (or at) the first point the curve holds that point's
    volume; between two points it interpolates linearly. The curve is done
    once ``t`` reaches the last control point.
    """

    def __init__(self, steps: Iterable[Union[FadeStep, dict, Any]]) -> None:
        parsed = tuple(_coerce_step(s) for s in steps)
        if not parsed:
            raise InvalidFadeSpec("Staircase fade needs at least one control point")
        for i in range(1, len(parsed)):
            if parsed[i].time_ms < parsed[i - 1].time_ms:
                raise InvalidFadeSpec(
                    f"Staircase control points must be ordered by time: "
                    f"step {i} at {parsed[i].time_ms}ms precedes step {i - 1} at {parsed[i - 1].time_ms}ms"
                )
        self._steps: Tuple[FadeStep, ...] = parsed
        self._times: Tuple[float, ...] = tuple(s.time_ms for s in parsed)

    @property
    def steps(self) -> Tuple[FadeStep, ...]:
        return self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        points = ", ".join(f"({s.time_ms:g}, {s.volume:g})" for s in self._steps)
        return f"StaircaseFade([{points}])"

    def _locate(self, t: float) -> Optional[int]:
        idx = bisect_left(self._times, t)
        return idx if idx < len(self._times) else None

    def volume_at(self, elapsed_ms: float) -> float:
        t = max(0.0, float(elapsed_ms))
        idx = self._locate(t)
        if idx is None:
            return self.final_volume
        nxt = self._steps[idx]
        if idx == 0:
            return nxt.volume
        prev = self._steps[idx - 1]
        span = nxt.time_ms - prev.time_ms
        if span <= 0:
            # Coincident control points: jump straight to the later one
            return nxt.volume
        return prev.volume + (nxt.volume - prev.volume) * (t - prev.time_ms) / span

    def is_done(self, elapsed_ms: float) -> bool:
        return elapsed_ms >= self._times[-1]

    @property
    def final_volume(self) -> float:
        return self._steps[-1].volume


def _coerce_step(step: Union[FadeStep, dict, Any]) -> FadeStep:
    if isinstance(step, FadeStep):
        return step
    try:
        if isinstance(step, dict):
            return FadeStep.model_validate(step)
        # (time_ms, volume) pairs
        time_ms, volume = step
        return FadeStep(time_ms=time_ms, volume=volume)
    except ValidationError as exc:
        raise InvalidFadeSpec(f"Invalid fade step {step!r}: {exc.errors()[0]['msg']}") from exc
    except (TypeError, ValueError) as exc:
        raise InvalidFadeSpec(f"Invalid fade step {step!r}") from exc


def build_fade_curve(
    fade_duration_ms: Optional[float] = None,
    fade_steps: Iterable[Union[FadeStep, dict, Any]] = (),
) -> Optional[FadeCurve]:
    """Choose the fade for a session.

    A non-empty staircase wins over a linear duration; a missing or zero
    duration with no steps means no fade at all (playback at current volume).
    """
    steps = list(fade_steps or ())
    if steps:
        return StaircaseFade(steps)
    if fade_duration_ms is None:
        return None
    try:
        duration = float(fade_duration_ms)
    except (TypeError, ValueError) as exc:
        raise InvalidFadeSpec(f"Fade duration must be a number of ms, got {fade_duration_ms!r}") from exc
    if duration == 0:
        return None
    return LinearFade(duration)
