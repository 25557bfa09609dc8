from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional, Tuple

from .engine import PlaybackHandle
from .fade import FadeCurve

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class FadeScheduler:
    """Drives a FadeCurve into one playback handle on a fixed tick.

    The first tick runs as soon as the scheduler starts; afterwards one tick
    per ``interval_ms``. Each tick reads the elapsed time from ``clock`` and
    pushes ``curve.volume_at(elapsed)`` to both channels of the handle.

    The scheduler stops itself when:
    - the handle no longer reports playing
    - the curve is done (terminal volume is applied once first)
    - the handle raises, which means the session was torn down underneath us

    ``cancel()`` is synchronous: once it returns no tick will touch the handle.
    """

    def __init__(
        self,
        handle: PlaybackHandle,
        curve: FadeCurve,
        *,
        interval_ms: float = 100,
        volume_range: Tuple[float, float] = (0.0, 1.0),
        clock: Clock = time.monotonic,
        name: str = "fade",
    ) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0, got {interval_ms!r}")
        self._handle = handle
        self._curve = curve
        self._interval = interval_ms / 1000.0
        self._lo, self._hi = volume_range
        self._clock = clock
        self._name = name

        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started_at: Optional[float] = None
        self.ticks = 0

    @property
    def curve(self) -> FadeCurve:
        return self._curve

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def elapsed_ms(self) -> float:
        if self._started_at is None:
            return 0.0
        return max(0.0, (self._clock() - self._started_at) * 1000.0)

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"FadeScheduler {self._name} already started")
        self._started_at = self._clock()
        self._thread = threading.Thread(target=self._run, name=f"alarmaudio-{self._name}", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while self.tick():
            if self._cancelled.wait(self._interval):
                break
        logger.debug("Fade %s finished after %d ticks", self._name, self.ticks)

    def tick(self) -> bool:
        """Run one fade step. Returns False once the scheduler is finished."""
        with self._lock:
            if self._cancelled.is_set():
                return False
            if self._started_at is None:
                self._started_at = self._clock()
            try:
                if not self._handle.is_playing():
                    logger.debug("Fade %s: handle no longer playing; stopping", self._name)
                    self._cancelled.set()
                    return False
                elapsed = self.elapsed_ms()
                self.ticks += 1
                if self._curve.is_done(elapsed):
                    self._apply(self._curve.final_volume)
                    self._cancelled.set()
                    return False
                self._apply(self._curve.volume_at(elapsed))
            except Exception:
                logger.debug("Fade %s: handle failed mid-tick; treating session as gone", self._name, exc_info=True)
                self._cancelled.set()
                return False
        return True

    def _apply(self, volume: float) -> None:
        v = max(self._lo, min(self._hi, float(volume)))
        self._handle.set_volume(v, v)

    def cancel(self) -> None:
        # Taking the lock waits out a tick that is already in flight
        with self._lock:
            self._cancelled.set()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join()


class _WatchdogState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    FIRED = "fired"
    CANCELLED = "cancelled"


class Watchdog:
    """One-shot deferred action with race-free cancellation.

    Exactly one of ``cancel()`` and the timer expiry wins. ``cancel()``
    returns True when it prevented the action (and waits for the timer thread
    to exit); it returns False when the action already started, in which case
    it does not wait, so a caller holding a lock the action needs cannot
    deadlock.
    """

    def __init__(self, timeout_ms: float, action: Callable[[], None], *, name: str = "watchdog") -> None:
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {timeout_ms!r}")
        self._timeout = timeout_ms / 1000.0
        self._action = action
        self._name = name
        self._lock = threading.Lock()
        self._wakeup = threading.Event()
        self._state = _WatchdogState.IDLE
        self._thread: Optional[threading.Thread] = None

    @property
    def fired(self) -> bool:
        return self._state is _WatchdogState.FIRED

    @property
    def armed(self) -> bool:
        return self._state is _WatchdogState.ARMED

    def start(self) -> None:
        with self._lock:
            if self._state is not _WatchdogState.IDLE:
                raise RuntimeError(f"Watchdog {self._name} already started")
            self._state = _WatchdogState.ARMED
        self._thread = threading.Thread(target=self._run, name=f"alarmaudio-{self._name}", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        if self._wakeup.wait(self._timeout):
            return
        self.fire()

    def fire(self) -> bool:
        """Run the action now unless cancelled or already fired. Returns True if it ran."""
        with self._lock:
            if self._state is not _WatchdogState.ARMED:
                return False
            self._state = _WatchdogState.FIRED
        logger.debug("Watchdog %s expired", self._name)
        try:
            self._action()
        except Exception:
            logger.exception("Watchdog %s action failed", self._name)
        return True

    def cancel(self) -> bool:
        with self._lock:
            if self._state is _WatchdogState.FIRED:
                return False
            was_armed = self._state is _WatchdogState.ARMED
            self._state = _WatchdogState.CANCELLED
        self._wakeup.set()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join()
        return was_armed
