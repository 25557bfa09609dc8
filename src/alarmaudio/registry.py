from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, Optional, Set

from .config import AudioConfig
from .engine import PlaybackEngine, PlaybackHandle
from .errors import OpenFailed
from .fade import FadeCurve, build_fade_curve
from .resources import ResourceResolver
from .timers import Clock, FadeScheduler, Watchdog

logger = logging.getLogger(__name__)

CompleteListener = Callable[[], None]
SessionCompleteListener = Callable[[int], None]


@dataclass(eq=False)
class Session:
    """One active playback under a caller-assigned key.

    The handle is owned exclusively by the session. ``scheduler`` is present
    only while a fade is configured; ``watchdog`` is armed for every started
    session.
    """

    key: int
    handle: PlaybackHandle
    loop: bool
    curve: Optional[FadeCurve] = None
    scheduler: Optional[FadeScheduler] = None
    watchdog: Optional[Watchdog] = None
    completed: bool = False


@dataclass(eq=False)
class _KeyLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


class SessionRegistry:
    """Concurrent map from session key to playback session.

    Responsibilities:
    - Start sessions, replacing any session already registered under the key
    - Drive fade-in schedulers and arm the auto-stop watchdog per session
    - Tear sessions down on stop, watchdog expiry or teardown_all
    - Raise the completion notification on natural end-of-stream (non-looping
      sessions only) and on watchdog expiry

    Locking: a short-held registry lock guards the map, and a re-entrant lock
    per key serializes start/stop/expiry of that key. Teardown runs in three
    phases: cancel timers (synchronously), release the handle, remove the key.
    """

    def __init__(
        self,
        engine: PlaybackEngine,
        resolver: Optional[ResourceResolver] = None,
        config: Optional[AudioConfig] = None,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self._engine = engine
        self._config = config or AudioConfig.default()
        self._resolver = resolver or ResourceResolver(
            assets_dir=self._config.assets_dir, documents_dir=self._config.documents_dir
        )
        self._clock = clock

        self._lock = threading.RLock()
        self._sessions: Dict[int, Session] = {}
        self._key_locks: Dict[int, _KeyLock] = {}

        self._on_complete: Optional[CompleteListener] = None
        self._on_session_complete: Optional[SessionCompleteListener] = None

    # -----------------
    # Public API
    # -----------------

    @property
    def config(self) -> AudioConfig:
        return self._config

    def set_on_complete_listener(self, listener: Optional[CompleteListener]) -> None:
        """Register the process-wide completion signal (no session identity)."""
        self._on_complete = listener

    def set_on_session_complete_listener(self, listener: Optional[SessionCompleteListener]) -> None:
        """Register a completion listener that receives the completed session's key."""
        self._on_session_complete = listener

    def start(
        self,
        key: int,
        resource_ref: str,
        *,
        loop: bool = False,
        fade_duration_ms: Optional[float] = None,
        fade_steps: Iterable = (),
    ) -> Session:
        """Start (or replace) the session at ``key``.

        Raises InvalidFadeSpec before touching any existing session, and
        ResolutionFailed/OpenFailed with no session left registered.
        """
        curve = build_fade_curve(fade_duration_ms, fade_steps)

        with self._key_locked(key):
            if self._teardown(key):
                logger.info("Session %s replaced", key)

            resource = self._resolver.resolve(resource_ref)
            try:
                handle = self._engine.open(resource)
            except Exception as exc:
                raise OpenFailed(f"Could not open {resource.path} for session {key}: {exc}") from exc

            session = Session(key=key, handle=handle, loop=bool(loop), curve=curve)
            try:
                handle.set_looping(session.loop)
                handle.set_on_completion(lambda: self._on_end_of_stream(session))
                if curve is not None:
                    self._set_volume(handle, curve.volume_at(0))
                handle.play()
                if curve is not None:
                    session.scheduler = FadeScheduler(
                        handle,
                        curve,
                        interval_ms=self._config.tick_interval_ms,
                        volume_range=self._config.volume_range,
                        clock=self._clock,
                        name=f"fade-{key}",
                    )
                    session.scheduler.start()
                session.watchdog = Watchdog(
                    self._config.watchdog_timeout_ms,
                    lambda: self._expire(session),
                    name=f"watchdog-{key}",
                )
                session.watchdog.start()
            except Exception as exc:
                self._cancel_timers(session)
                self._release(session)
                raise OpenFailed(f"Could not start playback of {resource.path} for session {key}: {exc}") from exc

            with self._lock:
                self._sessions[key] = session

        logger.info(
            "Session %s started: ref=%s loop=%s fade=%s",
            key,
            resource_ref,
            session.loop,
            type(curve).__name__ if curve is not None else "none",
        )
        return session

    def stop(self, key: int) -> bool:
        """Stop the session at ``key``. Returns False if there was none."""
        with self._key_locked(key):
            stopped = self._teardown(key)
        if stopped:
            logger.info("Session %s stopped", key)
        return stopped

    def teardown_all(self) -> int:
        """Stop every session. Returns how many were torn down."""
        with self._lock:
            keys = list(self._sessions)
        count = sum(1 for key in keys if self.stop(key))
        logger.info("Tore down %d session(s)", count)
        return count

    def is_empty(self) -> bool:
        with self._lock:
            return not self._sessions

    def active_keys(self) -> Set[int]:
        """Keys whose handle currently reports playing."""
        with self._lock:
            sessions = list(self._sessions.values())
        active: Set[int] = set()
        for session in sessions:
            try:
                if session.handle.is_playing():
                    active.add(session.key)
            except Exception:
                logger.debug("is_playing failed for session %s", session.key, exc_info=True)
        return active

    def get(self, key: int) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # -----------------
    # Internal helpers
    # -----------------

    @contextmanager
    def _key_locked(self, key: int) -> Iterator[None]:
        # Entries live only while some thread holds or waits on them
        with self._lock:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.users -= 1
                if entry.users == 0 and self._key_locks.get(key) is entry:
                    del self._key_locks[key]

    def _set_volume(self, handle: PlaybackHandle, volume: float) -> None:
        v = self._config.clamp_volume(volume)
        handle.set_volume(v, v)

    def _teardown(self, key: int) -> bool:
        # Caller holds the key lock.
        with self._lock:
            session = self._sessions.get(key)
        if session is None:
            return False
        # Phase 1: no timer may touch the handle after this
        self._cancel_timers(session)
        # Phase 2
        self._release(session)
        # Phase 3
        with self._lock:
            if self._sessions.get(key) is session:
                del self._sessions[key]
        return True

    @staticmethod
    def _cancel_timers(session: Session) -> None:
        if session.scheduler is not None:
            session.scheduler.cancel()
        if session.watchdog is not None:
            session.watchdog.cancel()

    def _release(self, session: Session) -> None:
        handle = session.handle
        try:
            if handle.is_playing():
                handle.stop()
        except Exception:
            logger.exception("Failed to stop playback for session %s", session.key)
        try:
            handle.reset()
        except Exception:
            logger.exception("Failed to reset playback for session %s", session.key)
        try:
            handle.release()
        except Exception:
            logger.exception("Failed to release playback for session %s", session.key)

    def _expire(self, session: Session) -> None:
        with self._key_locked(session.key):
            with self._lock:
                current = self._sessions.get(session.key)
            if current is not session:
                logger.debug("Watchdog for session %s fired after the session ended", session.key)
                return
            logger.info(
                "Session %s reached the %d ms playback limit; stopping",
                session.key,
                self._config.watchdog_timeout_ms,
            )
            self._teardown(session.key)
        self._notify(session.key)

    def _on_end_of_stream(self, session: Session) -> None:
        if session.loop:
            return
        with self._lock:
            if session.completed:
                return
            session.completed = True
        logger.info("Session %s finished playing", session.key)
        self._notify(session.key)

    def _notify(self, key: int) -> None:
        listener = self._on_complete
        if listener is not None:
            try:
                listener()
            except Exception:
                logger.exception("On-complete listener failed")
        keyed = self._on_session_complete
        if keyed is not None:
            try:
                keyed(key)
            except Exception:
                logger.exception("On-session-complete listener failed for session %s", key)
