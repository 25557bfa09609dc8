from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Set, Tuple

from .errors import BackendUnavailable
from .resources import ResolvedResource

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[], None]


class PlaybackHandle(Protocol):
    """Protocol defining the controls a single playback instance must implement.

    Implementations should be lightweight wrappers around the underlying audio
    library's player object (e.g., pyglet via Arcade) so that sessions can be
    controlled deterministically and unit-tested with a Fake implementation.
    """

    def play(self) -> None:
        """Begin playback."""

    def stop(self) -> None:
        """Stop playback. The handle can still be reset afterwards."""

    def reset(self) -> None:
        """Return the handle to a neutral, not-playing state."""

    def release(self) -> None:
        """Free the underlying resources. The handle is unusable afterwards."""

    def is_playing(self) -> bool:
        """Return True if currently playing, False otherwise."""

    def set_volume(self, left: float, right: float) -> None:
        """Set per-channel gain in 0.0..1.0."""

    def set_looping(self, loop: bool) -> None:
        """Restart from the beginning at end-of-stream instead of finishing."""

    def set_on_completion(self, callback: Optional[CompletionCallback]) -> None:
        """Register a callback for natural end-of-stream (never fired while looping)."""


class PlaybackEngine(Protocol):
    """Factory opening resolved resources into playback handles."""

    def open(self, resource: ResolvedResource) -> PlaybackHandle:
        """Open and prepare ``resource``. Raises on missing/unsupported media."""


# ---------------------------
# Fake (Test) Implementation
# ---------------------------


class HandleReleasedError(RuntimeError):
    """Raised by FakePlaybackHandle when used after release()."""


@dataclass(eq=False)
class FakePlaybackHandle:
    """A deterministic, dependency-free PlaybackHandle implementation for tests.

    - Maintains simple state for play/stop/reset/release and volume
    - Records every volume change so fades can be asserted
    - Raises HandleReleasedError when touched after release, like a real
      media player would
    - No real audio playback occurs
    """

    resource: ResolvedResource
    loop: bool = False
    released: bool = False
    play_count: int = 0
    volumes: List[Tuple[float, float]] = field(default_factory=list)
    fail_on_play: bool = False
    _playing: bool = False
    _on_completion: Optional[CompletionCallback] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _check(self) -> None:
        if self.released:
            raise HandleReleasedError(f"handle for {self.resource.path} already released")

    def play(self) -> None:
        with self._lock:
            self._check()
            if self.fail_on_play:
                raise RuntimeError("audio device unavailable")
            self._playing = True
            self.play_count += 1

    def stop(self) -> None:
        with self._lock:
            self._check()
            self._playing = False

    def reset(self) -> None:
        with self._lock:
            self._check()
            self._playing = False
            self.loop = False
            self._on_completion = None

    def release(self) -> None:
        with self._lock:
            self._playing = False
            self._on_completion = None
            self.released = True

    def is_playing(self) -> bool:
        with self._lock:
            return self._playing and not self.released

    def set_volume(self, left: float, right: float) -> None:
        with self._lock:
            self._check()
            self.volumes.append((left, right))

    def set_looping(self, loop: bool) -> None:
        with self._lock:
            self._check()
            self.loop = bool(loop)

    def set_on_completion(self, callback: Optional[CompletionCallback]) -> None:
        with self._lock:
            self._check()
            self._on_completion = callback

    @property
    def volume(self) -> Optional[float]:
        """Most recent left-channel volume, or None if never set."""
        with self._lock:
            return self.volumes[-1][0] if self.volumes else None

    def finish(self) -> None:
        """Simulate reaching end-of-stream.

        Looping handles restart silently; others stop and fire the completion
        callback, mirroring the production engine.
        """
        with self._lock:
            if not self._playing or self.released:
                return
            if self.loop:
                self.play_count += 1
                return
            self._playing = False
            callback = self._on_completion
        if callback is not None:
            callback()


@dataclass
class FakePlaybackEngine:
    """Factory for FakePlaybackHandle used in tests and headless runs."""

    opened: List[FakePlaybackHandle] = field(default_factory=list)
    missing: Set[str] = field(default_factory=set)
    fail_on_play: bool = False

    def open(self, resource: ResolvedResource) -> FakePlaybackHandle:
        if resource.path.name in self.missing or str(resource.path) in self.missing:
            raise FileNotFoundError(f"No such audio file: {resource.path}")
        handle = FakePlaybackHandle(resource=resource, fail_on_play=self.fail_on_play)
        self.opened.append(handle)
        return handle

    def handles_for(self, name: str) -> List[FakePlaybackHandle]:
        return [h for h in self.opened if h.resource.path.name == name]

    @property
    def live(self) -> List[FakePlaybackHandle]:
        return [h for h in self.opened if not h.released]


# -----------------------------
# Arcade/Pyglet Implementation
# -----------------------------


class ArcadePlaybackHandle:
    """Playback handle backed by arcade.Sound/pyglet Player.

    The pyglet player is created lazily on play(); reset() drops it so that a
    later play() starts again from the beginning.
    """

    def __init__(self, sound: "arcade.Sound") -> None:  # type: ignore[name-defined]
        self._sound = sound
        self._player: Optional["pyglet.media.Player"] = None  # type: ignore[name-defined]
        self._loop = False
        self._volume = 1.0
        self._on_completion: Optional[CompletionCallback] = None

    def _require_sound(self) -> Any:
        if self._sound is None:
            raise RuntimeError("ArcadePlaybackHandle used after release()")
        return self._sound

    def play(self) -> None:
        sound = self._require_sound()
        if self._player is not None:
            self._player.play()
            return
        # arcade.Sound.play returns a pyglet Player
        self._player = sound.play(volume=self._volume, loop=self._loop)
        self._player.loop = self._loop
        self._player.push_handlers(on_eos=self._handle_eos)

    def _handle_eos(self) -> None:
        if self._loop:
            return
        callback = self._on_completion
        if callback is not None:
            try:
                callback()
            except Exception:  # pragma: no cover - callbacks are external
                logger.exception("Completion callback failed for %s", getattr(self._sound, "file_name", "?"))

    def stop(self) -> None:
        if self._player is not None:
            self._player.pause()

    def reset(self) -> None:
        if self._player is not None:
            try:
                self._sound.stop(self._player)
            finally:
                self._player = None

    def release(self) -> None:
        try:
            if self._player is not None:
                self._player.delete()
        finally:
            # Explicitly delete references to help GC
            self._player = None
            self._sound = None
            self._on_completion = None

    def is_playing(self) -> bool:
        return self._player is not None and bool(self._player.playing)

    def set_volume(self, left: float, right: float) -> None:
        # pyglet players expose a single gain; both channels are driven together
        self._volume = max(0.0, min(1.0, float(max(left, right))))
        if self._player is not None:
            self._player.volume = self._volume

    def set_looping(self, loop: bool) -> None:
        self._loop = bool(loop)
        if self._player is not None:
            self._player.loop = self._loop

    def set_on_completion(self, callback: Optional[CompletionCallback]) -> None:
        self._on_completion = callback


class ArcadeAudioEngine:
    """Factory for ArcadePlaybackHandle using arcade.Sound."""

    def __init__(self, *, streaming: bool = True) -> None:
        try:
            import arcade  # noqa: F401
        except ImportError as ex:
            raise BackendUnavailable("ArcadeAudioEngine requires 'arcade' to be installed") from ex
        self._streaming = streaming

    def open(self, resource: ResolvedResource) -> ArcadePlaybackHandle:  # pragma: no cover
        import arcade

        sound = arcade.Sound(str(resource.path), streaming=self._streaming)
        return ArcadePlaybackHandle(sound)

    @staticmethod
    def pump() -> None:  # pragma: no cover - needs an audio device
        """Dispatch pending pyglet events (end-of-stream) outside an arcade window loop."""
        import pyglet

        pyglet.clock.tick()
        pyglet.app.platform_event_loop.dispatch_posted_events()
