from __future__ import annotations

import argparse
import logging
import threading
from dataclasses import replace
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

from .config import AudioConfig
from .engine import ArcadeAudioEngine
from .errors import AudioError
from .logging_config import configure_logging
from .service import AudioService, VolumeFadeStep

logger = logging.getLogger(__name__)


def _parse_step(text: str) -> VolumeFadeStep:
    try:
        seconds, volume = text.split(":", 1)
        return VolumeFadeStep(time=timedelta(seconds=float(seconds)), volume=float(volume))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected SECONDS:VOLUME, got {text!r}") from exc


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="alarmaudio",
        description="Play alarm audio sessions with fade-in and an auto-stop limit",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to a JSON audio config file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    play = sub.add_parser("play", help="Play one file until it ends, times out, or Ctrl-C")
    play.add_argument("file", help="assets/... reference, documents-relative or absolute path")
    play.add_argument("--id", type=int, default=1, help="Session key (default 1)")
    play.add_argument("--loop", action="store_true", help="Loop until the auto-stop limit")
    play.add_argument("--fade", type=float, default=None, metavar="SECONDS", help="Linear fade-in duration")
    play.add_argument(
        "--step",
        dest="steps",
        type=_parse_step,
        action="append",
        default=[],
        metavar="SECONDS:VOLUME",
        help="Staircase fade control point; repeat in time order. Overrides --fade.",
    )
    play.add_argument("--timeout", type=float, default=None, metavar="SECONDS", help="Auto-stop limit override")
    return parser.parse_args(argv)


def run_play(args: argparse.Namespace, config: AudioConfig) -> int:
    if args.timeout is not None:
        config = replace(config, watchdog_timeout_ms=int(args.timeout * 1000))
    engine = ArcadeAudioEngine()
    done = threading.Event()
    with AudioService(config, engine=engine) as service:
        service.set_on_complete_listener(done.set)
        fade = timedelta(seconds=args.fade) if args.fade is not None else None
        service.play_audio(args.id, args.file, loop_audio=args.loop, fade_duration=fade, fade_steps=args.steps)
        try:
            while not done.wait(0.05):
                engine.pump()
        except KeyboardInterrupt:
            logger.info("Interrupted; stopping session %s", args.id)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(default_level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        config = AudioConfig.load(args.config)
        if args.command == "play":
            return run_play(args, config)
    except AudioError as exc:
        logger.error("%s", exc)
        return 1
    return 2
