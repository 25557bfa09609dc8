import logging
import os
from typing import Iterable

ENV_LOG_LEVEL = "ALARMAUDIO_LOG_LEVEL"

# Audio backend loggers that are chatty at INFO
NOISY_LOGGERS = ("arcade", "pyglet")


def configure_logging(default_level: int = logging.INFO, *, quiet: Iterable[str] = NOISY_LOGGERS) -> None:
    """Configure root logger for alarmaudio runs.

    Respects ALARMAUDIO_LOG_LEVEL env var if present. Backend loggers listed in
    ``quiet`` are held at WARNING unless debug output was requested.
    """
    level_name = os.getenv(ENV_LOG_LEVEL)
    level = default_level
    if level_name:
        level = getattr(logging, level_name.upper(), default_level)
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(threadName)s %(name)s: %(message)s",
    )
    if level > logging.DEBUG:
        for name in quiet:
            logging.getLogger(name).setLevel(logging.WARNING)
