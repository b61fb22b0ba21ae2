from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def parse_level(name: str) -> int:
    try:
        return LEVELS[str(name).strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown log level {name!r} (expected DEBUG, INFO, WARN or ERROR)") from None


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure logging.

    Every stage's output (including captured command output at DEBUG) goes to
    one timestamped, leveled log file. The file always records DEBUG; `level`
    only filters what reaches the console.

    Notes:
    - If the requested path is not writable we fall back to a local file in
      the working directory and keep reporting the intended path.
    - Calling this again replaces the handlers installed by the previous call.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)
    logging.addLevelName(logging.WARNING, "WARN")

    for h in getattr(logger, "_devstack_handlers", []):
        logger.removeHandler(h)
        h.close()

    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    path = os.path.expanduser(log_path)
    file_handler: Optional[logging.Handler] = None
    try:
        Path(os.path.dirname(path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        chosen_path = path
    except OSError:
        # Fall back to a writable location.
        chosen_path = str(Path.cwd() / "devstack-provisioner.log")
        file_handler = logging.FileHandler(chosen_path)
    file_handler.setFormatter(fmt)
    file_handler.setLevel(logging.DEBUG)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        console.setLevel(level)
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_devstack_handlers", handlers)
    setattr(logger, "_devstack_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
