from __future__ import annotations

import dataclasses
import logging
import os
import shutil
from pathlib import Path
from typing import Callable, List, Tuple

from .errors import PreconditionError
from .lib.command import Runner
from .lib.net import is_online
from .run_config import RunConfig

logger = logging.getLogger(__name__)

MIN_FREE_GB = 50

FULL_DISK_ACCESS_WARNING = (
    "Full Disk Access is not granted to this terminal. SSH and remote access changes may fail "
    "silently. Grant it in System Settings > Privacy & Security > Full Disk Access."
)


def ensure_not_root(geteuid: Callable[[], int] = os.geteuid) -> None:
    if geteuid() == 0:
        raise PreconditionError("This tool must not be run as root; run as an admin user (sudo is requested per call)")


def has_full_disk_access(tcc_db: Path) -> bool:
    """The user TCC database is only readable with Full Disk Access."""

    try:
        with tcc_db.open("rb") as f:
            f.read(1)
        return True
    except OSError:
        return False


def free_space_gb(path: Path) -> float:
    probe = path
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    return shutil.disk_usage(str(probe)).free / (1024 ** 3)


def preflight(
    config: RunConfig,
    *,
    runner: Runner,
    tcc_db: Path,
    geteuid: Callable[[], int] = os.geteuid,
) -> Tuple[RunConfig, List[str]]:
    """Validate preconditions before anything mutates the machine.

    Returns the (possibly offline-downgraded) config and the advisory
    warnings to repeat at the end of the run. Raises PreconditionError for
    fatal violations.
    """

    logger.info("Validating system requirements...")
    ensure_not_root(geteuid)

    advisories: List[str] = []
    if not has_full_disk_access(tcc_db):
        logger.warning(FULL_DISK_ACCESS_WARNING)
        advisories.append(FULL_DISK_ACCESS_WARNING)

    free = free_space_gb(config.home)
    if free < MIN_FREE_GB:
        logger.warning("Low disk space: %.0fGB free (recommended: %dGB+)", free, MIN_FREE_GB)

    if not config.offline_mode and not is_online(runner=runner, host=config.probe_host):
        logger.warning("No internet connection detected (%s unreachable); switching to offline mode", config.probe_host)
        config = dataclasses.replace(config, offline_mode=True)

    logger.info("System validation complete")
    return config, advisories
