from __future__ import annotations

import logging
import os
from pathlib import Path

from ..context import StageContext
from ..lib.command import command_exists
from .base import BaseStep

logger = logging.getLogger(__name__)

INSTALL_SCRIPT_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
BREW_PREFIXES = ("/opt/homebrew", "/usr/local")


def put_brew_on_path() -> None:
    """Equivalent of `eval "$(brew shellenv)"` for the commands this process spawns."""

    path = os.environ.get("PATH", "").split(os.pathsep)
    for prefix in BREW_PREFIXES:
        bindir = str(Path(prefix) / "bin")
        if (Path(bindir) / "brew").exists():
            if bindir not in path:
                os.environ["PATH"] = os.pathsep.join([bindir, *path])
            return


class HomebrewStep(BaseStep):
    step_id = "10_homebrew"
    requires_network = True

    def run(self, ctx: StageContext) -> None:
        put_brew_on_path()

        if not command_exists(ctx.runner, "brew"):
            logger.info("Installing Homebrew...")
            ctx.runner(
                ["/bin/bash", "-c", f'/bin/bash -c "$(curl -fsSL {INSTALL_SCRIPT_URL})"'],
                env={"NONINTERACTIVE": "1"},
            )
            put_brew_on_path()

        ctx.backend.update()
