from __future__ import annotations

import logging
from pathlib import Path

from ..context import StageContext
from ..lib.command import sudo
from ..lib.env import PATHS
from ..run_config import RunConfig
from .base import BaseStep

logger = logging.getLogger(__name__)

ACTIVATE = ["-activate", "-configure", "-access", "-on", "-allowAccessFor", "-allUsers", "-privs", "-all"]


class RemoteAccessStep(BaseStep):
    step_id = "55_remote_access"
    optional = True

    def enabled(self, config: RunConfig) -> bool:
        return config.configure_remote_access

    def run(self, ctx: StageContext) -> None:
        kickstart = PATHS.ard_kickstart
        if not Path(kickstart).exists():
            logger.warning("ARD kickstart tool not found at %s", kickstart)
            return

        r = ctx.runner(sudo([kickstart, *ACTIVATE]), check=False)
        if r.returncode != 0:
            logger.warning("Remote management activation failed (exit %s)", r.returncode)
            return
        ctx.runner(sudo([kickstart, "-restart", "-agent"]), check=False)
        logger.info("Remote management enabled")
