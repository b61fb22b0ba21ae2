from __future__ import annotations

import logging

from ..context import StageContext
from .base import BaseStep, raise_on_failed

logger = logging.getLogger(__name__)

CORE_FORMULAS = [
    "jq",
    "node",
    "xcodes",
    "bash",
    "autoconf",
    "coreutils",
    "htop",
    "maven",
    "nvm",
    "python",
    "tree",
    "aria2",
    "sshpass",
    "rsync",
]


class CoreToolsStep(BaseStep):
    step_id = "20_core_tools"
    depends_on = frozenset({"10_homebrew"})
    requires_network = True

    def run(self, ctx: StageContext) -> None:
        results = ctx.backend.ensure_all(CORE_FORMULAS)
        raise_on_failed(results, "core formulas")
        logger.info("Core tools present: %d formulas", len(results))
