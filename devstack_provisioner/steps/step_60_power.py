from __future__ import annotations

import logging
from typing import Dict

from ..context import StageContext
from ..lib.command import sudo
from ..run_config import RunConfig
from .base import BaseStep

logger = logging.getLogger(__name__)

REQUIRED = ("sleep", "displaysleep", "disksleep")
BEST_EFFORT = ("powernap", "standby", "autopoweroff")


def parse_pmset(text: str) -> Dict[str, str]:
    """Key/value pairs from `pmset -g` (first token is the key, second the value)."""

    settings: Dict[str, str] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and not line.rstrip().endswith(":"):
            settings[parts[0]] = parts[1]
    return settings


class PowerStep(BaseStep):
    step_id = "60_power"
    optional = True

    def enabled(self, config: RunConfig) -> bool:
        return config.configure_power

    def probe(self, ctx: StageContext) -> bool:
        r = ctx.runner(["pmset", "-g"], check=False)
        if r.returncode != 0:
            return False
        settings = parse_pmset(r.stdout)
        return all(settings.get(k) == "0" for k in REQUIRED)

    def run(self, ctx: StageContext) -> None:
        logger.info("Configuring power management for server use...")
        for key in REQUIRED:
            ctx.runner(sudo(["pmset", "-a", key, "0"]))
        for key in BEST_EFFORT:
            ctx.runner(sudo(["pmset", "-a", key, "0"]), check=False)

        for flag in ("-setcomputersleep", "-setdisplaysleep", "-setharddisksleep"):
            ctx.runner(sudo(["systemsetup", flag, "Never"]), check=False)

        ctx.runner(["defaults", "-currentHost", "write", "com.apple.screensaver", "idleTime", "-int", "0"])

        r = ctx.runner(["pmset", "-g"], check=False)
        for line in r.stdout.splitlines():
            logger.info("  %s", line)
