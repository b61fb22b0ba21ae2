from __future__ import annotations

import logging
from pathlib import Path

from ..context import StageContext
from ..lib.brew import EnsureStatus
from ..run_config import RunConfig
from .base import BaseStep

logger = logging.getLogger(__name__)

DRIVERS = ("xcuitest", "uiautomator2")
NPM_PACKAGES = ("appium", "appium-doctor")


def installed_drivers(listing: str) -> set[str]:
    """Driver names from `appium driver list --installed` (appium prints it on stderr)."""

    found = set()
    for line in listing.splitlines():
        for word in line.replace("-", " ").replace("@", " ").split():
            if word in DRIVERS:
                found.add(word)
    return found


class AppiumStep(BaseStep):
    step_id = "40_appium"
    # uiautomator2 needs the Android SDK and xcuitest needs Xcode.
    depends_on = frozenset({"30_android_sdk", "35_xcode"})
    requires_network = True

    def enabled(self, config: RunConfig) -> bool:
        return config.install_automation

    def _npm_prefix(self, ctx: StageContext) -> Path:
        prefix = ctx.config.expand(ctx.config.npm_prefix)
        current = ctx.runner(["npm", "config", "get", "prefix"], check=False).stdout.strip()
        if current != str(prefix):
            logger.info("Setting NPM prefix to %s", prefix)
            for sub in ("lib", "node_modules", "bin"):
                ctx.runner(["mkdir", "-p", str(prefix / sub)])
            ctx.runner(["npm", "config", "set", "prefix", str(prefix)])
        return prefix

    def run(self, ctx: StageContext) -> None:
        prefix = self._npm_prefix(ctx)
        appium = str(prefix / "bin" / "appium")

        if ctx.runner([appium, "--version"], check=False).returncode != 0:
            logger.info("Installing Appium and Appium Doctor...")
            ctx.runner(["npm", "install", "-g", *NPM_PACKAGES])
        else:
            logger.info("Updating Appium...")
            ctx.runner(["npm", "update", "-g", *NPM_PACKAGES], check=False)

        r = ctx.runner([appium, "driver", "list", "--installed"], check=False)
        have = installed_drivers(r.stdout + "\n" + r.stderr)
        for driver in DRIVERS:
            if driver in have:
                logger.info("Appium driver %s already installed", driver)
                continue
            logger.info("Installing %s driver...", driver)
            ctx.runner([appium, "driver", "install", driver])

        if ctx.backend.ensure("ios-deploy").status == EnsureStatus.FAILED:
            logger.warning("ios-deploy not installed; on-device iOS runs will not work")

        doctor = str(prefix / "bin" / "appium-doctor")
        for platform in ("--ios", "--android"):
            d = ctx.runner([doctor, platform], check=False)
            if d.returncode != 0:
                logger.warning("appium-doctor %s reported problems (see log)", platform)
