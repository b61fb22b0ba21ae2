from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from ..context import StageContext
from ..errors import StageError
from ..lib.command import sudo
from ..lib.sdk import select_stable_versions, version_key, xcodes_install, xcodes_installed
from ..run_config import RunConfig
from .base import BaseStep

logger = logging.getLogger(__name__)

APPLICATIONS_DIR = "/Applications"


def latest_xcode_app(apps_dir: str = APPLICATIONS_DIR) -> Optional[Path]:
    apps = [p for p in Path(apps_dir).glob("Xcode*.app") if "beta" not in p.name.lower()]
    if not apps:
        return None
    return sorted(apps, key=lambda p: p.name)[-1]


class XcodeStep(BaseStep):
    step_id = "35_xcode"
    depends_on = frozenset({"20_core_tools"})
    requires_network = True

    def enabled(self, config: RunConfig) -> bool:
        return config.install_toolchain

    def _install_versions(self, ctx: StageContext) -> List[str]:
        listing = ctx.runner(["xcodes", "list"]).stdout
        wanted = select_stable_versions(listing, ctx.config.xcode_versions)
        installed = set(xcodes_installed(runner=ctx.runner))

        failed: List[str] = []
        for version in wanted:
            if version in installed:
                logger.info("Xcode %s already installed", version)
                continue
            logger.info("Installing Xcode %s...", version)
            if xcodes_install(version, runner=ctx.runner):
                installed.add(version)
            else:
                failed.append(version)

        if wanted and not installed:
            raise StageError(f"No Xcode installed (failed: {', '.join(failed)})")
        if failed:
            logger.warning("Some Xcode versions failed to install: %s", ", ".join(failed))
        return sorted(installed, key=version_key)

    def _select(self, ctx: StageContext) -> None:
        app = latest_xcode_app()
        if app is None:
            logger.warning("No Xcode app found under %s; skipping xcode-select", APPLICATIONS_DIR)
            return
        developer = str(app / "Contents" / "Developer")
        logger.info("Selecting Xcode: %s", app)
        ctx.runner(sudo(["xcode-select", "-s", developer]))
        ctx.runner(sudo(["xcodebuild", "-license", "accept"]), check=False)
        ctx.runner(sudo(["xcodebuild", "-runFirstLaunch"]), check=False)

    def _link_versions(self, ctx: StageContext) -> None:
        # "/Applications/Xcode 15.4/Xcode.app" -> the real bundle, for tools that pin versions by path.
        for app in sorted(Path(APPLICATIONS_DIR).glob("Xcode*.app")):
            r = ctx.runner(
                ["defaults", "read", str(app / "Contents" / "Info.plist"), "CFBundleShortVersionString"],
                check=False,
            )
            version = r.stdout.strip()
            if r.returncode != 0 or not version:
                continue
            target_dir = Path(APPLICATIONS_DIR) / f"Xcode {version}"
            link = target_dir / "Xcode.app"
            if link.is_symlink():
                continue
            ctx.runner(sudo(["mkdir", "-p", str(target_dir)]))
            ctx.runner(sudo(["ln", "-sfn", str(app), str(link)]))
            logger.info("Created symlink: %s -> %s", link, app)

    def run(self, ctx: StageContext) -> None:
        installed = self._install_versions(ctx)
        logger.info("Xcode versions installed: %s", ", ".join(installed) or "none")
        self._select(ctx)
        self._link_versions(ctx)
