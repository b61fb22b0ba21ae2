from __future__ import annotations

import getpass
import logging
import os
from pathlib import Path

from ..context import StageContext
from ..errors import StageError
from ..lib.brew import EnsureStatus
from ..lib.command import sudo
from ..lib.sdk import missing_components, sdkmanager_accept_licenses, sdkmanager_install, sdkmanager_path
from ..run_config import RunConfig
from .base import BaseStep

logger = logging.getLogger(__name__)

CMDLINE_TOOLS_CASK = "android-commandlinetools"
STUDIO_CASK = "android-studio"


class AndroidSdkStep(BaseStep):
    step_id = "30_android_sdk"
    depends_on = frozenset({"10_homebrew", "15_java"})
    requires_network = True

    def enabled(self, config: RunConfig) -> bool:
        return config.install_android

    def probe(self, ctx: StageContext) -> bool:
        cfg = ctx.config
        if not Path(sdkmanager_path(cfg.android_sdk_root)).exists():
            return False
        return not missing_components(cfg.android_sdk_root, cfg.android_packages)

    def _prepare_root(self, ctx: StageContext) -> None:
        root = ctx.config.android_sdk_root
        if os.access(root, os.W_OK):
            return
        # Shared root so every admin account (and the exported image) sees one SDK.
        ctx.runner(sudo(["mkdir", "-p", root]))
        ctx.runner(sudo(["chown", "-R", f"{getpass.getuser()}:staff", root]))
        ctx.runner(sudo(["chmod", "-R", "2775", root]))

    def _link_studio_default(self, ctx: StageContext) -> None:
        link = ctx.config.home / "Library" / "Android" / "sdk"
        if link.is_symlink() and os.readlink(link) == ctx.config.android_sdk_root:
            return
        if ctx.config.dry_run:
            logger.info("Would link %s -> %s", link, ctx.config.android_sdk_root)
            return
        link.parent.mkdir(parents=True, exist_ok=True)
        if link.is_symlink():
            link.unlink()
        elif link.exists():
            logger.warning("%s exists and is not a symlink; leaving it alone", link)
            return
        link.symlink_to(ctx.config.android_sdk_root)

    def _install_cmdline_tools(self, ctx: StageContext) -> None:
        root = ctx.config.android_sdk_root
        if Path(sdkmanager_path(root)).exists():
            return
        prefix = ctx.runner(["brew", "--prefix"]).stdout.strip() or "/opt/homebrew"
        src = Path(prefix) / "share" / CMDLINE_TOOLS_CASK
        dst = Path(root) / "cmdline-tools" / "latest"
        ctx.runner(["mkdir", "-p", str(dst)])
        ctx.runner(["rsync", "-a", f"{src}/", f"{dst}/"])

    def run(self, ctx: StageContext) -> None:
        cfg = ctx.config

        tools = ctx.backend.ensure_cask(CMDLINE_TOOLS_CASK)
        if tools.status == EnsureStatus.FAILED:
            raise StageError(f"Failed to install {CMDLINE_TOOLS_CASK}: {tools.error}")
        if ctx.backend.ensure_cask(STUDIO_CASK).status == EnsureStatus.FAILED:
            logger.warning("Android Studio not installed; SDK setup continues without it")

        self._prepare_root(ctx)
        self._link_studio_default(ctx)
        self._install_cmdline_tools(ctx)

        sdkmanager_accept_licenses(cfg.android_sdk_root, runner=ctx.runner)
        missing = missing_components(cfg.android_sdk_root, cfg.android_packages)
        if missing:
            logger.info("Installing SDK packages: %s", ", ".join(missing))
            sdkmanager_install(cfg.android_sdk_root, missing, runner=ctx.runner)

        if cfg.dry_run:
            return
        still_missing = missing_components(cfg.android_sdk_root, cfg.android_packages)
        if still_missing:
            raise StageError(f"SDK packages missing after install: {', '.join(still_missing)}")
