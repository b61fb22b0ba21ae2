from __future__ import annotations

import logging

from ..context import StageContext
from ..run_config import RunConfig
from .base import BaseStep, raise_on_failed

logger = logging.getLogger(__name__)

CI_FORMULAS = ["sonar-scanner", "ktlint", "swiftlint", "fastlane"]


class InternalToolsStep(BaseStep):
    step_id = "45_internal_tools"
    depends_on = frozenset({"10_homebrew"})
    optional = True
    requires_network = True

    def enabled(self, config: RunConfig) -> bool:
        return config.install_internal_tools

    def run(self, ctx: StageContext) -> None:
        raise_on_failed(ctx.backend.ensure_all(CI_FORMULAS), "CI tools")
        # Bundler for fastlane plugins; nice to have.
        r = ctx.runner(["gem", "install", "--user-install", "bundler", "--no-document"], check=False)
        if r.returncode != 0:
            logger.warning("bundler not installed (exit %s); fastlane plugins may not load", r.returncode)
