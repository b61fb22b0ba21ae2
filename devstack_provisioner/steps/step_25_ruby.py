from __future__ import annotations

import logging
from pathlib import Path

from ..context import StageContext
from ..errors import StageError
from ..lib.brew import EnsureStatus
from ..lib.command import command_exists
from .base import BaseStep

logger = logging.getLogger(__name__)

GEM_INSTALL = ["install", "--user-install", "xcpretty", "--no-document"]


class RubyStep(BaseStep):
    step_id = "25_ruby"
    depends_on = frozenset({"10_homebrew"})
    optional = True
    requires_network = True

    def probe(self, ctx: StageContext) -> bool:
        return command_exists(ctx.runner, "xcpretty")

    def run(self, ctx: StageContext) -> None:
        r = ctx.runner(["gem", *GEM_INSTALL], check=False)
        if r.returncode == 0:
            return

        logger.warning("xcpretty install failed with system Ruby, trying Homebrew Ruby...")
        if ctx.backend.ensure("ruby").status == EnsureStatus.FAILED:
            raise StageError("Homebrew Ruby unavailable; xcpretty not installed")
        prefix = ctx.runner(["brew", "--prefix"]).stdout.strip() or "/opt/homebrew"
        ctx.runner([str(Path(prefix) / "opt" / "ruby" / "bin" / "gem"), *GEM_INSTALL])
