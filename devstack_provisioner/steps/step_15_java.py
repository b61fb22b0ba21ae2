from __future__ import annotations

import logging

from ..context import StageContext
from ..errors import StageError
from ..lib.brew import EnsureStatus
from .base import BaseStep

logger = logging.getLogger(__name__)

JDK_FORMULA = "openjdk@17"


class JavaStep(BaseStep):
    step_id = "15_java"
    depends_on = frozenset({"10_homebrew"})
    requires_network = True

    def probe(self, ctx: StageContext) -> bool:
        return ctx.runner(["/usr/libexec/java_home", "-v", "17+"], check=False).returncode == 0

    def run(self, ctx: StageContext) -> None:
        r = ctx.backend.ensure(JDK_FORMULA)
        if r.status == EnsureStatus.FAILED:
            raise StageError(f"Failed to install {JDK_FORMULA}: {r.error}")
        logger.info("Java: %s %s", JDK_FORMULA, r.status.value)
