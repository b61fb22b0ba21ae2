from __future__ import annotations

from ..context import StageContext
from .base import BaseStep

CREDENTIAL_HELPER = "osxkeychain"


class GitStep(BaseStep):
    step_id = "28_git"
    optional = True

    def probe(self, ctx: StageContext) -> bool:
        r = ctx.runner(["git", "config", "--global", "credential.helper"], check=False)
        return CREDENTIAL_HELPER in r.stdout

    def run(self, ctx: StageContext) -> None:
        ctx.runner(["git", "config", "--global", "credential.helper", CREDENTIAL_HELPER])
