from __future__ import annotations

from ..context import StageContext
from ..run_config import RunConfig
from .base import BaseStep


class NetworkOrderStep(BaseStep):
    step_id = "70_network"
    optional = True

    def enabled(self, config: RunConfig) -> bool:
        return config.configure_network

    def run(self, ctx: StageContext) -> None:
        if ctx.network is None:
            raise RuntimeError("network safety net not configured")
        ctx.network.reorder()
