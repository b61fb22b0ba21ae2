from __future__ import annotations

from typing import FrozenSet, Iterable

from ..context import StageContext
from ..errors import StageError
from ..lib.brew import EnsureResult, failed_names
from ..run_config import RunConfig


class BaseStep:
    step_id = ""
    depends_on: FrozenSet[str] = frozenset()
    optional = False
    requires_network = False

    def enabled(self, config: RunConfig) -> bool:
        return True

    def probe(self, ctx: StageContext) -> bool:
        return False

    def run(self, ctx: StageContext) -> None:
        raise NotImplementedError


def raise_on_failed(results: Iterable[EnsureResult], what: str) -> None:
    failed = failed_names(results)
    if failed:
        raise StageError(f"Failed to install {what}: {', '.join(failed)}")
