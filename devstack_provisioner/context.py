from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .lib.brew import HomebrewBackend
from .lib.command import Runner
from .network_guard import NetworkSafetyNet
from .run_config import RunConfig
from .session_guard import SessionGuard


@dataclass(frozen=True)
class StageContext:
    """Everything a stage may touch. Stages read it; only the run controller builds it."""

    config: RunConfig
    runner: Runner
    backend: HomebrewBackend
    session: Optional[SessionGuard] = None
    network: Optional[NetworkSafetyNet] = None
