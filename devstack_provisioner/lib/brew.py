from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set, Tuple

from .command import CmdResult, Runner, run_cmd

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_S = 2.0


class EnsureStatus(str, Enum):
    ALREADY_PRESENT = "already_present"
    INSTALLED = "installed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class EnsureResult:
    name: str
    status: EnsureStatus
    attempts: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != EnsureStatus.FAILED


def failed_names(results: Iterable[EnsureResult]) -> List[str]:
    return [r.name for r in results if r.status == EnsureStatus.FAILED]


class HomebrewBackend:
    """Additive "make sure it is installed" operations over Homebrew.

    Every ensure probes first and returns without side effects when the
    formula/cask is present. Installs are retried a fixed number of times with
    a fixed backoff. Offline, every ensure is a no-op reporting SKIPPED.
    Safe to share between concurrently running stages.
    """

    def __init__(
        self,
        *,
        runner: Runner = run_cmd,
        offline: bool = False,
        brew: str = "brew",
        max_attempts: int = MAX_ATTEMPTS,
        backoff_s: float = BACKOFF_S,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._runner = runner
        self.offline = offline
        self.brew = brew
        self.max_attempts = max_attempts
        self.backoff_s = backoff_s
        self._sleep = sleep
        self._present: Set[Tuple[str, bool]] = set()
        self._lock = threading.Lock()

    def is_installed(self, name: str, *, cask: bool = False) -> bool:
        argv = [self.brew, "list"]
        if cask:
            argv.append("--cask")
        argv += ["--versions", name]
        return self._runner(argv, check=False).returncode == 0

    def ensure(self, name: str) -> EnsureResult:
        return self._ensure(name, cask=False)

    def ensure_cask(self, name: str) -> EnsureResult:
        return self._ensure(name, cask=True)

    def ensure_all(self, names: Iterable[str], *, cask: bool = False) -> List[EnsureResult]:
        # Attempt everything; the caller decides what a partial failure means.
        return [self._ensure(n, cask=cask) for n in names]

    def update(self) -> bool:
        if self.offline:
            logger.info("Offline mode: skipping brew update")
            return False
        r = self._runner([self.brew, "update"], check=False)
        if r.returncode != 0:
            logger.warning("brew update failed (%s); continuing with current formulae", r.returncode)
            return False
        return True

    def _ensure(self, name: str, *, cask: bool) -> EnsureResult:
        kind = "cask" if cask else "formula"
        if self.offline:
            logger.info("Offline mode: not ensuring %s %s", kind, name)
            return EnsureResult(name=name, status=EnsureStatus.SKIPPED)

        key = (name, cask)
        with self._lock:
            known = key in self._present
        if known or self.is_installed(name, cask=cask):
            with self._lock:
                self._present.add(key)
            logger.info("Already installed (%s): %s", kind, name)
            return EnsureResult(name=name, status=EnsureStatus.ALREADY_PRESENT)

        argv = [self.brew, "install"]
        if cask:
            argv.append("--cask")
        argv.append(name)

        last: Optional[CmdResult] = None
        for attempt in range(1, self.max_attempts + 1):
            logger.info("Installing (%s): %s [attempt %d/%d]", kind, name, attempt, self.max_attempts)
            last = self._runner(argv, check=False)
            if last.returncode == 0:
                with self._lock:
                    self._present.add(key)
                logger.info("Installed (%s): %s", kind, name)
                return EnsureResult(name=name, status=EnsureStatus.INSTALLED, attempts=attempt)
            logger.warning("Installation failed for %s, retry %d/%d", name, attempt, self.max_attempts)
            if attempt < self.max_attempts:
                self._sleep(self.backoff_s)

        error = (last.stderr.strip() if last else "") or f"exit code {last.returncode if last else '?'}"
        logger.error("Failed to install %s %s after %d attempts", kind, name, self.max_attempts)
        return EnsureResult(name=name, status=EnsureStatus.FAILED, attempts=self.max_attempts, error=error)
