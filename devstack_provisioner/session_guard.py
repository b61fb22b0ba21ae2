"""Elevated-privilege session held for the whole run.

acquire() validates a sudo credential interactively, a daemon thread keeps it
fresh with `sudo -n true` every interval, and release() stops the thread. The
run controller enters the guard as a context manager so release happens on
every exit path.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, ClassVar, Optional

from .errors import SessionRefusedError
from .lib.command import Runner, run_cmd

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_S = 60.0


class SessionGuard:
    _live: ClassVar[Optional["SessionGuard"]] = None
    _live_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        *,
        runner: Runner = run_cmd,
        interval_s: float = HEARTBEAT_INTERVAL_S,
        geteuid: Callable[[], int] = os.geteuid,
    ) -> None:
        self._runner = runner
        self.interval_s = interval_s
        self._geteuid = geteuid
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._acquired = False
        self._released = False
        self.heartbeats = 0

    @property
    def active(self) -> bool:
        return self._acquired and not self._released

    def acquire(self) -> "SessionGuard":
        if self._geteuid() == 0:
            raise SessionRefusedError("Refusing to inherit root privileges; run as a regular admin user")

        with SessionGuard._live_lock:
            if SessionGuard._live is not None:
                raise RuntimeError("A SessionGuard is already live in this process")
            SessionGuard._live = self

        logger.info("Acquiring sudo session...")
        try:
            r = self._runner(["sudo", "-v"], check=False)
        except BaseException:
            # Ctrl-C at the password prompt lands here.
            with SessionGuard._live_lock:
                SessionGuard._live = None
            raise
        if r.returncode != 0:
            with SessionGuard._live_lock:
                SessionGuard._live = None
            raise SessionRefusedError(
                f"sudo session refused (exit {r.returncode})", exit_code=r.returncode
            )

        self._acquired = True
        self._thread = threading.Thread(target=self._heartbeat, name="sudo-keepalive", daemon=True)
        self._thread.start()
        logger.debug("sudo keepalive started (interval=%ss)", self.interval_s)
        return self

    def _heartbeat(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                r = self._runner(["sudo", "-n", "true"], check=False)
            except Exception:
                logger.warning("sudo keepalive failed", exc_info=True)
                continue
            self.heartbeats += 1
            if r.returncode != 0:
                logger.warning("sudo keepalive could not refresh the session (exit %s)", r.returncode)

    def is_valid(self) -> bool:
        if not self.active:
            return False
        return self._runner(["sudo", "-n", "true"], check=False).returncode == 0

    def release(self) -> None:
        if self._released or not self._acquired:
            return
        self._released = True
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
        with SessionGuard._live_lock:
            if SessionGuard._live is self:
                SessionGuard._live = None
        logger.debug("sudo keepalive stopped after %d heartbeats", self.heartbeats)

    def __enter__(self) -> "SessionGuard":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
