"""Pytest configuration and shared fixtures."""

import threading
from typing import Callable, List, Optional, Sequence, Tuple, Union

import pytest

from devstack_provisioner.lib.command import CmdResult, CommandError
from devstack_provisioner.run_config import RunConfig
from devstack_provisioner.session_guard import SessionGuard

Response = Union[int, CmdResult, Callable[[List[str]], Union[int, CmdResult]]]


class FakeRunner:
    """Stands in for run_cmd: records every argv and answers from scripted rules.

    Rules match on an argv prefix; the most recently added matching rule wins.
    Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self._rules: List[Tuple[Tuple[str, ...], Response]] = []
        self._lock = threading.Lock()

    def script(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "", fn=None) -> None:
        if fn is not None:
            self._rules.append((tuple(prefix), fn))
        else:
            self._rules.append((tuple(prefix), CmdResult(list(prefix), returncode, stdout, stderr)))

    def __call__(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        env=None,
        cwd=None,
        input_text: Optional[str] = None,
        timeout_s=None,
        dry_run: bool = False,
    ) -> CmdResult:
        argv = list(argv)
        with self._lock:
            self.calls.append(argv)
            self.inputs.append(input_text)
            rules = list(self._rules)

        result = CmdResult(argv, 0, "", "")
        for prefix, response in reversed(rules):
            if tuple(argv[: len(prefix)]) == prefix:
                if callable(response):
                    response = response(argv)
                if isinstance(response, int):
                    result = CmdResult(argv, response, "", "")
                else:
                    result = CmdResult(argv, response.returncode, response.stdout, response.stderr)
                break

        if check and result.returncode != 0:
            raise CommandError(result)
        return result

    def matching(self, *prefix: str) -> List[List[str]]:
        with self._lock:
            return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def config(tmp_path):
    """A config that keeps every path inside the test's temp directory."""
    return RunConfig(
        home_dir=str(tmp_path / "home"),
        android_sdk_root=str(tmp_path / "sdk"),
        restore_point_path=str(tmp_path / "state" / "restore.json"),
        log_file=str(tmp_path / "run.log"),
        heartbeat_interval_s=0.01,
    )


@pytest.fixture(autouse=True)
def no_live_session_guard():
    """A failing test must not leave a live SessionGuard behind for the next one."""
    yield
    live = SessionGuard._live
    if live is not None:
        live.release()
    SessionGuard._live = None
