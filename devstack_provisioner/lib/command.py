from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Callable, Mapping, Sequence

logger = logging.getLogger(__name__)

# Enough affirmative answers for every license prompt sdkmanager/xcodebuild emit.
AFFIRMATIVE_STREAM = "y\n" * 64


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    def __init__(self, result: CmdResult):
        super().__init__(f"Command failed ({result.returncode}): {fmt_argv(result.argv)}\n{result.stderr}")
        self.result = result


# Any callable with run_cmd's signature. Stages and backends take one so tests can record calls.
Runner = Callable[..., CmdResult]


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    timeout_s: float | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command.
    - Captures stdout/stderr and funnels them into the log at DEBUG.
    - dry_run logs but does not execute.
    """

    argv_list = list(argv)
    logger.info("CMD %s", fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
            timeout=timeout_s,
        )
    except FileNotFoundError:
        # Missing executables behave like a failing command so probes can ask "is X here?".
        logger.debug("Executable not found: %s", argv_list[0])
        result = CmdResult(argv=argv_list, returncode=127, stdout="", stderr=f"{argv_list[0]}: not found")
        if check:
            raise CommandError(result)
        return result

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    result = CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)
    if check and p.returncode != 0:
        raise CommandError(result)

    return result


def command_exists(runner: Runner, name: str) -> bool:
    return runner(["which", name], check=False).returncode == 0


def sudo(argv: Sequence[str]) -> list[str]:
    return ["sudo", *argv]
