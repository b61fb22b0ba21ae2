from __future__ import annotations

import argparse
import dataclasses
import functools
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import __version__
from .context import StageContext
from .errors import FatalError
from .lib.brew import HomebrewBackend
from .lib.command import Runner, run_cmd
from .lib.env import PATHS
from .logging_utils import configure_logging, parse_level
from .network_guard import NetworkSafetyNet
from .pipeline import (
    ConcurrencyGroup,
    PipelineResult,
    Stage,
    apply_concurrency_policy,
    iter_summary,
    run_pipeline,
    stage_from_step,
)
from .preflight import preflight
from .run_config import RunConfig, load_run_config
from .session_guard import SessionGuard
from .steps import (
    AndroidSdkStep,
    AppiumStep,
    CoreToolsStep,
    GitStep,
    HomebrewStep,
    InternalToolsStep,
    JavaStep,
    NetworkOrderStep,
    PowerStep,
    RemoteAccessStep,
    RubyStep,
    ShellProfileStep,
    SshStep,
    XcodeStep,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STAGE_FAILED = 1
EXIT_BAD_CONFIG = 2
EXIT_INTERRUPTED = 130

# Concurrent heavy downloads saturated bandwidth and timed out, so the default keeps them serialized.
PARALLEL_HEAVY = {
    AndroidSdkStep.step_id: ConcurrencyGroup.PARALLEL_GROUP_A.value,
    XcodeStep.step_id: ConcurrencyGroup.PARALLEL_GROUP_A.value,
}


def build_steps():
    return [
        HomebrewStep(),
        JavaStep(),
        CoreToolsStep(),
        RubyStep(),
        GitStep(),
        AndroidSdkStep(),
        XcodeStep(),
        AppiumStep(),
        InternalToolsStep(),
        SshStep(),
        RemoteAccessStep(),
        PowerStep(),
        NetworkOrderStep(),
        ShellProfileStep(),
    ]


def build_stages(config: RunConfig) -> List[Stage]:
    """The stage catalogue with the config's optional and concurrency overrides applied.

    Raises ValueError when either override names a stage that does not exist.
    """

    stages = [stage_from_step(s) for s in build_steps()]
    unknown = set(config.optional_stages) - {s.name for s in stages}
    if unknown:
        raise ValueError(f"optional_stages names unknown stages: {', '.join(sorted(unknown))}")
    stages = [
        dataclasses.replace(s, optional=True) if s.name in config.optional_stages else s
        for s in stages
    ]
    return apply_concurrency_policy(stages, config.concurrency)


@dataclass
class RunReport:
    exit_code: int
    config: RunConfig
    pipeline: Optional[PipelineResult] = None
    advisories: List[str] = field(default_factory=list)
    log_path: Optional[str] = None


def _log_config(config: RunConfig) -> None:
    logger.info("Configuration:")
    for name in (
        "install_android",
        "install_toolchain",
        "install_automation",
        "install_internal_tools",
        "configure_ssh",
        "configure_power",
        "configure_network",
        "configure_remote_access",
        "configure_shell",
        "offline_mode",
        "dry_run",
    ):
        logger.info("  - %s: %s", name, getattr(config, name))
    if config.concurrency:
        logger.info("  - concurrency: %s", dict(config.concurrency))


def _report(result: PipelineResult, advisories: Sequence[str]) -> int:
    logger.info("Run summary:")
    for line in iter_summary(result):
        logger.info("  %s", line)

    # Advisories are repeated so they are the last thing the operator sees.
    for msg in advisories:
        logger.warning(msg)

    if result.required_failures:
        logger.error("Provisioning finished with failures: %s", ", ".join(result.required_failures))
        return EXIT_STAGE_FAILED
    logger.info("Installation complete!")
    return EXIT_OK


def run(
    config: RunConfig,
    *,
    runner: Optional[Runner] = None,
    stages: Optional[Sequence[Stage]] = None,
    geteuid: Callable[[], int] = os.geteuid,
    tcc_db: Optional[str] = None,
    ask: Callable[[str], str] = input,
    configure_logs: bool = True,
) -> RunReport:
    """Validate, hold a sudo session, run every stage, clean up, report."""

    if runner is None:
        runner = functools.partial(run_cmd, dry_run=True) if config.dry_run else run_cmd

    log_path = config.log_file
    if configure_logs:
        log_path = configure_logging(log_path=config.log_file, level=parse_level(config.log_level.value))

    logger.info("Starting devstack-provisioner v%s", __version__)
    logger.info("Log file: %s", log_path)
    _log_config(config)

    # Config-dependent stage setup fails here, before any privileged command runs.
    stages = build_stages(config) if stages is None else list(stages)

    session = SessionGuard(runner=runner, interval_s=config.heartbeat_interval_s, geteuid=geteuid)
    advisories: List[str] = []
    try:
        config, advisories = preflight(
            config,
            runner=runner,
            tcc_db=config.expand(tcc_db or PATHS.tcc_db),
            geteuid=geteuid,
        )
        with session:
            network = NetworkSafetyNet(
                restore_point_path=str(config.expand(config.restore_point_path)),
                session=session,
                runner=runner,
                probe_host=config.probe_host,
                interactive=config.interactive,
                ask=ask,
            )
            ctx = StageContext(
                config=config,
                runner=runner,
                backend=HomebrewBackend(runner=runner, offline=config.offline_mode),
                session=session,
                network=network,
            )
            try:
                result = run_pipeline(stages=stages, ctx=ctx)
            finally:
                # Runs while the session is still held so the restore check can use it.
                network.restore_on_exit()
    except FatalError as e:
        logger.critical("FATAL: %s", e)
        for msg in advisories:
            logger.warning(msg)
        return RunReport(exit_code=e.exit_code, config=config, advisories=advisories, log_path=log_path)
    except Exception:
        logger.exception("Provisioner failed")
        raise

    exit_code = _report(result, advisories)
    return RunReport(
        exit_code=exit_code,
        config=config,
        pipeline=result,
        advisories=advisories,
        log_path=log_path,
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="devstack-provision",
        description="Provision a macOS machine for iOS/Android development.",
    )
    p.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", default=None, help="YAML run configuration")
    p.add_argument("-l", "--log-level", default=None, help="DEBUG, INFO, WARN or ERROR")
    p.add_argument("--log-file", default=None, help="Path to the run log")

    skips = [
        ("--skip-android", "install_android", "Skip Android SDK setup"),
        ("--skip-xcode", "install_toolchain", "Skip Xcode setup"),
        ("--skip-appium", "install_automation", "Skip Appium setup"),
        ("--skip-internal-tools", "install_internal_tools", "Skip CI tools (sonar-scanner, linters, fastlane)"),
        ("--skip-ssh", "configure_ssh", "Skip SSH configuration"),
        ("--skip-power", "configure_power", "Skip power management configuration"),
        ("--skip-network", "configure_network", "Skip network service reordering"),
        ("--skip-remote-access", "configure_remote_access", "Skip Apple Remote Desktop activation"),
        ("--skip-shell", "configure_shell", "Skip shell profile changes"),
    ]
    for flag, dest, help_text in skips:
        p.add_argument(flag, dest=dest, action="store_const", const=False, default=None, help=help_text)

    p.add_argument("--offline", dest="offline_mode", action="store_const", const=True, default=None,
                   help="Never touch the network; installer calls become no-ops")
    p.add_argument("--interactive", action="store_const", const=True, default=None,
                   help="Prompt for network service selection instead of auto-detecting")
    p.add_argument("--dry-run", action="store_const", const=True, default=None,
                   help="Log commands without executing them")
    p.add_argument("--parallel-heavy", action="store_true",
                   help="Run Android SDK and Xcode setup concurrently")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides: Dict[str, Any] = {
        k: v for k, v in vars(args).items() if k not in {"config", "parallel_heavy"} and v is not None
    }
    try:
        config = load_run_config(args.config, overrides=overrides)
        if args.parallel_heavy:
            config = dataclasses.replace(config, concurrency={**PARALLEL_HEAVY, **dict(config.concurrency)})
        build_stages(config)
    except (OSError, ValueError, RuntimeError) as e:
        logging.basicConfig(level=logging.INFO)
        logger.critical("FATAL: invalid configuration: %s", e)
        return EXIT_BAD_CONFIG

    try:
        report = run(config)
    except KeyboardInterrupt:
        logger.error("Interrupted; cleanup has run")
        return EXIT_INTERRUPTED

    logger.info("Log file: %s", report.log_path)
    return report.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
