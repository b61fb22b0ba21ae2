from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from .command import AFFIRMATIVE_STREAM, Runner, run_cmd, sudo

logger = logging.getLogger(__name__)

_PRERELEASE = re.compile(r"beta|rc|candidate", re.IGNORECASE)
_VERSION = re.compile(r"^(\d+(?:\.\d+)+)")


# ---------------------------------------------------------------------------
# Android sdkmanager
# ---------------------------------------------------------------------------


def sdkmanager_path(sdk_root: str) -> str:
    return str(Path(sdk_root) / "cmdline-tools" / "latest" / "bin" / "sdkmanager")


def component_path(sdk_root: str, component: str) -> Path:
    """Where sdkmanager puts a component: "platforms;android-35" -> <root>/platforms/android-35."""

    return Path(sdk_root).joinpath(*component.split(";"))


def missing_components(sdk_root: str, components: Iterable[str]) -> List[str]:
    return [c for c in components if not component_path(sdk_root, c).exists()]


def sdkmanager_install(
    sdk_root: str,
    components: Sequence[str],
    *,
    runner: Runner = run_cmd,
) -> None:
    if not components:
        return
    runner(
        [sdkmanager_path(sdk_root), f"--sdk_root={sdk_root}", *components],
        input_text=AFFIRMATIVE_STREAM,
    )


def sdkmanager_accept_licenses(sdk_root: str, *, runner: Runner = run_cmd) -> bool:
    r = runner(
        [sdkmanager_path(sdk_root), f"--sdk_root={sdk_root}", "--licenses"],
        check=False,
        input_text=AFFIRMATIVE_STREAM,
    )
    if r.returncode != 0:
        logger.warning("sdkmanager --licenses exited %s", r.returncode)
    return r.returncode == 0


# ---------------------------------------------------------------------------
# Xcode via xcodes
# ---------------------------------------------------------------------------


def version_key(version: str) -> Tuple[int, ...]:
    return tuple(int(p) for p in version.split("."))


def parse_xcode_versions(listing: str) -> List[str]:
    """Stable versions from `xcodes list`/`xcodes installed` output, sorted ascending, de-duplicated."""

    found = set()
    for line in listing.splitlines():
        line = line.strip()
        if not line or _PRERELEASE.search(line):
            continue
        m = _VERSION.match(line)
        if m:
            found.add(m.group(1))
    return sorted(found, key=version_key)


def select_stable_versions(listing: str, count: int) -> List[str]:
    if count <= 0:
        return []
    return parse_xcode_versions(listing)[-count:]


def xcodes_installed(*, runner: Runner = run_cmd) -> List[str]:
    r = runner(["xcodes", "installed"], check=False)
    if r.returncode != 0:
        return []
    return parse_xcode_versions(r.stdout)


def xcodes_install(version: str, *, runner: Runner = run_cmd) -> bool:
    r = runner(sudo(["xcodes", "install", version, "--experimental-unxip"]), check=False)
    if r.returncode != 0:
        logger.warning("Failed to install Xcode %s (exit %s)", version, r.returncode)
    return r.returncode == 0
