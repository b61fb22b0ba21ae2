"""Network service reordering with a persisted restore point.

Reordering network services can strand a remote operator, so the current
order is written to disk before anything changes. `networksetup` listings cannot be replayed
reliably, so the exit handler only checks reachability and tells the operator
how to recover by hand if the machine went dark.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from .lib.command import Runner, fmt_argv, run_cmd
from .lib.net import NETWORKSETUP, is_online, list_services, set_service_order
from .restore_point import RestorePoint, load_restore_point, remove_restore_point, save_restore_point
from .session_guard import SessionGuard

logger = logging.getLogger(__name__)

WIRELESS_PATTERN = re.compile(r"wi-?fi|airport|wireless|wlan", re.IGNORECASE)
WIRED_PATTERN = re.compile(r"ethernet|thunderbolt|\blan\b|usb", re.IGNORECASE)


class NetworkState(str, Enum):
    IDLE = "idle"
    SNAPSHOT_TAKEN = "snapshot_taken"
    REORDER_APPLIED = "reorder_applied"
    RESTORE_ATTEMPTED = "restore_attempted"
    CLEANED_UP = "cleaned_up"


def classify_services(services: Sequence[str]) -> Tuple[Optional[str], Optional[str]]:
    """Return (internet, internal): first wireless-looking and first wired-looking service."""

    internet = next((s for s in services if WIRELESS_PATTERN.search(s)), None)
    internal = next((s for s in services if s != internet and WIRED_PATTERN.search(s)), None)
    return internet, internal


def compute_order(services: Sequence[str], internet: Optional[str], internal: Optional[str]) -> List[str]:
    head = [s for s in (internal, internet) if s]
    return head + [s for s in services if s not in head]


def prompt_choice(services: Sequence[str], label: str, ask: Callable[[str], str]) -> Optional[str]:
    menu = [f"Select the {label} network service:"]
    menu.extend(f"  {i}) {s}" for i, s in enumerate(services, 1))
    menu.append("Number (blank to skip): ")
    answer = ask("\n".join(menu)).strip()
    if not answer:
        return None
    try:
        idx = int(answer)
    except ValueError:
        logger.warning("Ignoring invalid selection %r for %s service", answer, label)
        return None
    if not 1 <= idx <= len(services):
        logger.warning("Selection %s out of range for %s service", idx, label)
        return None
    return services[idx - 1]


class NetworkSafetyNet:
    def __init__(
        self,
        *,
        restore_point_path: str,
        session: Optional[SessionGuard] = None,
        runner: Runner = run_cmd,
        probe_host: str = "8.8.8.8",
        interactive: bool = False,
        ask: Callable[[str], str] = input,
    ) -> None:
        self.restore_point_path = restore_point_path
        self.session = session
        self._runner = runner
        self.probe_host = probe_host
        self.interactive = interactive
        self._ask = ask
        self.state = NetworkState.IDLE

    def snapshot(self) -> RestorePoint:
        # Any failure here aborts before a single setting has changed.
        services = list_services(runner=self._runner)
        if not services:
            raise RuntimeError("No network services reported by networksetup")
        point = RestorePoint(services=services)
        save_restore_point(self.restore_point_path, point)
        self.state = NetworkState.SNAPSHOT_TAKEN
        return point

    def classify(self, services: Sequence[str]) -> Tuple[Optional[str], Optional[str]]:
        if self.interactive:
            internet = prompt_choice(services, "internet (uplink)", self._ask)
            remaining = [s for s in services if s != internet]
            internal = prompt_choice(remaining, "internal (management)", self._ask)
            return internet, internal
        return classify_services(services)

    def reorder(self) -> List[str]:
        """Put the internal service first and the internet service second.

        Returns the order that was requested. A failed reorder is only a warning.
        """

        point = self.snapshot()
        internet, internal = self.classify(point.services)
        logger.info("Network services: internet=%s internal=%s", internet, internal)

        order = compute_order(point.services, internet, internal)
        if order == point.services:
            logger.info("Network service order already correct")
            return order

        rc = set_service_order(order, runner=self._runner)
        if rc != 0:
            logger.warning("Could not reorder network services (exit %s); continuing with the existing order", rc)
            return order

        self.state = NetworkState.REORDER_APPLIED
        logger.info("Network service order: %s", ", ".join(order))
        return order

    def restore_on_exit(self) -> None:
        """Exit handler: best-effort connectivity check, then always drop the restore point."""

        try:
            point = load_restore_point(self.restore_point_path)
        except (OSError, ValueError):
            logger.warning("Unreadable network restore point %s", self.restore_point_path, exc_info=True)
            point = None

        try:
            if point is None:
                return
            if self.session is None or not self.session.is_valid():
                logger.warning(
                    "sudo session no longer valid; skipping network restore check. Saved order: %s",
                    ", ".join(point.services),
                )
                return

            self.state = NetworkState.RESTORE_ATTEMPTED
            if is_online(runner=self._runner, host=self.probe_host):
                logger.info("Connectivity verified after network reorder")
                return

            manual = fmt_argv(["sudo", NETWORKSETUP, "-ordernetworkservices", *point.services])
            logger.warning("Network is unreachable after reordering services.")
            logger.warning("Restore the previous order manually with:\n  %s", manual)
        finally:
            remove_restore_point(self.restore_point_path)
            self.state = NetworkState.CLEANED_UP
