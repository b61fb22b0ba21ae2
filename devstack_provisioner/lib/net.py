from __future__ import annotations

import logging
from typing import List, Sequence

from .command import Runner, run_cmd, sudo

logger = logging.getLogger(__name__)

DEFAULT_PROBE_HOST = "8.8.8.8"
NETWORKSETUP = "/usr/sbin/networksetup"


def is_online(*, runner: Runner = run_cmd, host: str = DEFAULT_PROBE_HOST) -> bool:
    """Best-effort online check."""

    try:
        r = runner(["ping", "-c", "1", "-t", "2", host], check=False)
        return r.returncode == 0
    except Exception:
        logger.debug("Reachability probe raised", exc_info=True)
        return False


def parse_service_listing(text: str) -> List[str]:
    """Parse `networksetup -listallnetworkservices` output.

    The first line is an explanatory header; disabled services carry a
    leading asterisk, which is stripped so the name can be fed back to
    `-ordernetworkservices`.
    """

    services: List[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.lower().startswith("an asterisk"):
            continue
        if line.startswith("*"):
            line = line[1:].strip()
        services.append(line)
    return services


def list_services(*, runner: Runner = run_cmd) -> List[str]:
    r = runner([NETWORKSETUP, "-listallnetworkservices"])
    return parse_service_listing(r.stdout)


def set_service_order(order: Sequence[str], *, runner: Runner = run_cmd) -> int:
    r = runner(sudo([NETWORKSETUP, "-ordernetworkservices", *order]), check=False)
    return r.returncode
