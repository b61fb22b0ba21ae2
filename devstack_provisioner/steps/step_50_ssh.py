from __future__ import annotations

import getpass
import logging
import re
import socket
from pathlib import Path

from ..context import StageContext
from ..lib.command import sudo
from ..lib.env import PATHS
from ..run_config import RunConfig
from .base import BaseStep

logger = logging.getLogger(__name__)

_PORT_LINE = re.compile(r"^#*[ \t]*Port[ \t]+\d+[ \t]*$", re.MULTILINE)


def set_services_port(text: str, port: int) -> str:
    """Point the `ssh 22/tcp|udp` entries of /etc/services at `port`."""

    return re.sub(r"^(ssh[ \t]+)22/", rf"\g<1>{port}/", text, flags=re.MULTILINE)


def set_sshd_port(text: str, port: int) -> str:
    if re.search(rf"^[ \t]*Port[ \t]+{port}[ \t]*$", text, re.MULTILINE):
        return text
    if _PORT_LINE.search(text):
        return _PORT_LINE.sub(f"Port {port}", text)
    if text and not text.endswith("\n"):
        text += "\n"
    return text + f"Port {port}\n"


class SshStep(BaseStep):
    step_id = "50_ssh"
    optional = True

    def enabled(self, config: RunConfig) -> bool:
        return config.configure_ssh

    def _rewrite(self, ctx: StageContext, path: str, current: str, updated: str) -> None:
        if updated == current:
            logger.info("%s already up to date", path)
            return
        logger.info("Updating SSH port in %s...", path)
        ctx.runner(sudo(["cp", path, f"{path}.bak"]))
        ctx.runner(sudo(["tee", path]), input_text=updated)

    def _enable_remote_login(self, ctx: StageContext) -> None:
        r = ctx.runner(sudo(["systemsetup", "-setremotelogin", "on"]), check=False)
        if r.returncode != 0:
            logger.warning(
                "Could not enable Remote Login (exit %s); grant Full Disk Access to the terminal and re-run",
                r.returncode,
            )
        ctx.runner(sudo(["launchctl", "enable", "system/com.openssh.sshd"]), check=False)
        ctx.runner(sudo(["launchctl", "kickstart", "-k", "system/com.openssh.sshd"]), check=False)

    def _ensure_key(self, ctx: StageContext) -> None:
        key = ctx.config.expand(PATHS.ssh_key)
        if key.exists():
            return
        logger.info("Generating SSH key %s...", key)
        ssh_dir = key.parent
        ctx.runner(["mkdir", "-p", str(ssh_dir)])
        ctx.runner(["chmod", "700", str(ssh_dir)])
        comment = f"{getpass.getuser()}@{socket.gethostname()}"
        ctx.runner(["ssh-keygen", "-t", "ed25519", "-f", str(key), "-C", comment, "-N", ""])
        pub = Path(f"{key}.pub")
        if pub.exists():
            logger.info("SSH public key: %s", pub.read_text(encoding="utf-8").strip())

    def run(self, ctx: StageContext) -> None:
        port = ctx.config.ssh_port

        services = Path(PATHS.services_file).read_text(encoding="utf-8")
        self._rewrite(ctx, PATHS.services_file, services, set_services_port(services, port))

        sshd = ctx.runner(sudo(["cat", PATHS.sshd_config])).stdout
        self._rewrite(ctx, PATHS.sshd_config, sshd, set_sshd_port(sshd, port))

        self._enable_remote_login(ctx)
        self._ensure_key(ctx)
        logger.info("SSH configuration complete (port %s)", port)
