from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    android_sdk_root: str = "/Users/Shared/dev/sdk"
    npm_prefix: str = "~/.npm-global"
    ssh_key: str = "~/.ssh/id_ed25519"
    sshd_config: str = "/etc/ssh/sshd_config"
    services_file: str = "/etc/services"
    ard_kickstart: str = "/System/Library/CoreServices/RemoteManagement/ARDAgent.app/Contents/Resources/kickstart"
    tcc_db: str = "~/Library/Application Support/com.apple.TCC/TCC.db"
    restore_point: str = "~/.devstack-provisioner/network-restore-point.json"
    log_default: str = "/tmp/devstack-provisioner.log"


PATHS = Paths()
