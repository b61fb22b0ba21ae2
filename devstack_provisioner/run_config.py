"""Run configuration.

A RunConfig is built exactly once per invocation from (lowest to highest
precedence) built-in defaults, an optional YAML file, environment variables
and CLI overrides. It is frozen: stages only read it, and the offline
downgrade performed by the run controller produces a new instance.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from .lib.env import PATHS
from .lib.net import DEFAULT_PROBE_HOST
from .pipeline import ConcurrencyGroup


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


DEFAULT_ANDROID_PACKAGES: Tuple[str, ...] = (
    "platform-tools",
    "emulator",
    "platforms;android-35",
    "build-tools;35.0.0",
)

# Environment variable -> RunConfig field.
ENV_VARS: Dict[str, str] = {
    "INSTALL_ANDROID": "install_android",
    "INSTALL_XCODE": "install_toolchain",
    "INSTALL_APPIUM": "install_automation",
    "INSTALL_INTERNAL_TOOLS": "install_internal_tools",
    "CONFIGURE_SSH": "configure_ssh",
    "CONFIGURE_POWER": "configure_power",
    "CONFIGURE_NETWORK": "configure_network",
    "CONFIGURE_REMOTE_ACCESS": "configure_remote_access",
    "OFFLINE_MODE": "offline_mode",
    "LOG_LEVEL": "log_level",
    "LOG_FILE": "log_file",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class RunConfig:
    install_android: bool = True
    install_toolchain: bool = True
    install_automation: bool = True
    install_internal_tools: bool = True
    configure_ssh: bool = True
    configure_power: bool = True
    configure_network: bool = True
    configure_remote_access: bool = True
    configure_shell: bool = True
    offline_mode: bool = False
    interactive: bool = False
    dry_run: bool = False
    log_level: LogLevel = LogLevel.INFO
    log_file: str = PATHS.log_default

    # step_id -> concurrency group name; see pipeline.apply_concurrency_policy.
    concurrency: Mapping[str, str] = field(default_factory=dict)
    optional_stages: FrozenSet[str] = frozenset()

    android_sdk_root: str = PATHS.android_sdk_root
    android_packages: Tuple[str, ...] = DEFAULT_ANDROID_PACKAGES
    xcode_versions: int = 3
    npm_prefix: str = PATHS.npm_prefix
    ssh_port: int = 20022
    home_dir: str = "~"
    restore_point_path: str = PATHS.restore_point
    probe_host: str = DEFAULT_PROBE_HOST
    heartbeat_interval_s: float = 60.0

    @property
    def home(self) -> Path:
        return Path(os.path.expanduser(self.home_dir))

    def expand(self, path: str) -> Path:
        """Resolve "~" against the configured home directory."""
        if path == "~" or path.startswith("~/"):
            return self.home / path[2:]
        return Path(path)


_FIELDS = {f.name: f for f in dataclasses.fields(RunConfig)}


def parse_bool(value: Any, *, name: str = "value") -> bool:
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ValueError(f"{name}: expected a boolean, got {value!r}")


def _coerce(name: str, value: Any) -> Any:
    default = getattr(RunConfig, name, None)
    if name == "log_level":
        s = str(value).strip().upper()
        if s == "WARNING":
            s = "WARN"
        try:
            return LogLevel(s)
        except ValueError:
            raise ValueError(f"log_level: expected DEBUG, INFO, WARN or ERROR, got {value!r}") from None
    if name == "concurrency":
        if not isinstance(value, Mapping):
            raise ValueError("concurrency must be a mapping of step_id -> group")
        groups = {g.value for g in ConcurrencyGroup}
        out = {str(k): str(v).strip().lower() for k, v in value.items()}
        bad = sorted(f"{k}={v}" for k, v in out.items() if v not in groups)
        if bad:
            raise ValueError(f"concurrency: unknown group(s) {', '.join(bad)} (expected one of {', '.join(sorted(groups))})")
        return out
    if name == "optional_stages":
        return frozenset(str(v) for v in (value or []))
    if name == "android_packages":
        return tuple(str(v) for v in (value or []))
    if isinstance(default, bool):
        return parse_bool(value, name=name)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def load_yaml_config(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("run config must be YAML")

    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to read the run config file") from e

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping/object")
    return raw


def env_overrides(env: Mapping[str, str]) -> Dict[str, str]:
    return {fname: env[var] for var, fname in ENV_VARS.items() if env.get(var, "") != ""}


def load_run_config(
    path: Optional[str] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> RunConfig:
    """Build the RunConfig for one invocation."""

    values: Dict[str, Any] = {}
    layers = [
        load_yaml_config(path) if path else {},
        env_overrides(os.environ if env is None else env),
        {k: v for k, v in (overrides or {}).items() if v is not None},
    ]
    for layer in layers:
        for key, value in layer.items():
            if key not in _FIELDS:
                raise ValueError(f"Unknown run config option: {key}")
            values[key] = _coerce(key, value)

    return RunConfig(**values)
