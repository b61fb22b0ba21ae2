from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Tuple

from ..context import StageContext
from ..run_config import RunConfig
from .base import BaseStep

logger = logging.getLogger(__name__)

MANAGED_BY = "managed by devstack-provisioner"


def managed_block(title: str, body: str) -> str:
    return f"# --- {title} ({MANAGED_BY}) ---\n{body.rstrip()}\n# --- end {title} ---\n"


def block_marker(title: str) -> str:
    return f"# --- {title} ({MANAGED_BY}) ---"


def zshrc_blocks(cfg: RunConfig) -> List[Tuple[str, str]]:
    blocks: List[Tuple[str, str]] = []
    if cfg.install_android:
        blocks.append(
            (
                "Android SDK",
                f'export ANDROID_SDK_ROOT="{cfg.android_sdk_root}"\n'
                'export ANDROID_HOME="$ANDROID_SDK_ROOT"\n'
                'path_add() { case ":$PATH:" in *:"$1":*) ;; *) PATH="$1:$PATH";; esac }\n'
                'path_add "$ANDROID_SDK_ROOT/cmdline-tools/latest/bin"\n'
                'path_add "$ANDROID_SDK_ROOT/platform-tools"\n'
                "unset -f path_add",
            )
        )
    blocks.append(("NPM user bin", f'export PATH="{cfg.expand(cfg.npm_prefix)}/bin:$PATH"'))
    blocks.append(
        (
            "Ruby gems user bin",
            "_ruby_user_bin=\"$(\n"
            "  /usr/bin/env ruby -rrubygems -e 'print Gem.user_dir' 2>/dev/null || printf \"$HOME/.gem\"\n"
            ')/bin"\n'
            'case ":$PATH:" in *:"$_ruby_user_bin":*) ;; *) PATH="$_ruby_user_bin:$PATH";; esac\n'
            "unset _ruby_user_bin",
        )
    )
    blocks.append(
        (
            "NVM",
            'export NVM_DIR="$HOME/.nvm"\n'
            'if [ -s "/opt/homebrew/opt/nvm/nvm.sh" ]; then . "/opt/homebrew/opt/nvm/nvm.sh"; fi\n'
            'if [ -s "/usr/local/opt/nvm/nvm.sh" ]; then . "/usr/local/opt/nvm/nvm.sh"; fi',
        )
    )
    if cfg.install_internal_tools:
        blocks.append(
            (
                "Fastlane",
                'export PATH="$HOME/.fastlane/bin:$PATH"\n'
                "export FASTLANE_OPT_OUT_CRASH_REPORTING=1\n"
                "export FASTLANE_OPT_OUT_USAGE=1",
            )
        )
    return blocks


def zprofile_blocks(cfg: RunConfig) -> List[Tuple[str, str]]:
    # Login shells get the PATH essentials without the interactive extras.
    return [
        (
            "Login PATH",
            f'export ANDROID_SDK_ROOT="{cfg.android_sdk_root}"\n'
            'export ANDROID_HOME="$ANDROID_SDK_ROOT"\n'
            f'export PATH="{cfg.expand(cfg.npm_prefix)}/bin:$PATH"',
        )
    ]


def missing_blocks(path: Path, blocks: List[Tuple[str, str]]) -> List[Tuple[str, str]]:
    text = path.read_text(encoding="utf-8") if path.exists() else ""
    return [(t, b) for t, b in blocks if block_marker(t) not in text]


def append_blocks(path: Path, blocks: List[Tuple[str, str]], *, dry_run: bool = False) -> List[str]:
    missing = missing_blocks(path, blocks)
    if not missing:
        return []
    if dry_run:
        logger.info("Would add %s to %s", ", ".join(t for t, _ in missing), path)
        return [t for t, _ in missing]

    path.parent.mkdir(parents=True, exist_ok=True)
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    with path.open("a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        for title, body in missing:
            f.write(managed_block(title, body))
            logger.info("Added %s configuration to %s", title, path.name)
    return [t for t, _ in missing]


class ShellProfileStep(BaseStep):
    step_id = "90_shell_profile"
    optional = True

    def enabled(self, config: RunConfig) -> bool:
        return config.configure_shell

    def _targets(self, cfg: RunConfig) -> List[Tuple[Path, List[Tuple[str, str]]]]:
        return [(cfg.home / ".zshrc", zshrc_blocks(cfg)), (cfg.home / ".zprofile", zprofile_blocks(cfg))]

    def probe(self, ctx: StageContext) -> bool:
        return all(not missing_blocks(p, b) for p, b in self._targets(ctx.config))

    def run(self, ctx: StageContext) -> None:
        for path, blocks in self._targets(ctx.config):
            append_blocks(path, blocks, dry_run=ctx.config.dry_run)
