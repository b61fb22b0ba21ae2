"""Tests for individual provisioning steps."""

from dataclasses import replace
from pathlib import Path

import pytest

from devstack_provisioner.context import StageContext
from devstack_provisioner.errors import StageError
from devstack_provisioner.lib.brew import HomebrewBackend
from devstack_provisioner.lib.sdk import (
    missing_components,
    parse_xcode_versions,
    sdkmanager_path,
    select_stable_versions,
)
from devstack_provisioner.run_config import RunConfig
from devstack_provisioner.steps import (
    AndroidSdkStep,
    CoreToolsStep,
    GitStep,
    JavaStep,
    PowerStep,
    ShellProfileStep,
)
from devstack_provisioner.steps.step_40_appium import installed_drivers
from devstack_provisioner.steps.step_50_ssh import set_services_port, set_sshd_port
from devstack_provisioner.steps.step_60_power import parse_pmset
from devstack_provisioner.steps.step_90_shell_profile import block_marker, zshrc_blocks


def make_ctx(config, runner):
    return StageContext(
        config=config,
        runner=runner,
        backend=HomebrewBackend(runner=runner, sleep=lambda _s: None),
    )


def install_sdk(root, components):
    tool = Path(sdkmanager_path(root))
    tool.parent.mkdir(parents=True, exist_ok=True)
    tool.write_text("#!/bin/sh\n", encoding="utf-8")
    for c in components:
        Path(root).joinpath(*c.split(";")).mkdir(parents=True, exist_ok=True)


class TestAndroidSdk:
    """Tests for the Android SDK stage."""

    def test_probe_satisfied_when_all_components_present(self, config, runner):
        install_sdk(config.android_sdk_root, config.android_packages)

        assert AndroidSdkStep().probe(make_ctx(config, runner)) is True

    def test_probe_reports_missing_component(self, config, runner):
        install_sdk(config.android_sdk_root, config.android_packages[:-1])

        assert AndroidSdkStep().probe(make_ctx(config, runner)) is False
        assert missing_components(config.android_sdk_root, config.android_packages) == [config.android_packages[-1]]

    def test_installs_only_missing_components(self, config, runner):
        install_sdk(config.android_sdk_root, ["platform-tools"])
        tool = sdkmanager_path(config.android_sdk_root)

        def fake_install(argv):
            install_sdk(config.android_sdk_root, [a for a in argv[2:] if not a.startswith("--")])
            return 0

        runner.script(tool, fn=fake_install)

        AndroidSdkStep().run(make_ctx(config, runner))

        installs = [c for c in runner.matching(tool) if "--licenses" not in c]
        assert len(installs) == 1
        assert "platform-tools" not in installs[0]
        assert set(config.android_packages[1:]) <= set(installs[0])
        assert missing_components(config.android_sdk_root, config.android_packages) == []

    def test_licenses_are_answered_affirmatively(self, config, runner):
        install_sdk(config.android_sdk_root, config.android_packages)

        AndroidSdkStep().run(make_ctx(config, runner))

        idx = next(i for i, c in enumerate(runner.calls) if "--licenses" in c)
        assert runner.inputs[idx].startswith("y\n")

    def test_components_still_missing_fail_the_stage(self, config, runner):
        install_sdk(config.android_sdk_root, [])

        with pytest.raises(StageError, match="missing after install"):
            AndroidSdkStep().run(make_ctx(config, runner))

    def test_failed_cmdline_tools_cask_fails_the_stage(self, config, runner):
        runner.script("brew", "list", returncode=1)
        runner.script("brew", "install", "--cask", "android-commandlinetools", returncode=1)

        with pytest.raises(StageError, match="android-commandlinetools"):
            AndroidSdkStep().run(make_ctx(config, runner))

    def test_disabled_by_config(self, config):
        assert AndroidSdkStep().enabled(config) is True
        assert AndroidSdkStep().enabled(RunConfig(install_android=False)) is False


class TestRequiredInstalls:
    """Required installs raise so the scheduler records FAILED."""

    def test_java_install_failure(self, config, runner):
        runner.script("/usr/libexec/java_home", returncode=1)
        runner.script("brew", "list", returncode=1)
        runner.script("brew", "install", "openjdk@17", returncode=1)
        step = JavaStep()
        ctx = make_ctx(config, runner)

        assert step.probe(ctx) is False
        with pytest.raises(StageError, match="openjdk@17"):
            step.run(ctx)

    def test_core_tools_report_every_failure(self, config, runner):
        runner.script("brew", "list", returncode=1)
        runner.script("brew", "install", "jq", returncode=1)
        runner.script("brew", "install", "tree", returncode=1)

        with pytest.raises(StageError) as excinfo:
            CoreToolsStep().run(make_ctx(config, runner))

        assert "jq, tree" in str(excinfo.value)
        # Failures do not stop the remaining formulas.
        assert runner.matching("brew", "install", "rsync")

    def test_git_probe(self, config, runner):
        runner.script("git", "config", "--global", "credential.helper", stdout="osxkeychain\n")

        assert GitStep().probe(make_ctx(config, runner)) is True


class TestXcodeVersions:
    LISTING = "\n".join(
        [
            "14.3.1 (14E300c)",
            "15.0 (15A240d)",
            "15.4 (15F31d)",
            "16.0 Beta 3 (16A5202i)",
            "16.0 Release Candidate (16A242)",
            "15.4 (15F31d) (Installed)",
            "16.1 (16B40)",
        ]
    )

    def test_prereleases_are_excluded(self):
        assert parse_xcode_versions(self.LISTING) == ["14.3.1", "15.0", "15.4", "16.1"]

    def test_newest_n_stable(self):
        assert select_stable_versions(self.LISTING, 3) == ["15.0", "15.4", "16.1"]

    def test_zero_versions(self):
        assert select_stable_versions(self.LISTING, 0) == []


class TestSshText:
    def test_services_port_rewrite(self):
        text = "ssh              22/udp     # SSH Remote Login Protocol\nssh              22/tcp\ntelnet 23/tcp\n"

        out = set_services_port(text, 20022)

        assert "ssh              20022/udp" in out
        assert "ssh              20022/tcp" in out
        assert "telnet 23/tcp" in out

    def test_sshd_port_replaces_commented_default(self):
        assert "Port 20022\n" in set_sshd_port("#Port 22\nPermitRootLogin no\n", 20022)

    def test_sshd_port_appended_when_absent(self):
        assert set_sshd_port("PermitRootLogin no", 20022) == "PermitRootLogin no\nPort 20022\n"

    def test_sshd_port_already_set_is_unchanged(self):
        text = "Port 20022\n"
        assert set_sshd_port(text, 20022) is text


class TestPower:
    PMSET = "System-wide power settings:\nCurrently in use:\n sleep                0\n displaysleep         0\n disksleep            10\n"

    def test_parse(self):
        settings = parse_pmset(self.PMSET)
        assert settings["sleep"] == "0"
        assert settings["disksleep"] == "10"

    def test_probe_requires_all_zero(self, config, runner):
        runner.script("pmset", "-g", stdout=self.PMSET)
        assert PowerStep().probe(make_ctx(config, runner)) is False

        runner.script("pmset", "-g", stdout=self.PMSET.replace("10", "0"))
        assert PowerStep().probe(make_ctx(config, runner)) is True


class TestAppiumDrivers:
    def test_installed_drivers(self):
        listing = "- Listing installed drivers\n- xcuitest@7.1.0 [installed (npm)]\n"
        assert installed_drivers(listing) == {"xcuitest"}


class TestShellProfile:
    """Shell profile blocks are appended once."""

    def test_run_is_idempotent(self, config, runner):
        step = ShellProfileStep()
        ctx = make_ctx(config, runner)
        zshrc = config.home / ".zshrc"
        zshrc.parent.mkdir(parents=True)
        zshrc.write_text("alias ll='ls -l'", encoding="utf-8")

        assert step.probe(ctx) is False
        step.run(ctx)
        first = zshrc.read_text(encoding="utf-8")
        step.run(ctx)

        assert zshrc.read_text(encoding="utf-8") == first
        assert first.startswith("alias ll='ls -l'\n")
        assert first.count(block_marker("Android SDK")) == 1
        assert step.probe(ctx) is True

    def test_blocks_follow_toggles(self, config):
        titles = [t for t, _ in zshrc_blocks(RunConfig(install_android=False, install_internal_tools=False))]

        assert "Android SDK" not in titles
        assert "Fastlane" not in titles
        assert "NPM user bin" in titles

    def test_dry_run_writes_nothing(self, config, runner):
        ctx = make_ctx(replace(config, dry_run=True), runner)
        ShellProfileStep().run(ctx)

        assert not (config.home / ".zshrc").exists()
