"""Tests for run configuration loading."""

import dataclasses

import pytest

from devstack_provisioner.run_config import LogLevel, RunConfig, load_run_config, parse_bool


class TestDefaults:
    def test_defaults(self):
        cfg = load_run_config(env={})

        assert cfg == RunConfig()
        assert cfg.install_android is True
        assert cfg.offline_mode is False
        assert cfg.log_level == LogLevel.INFO

    def test_frozen(self):
        cfg = RunConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.offline_mode = True


class TestLayers:
    """Precedence: defaults < YAML < environment < overrides."""

    def test_environment_toggles(self):
        cfg = load_run_config(env={"INSTALL_XCODE": "false", "LOG_LEVEL": "debug", "OFFLINE_MODE": "1"})

        assert cfg.install_toolchain is False
        assert cfg.log_level == LogLevel.DEBUG
        assert cfg.offline_mode is True

    def test_empty_environment_value_ignored(self):
        assert load_run_config(env={"INSTALL_ANDROID": ""}).install_android is True

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(
            "install_android: false\n"
            "ssh_port: 2222\n"
            "android_packages: [platform-tools]\n"
            "concurrency:\n  30_android_sdk: parallel_group_a\n"
            "optional_stages: [35_xcode]\n",
            encoding="utf-8",
        )

        cfg = load_run_config(str(path), env={})

        assert cfg.install_android is False
        assert cfg.ssh_port == 2222
        assert cfg.android_packages == ("platform-tools",)
        assert cfg.concurrency == {"30_android_sdk": "parallel_group_a"}
        assert cfg.optional_stages == frozenset({"35_xcode"})

    def test_env_beats_yaml_and_overrides_beat_env(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("configure_ssh: true\nconfigure_power: true\n", encoding="utf-8")

        cfg = load_run_config(
            str(path),
            env={"CONFIGURE_SSH": "false", "CONFIGURE_POWER": "false"},
            overrides={"configure_power": True, "log_file": None},
        )

        assert cfg.configure_ssh is False
        assert cfg.configure_power is True

    def test_warning_alias(self):
        assert load_run_config(env={"LOG_LEVEL": "warning"}).log_level == LogLevel.WARN


class TestValidation:
    def test_unknown_yaml_key(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("install_everything: true\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Unknown run config option"):
            load_run_config(str(path), env={})

    def test_non_yaml_file_rejected(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text("{}", encoding="utf-8")

        with pytest.raises(ValueError, match="YAML"):
            load_run_config(str(path), env={})

    def test_yaml_must_be_mapping(self, tmp_path):
        path = tmp_path / "run.yml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            load_run_config(str(path), env={})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_run_config(str(tmp_path / "missing.yaml"), env={})

    def test_bad_boolean(self):
        with pytest.raises(ValueError, match="install_android"):
            load_run_config(env={"INSTALL_ANDROID": "maybe"})

    def test_bad_log_level(self):
        with pytest.raises(ValueError, match="log_level"):
            load_run_config(env={"LOG_LEVEL": "TRACE"})

    @pytest.mark.parametrize("value,expected", [("yes", True), ("Off", False), (True, True), ("0", False)])
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected


class TestPaths:
    def test_expand_uses_configured_home(self, tmp_path):
        cfg = RunConfig(home_dir=str(tmp_path))

        assert cfg.expand("~/.npm-global") == tmp_path / ".npm-global"
        assert cfg.expand("/etc/services").as_posix() == "/etc/services"


class TestConcurrency:
    def test_unknown_group_rejected_at_load(self):
        with pytest.raises(ValueError, match="parallel_group_c"):
            load_run_config(env={}, overrides={"concurrency": {"30_android_sdk": "parallel_group_c"}})

    def test_group_names_are_normalized(self):
        cfg = load_run_config(env={}, overrides={"concurrency": {"35_xcode": " Parallel_Group_B "}})

        assert cfg.concurrency == {"35_xcode": "parallel_group_b"}
