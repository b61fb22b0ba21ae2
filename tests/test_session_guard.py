"""Tests for the sudo session guard."""

import time

import pytest

from devstack_provisioner.errors import FatalError, SessionRefusedError
from devstack_provisioner.session_guard import SessionGuard


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestAcquire:
    """Tests for session acquisition."""

    def test_refuses_root(self, runner):
        guard = SessionGuard(runner=runner, geteuid=lambda: 0)

        with pytest.raises(SessionRefusedError):
            guard.acquire()
        assert runner.calls == []

    def test_refused_sudo_is_fatal(self, runner):
        runner.script("sudo", "-v", returncode=1)
        guard = SessionGuard(runner=runner, geteuid=lambda: 501)

        with pytest.raises(FatalError) as excinfo:
            guard.acquire()

        assert excinfo.value.exit_code == 1
        assert not guard.active
        assert SessionGuard._live is None

    def test_only_one_live_guard(self, runner):
        first = SessionGuard(runner=runner, interval_s=10, geteuid=lambda: 501)
        second = SessionGuard(runner=runner, interval_s=10, geteuid=lambda: 501)

        with first:
            with pytest.raises(RuntimeError, match="already live"):
                second.acquire()

        # Released, so a new guard may be acquired.
        with second:
            assert second.active


class TestHeartbeat:
    """Tests for keepalive and release."""

    def test_heartbeat_refreshes_periodically(self, runner):
        guard = SessionGuard(runner=runner, interval_s=0.01, geteuid=lambda: 501)

        with guard:
            assert wait_for(lambda: guard.heartbeats >= 2)

        assert ["sudo", "-n", "true"] in runner.calls

    def test_release_stops_heartbeat(self, runner):
        guard = SessionGuard(runner=runner, interval_s=0.01, geteuid=lambda: 501)
        guard.acquire()
        wait_for(lambda: guard.heartbeats >= 1)

        guard.release()
        count = guard.heartbeats
        time.sleep(0.1)

        assert guard.heartbeats == count
        assert not guard.active

    def test_release_is_idempotent(self, runner):
        guard = SessionGuard(runner=runner, interval_s=10, geteuid=lambda: 501)
        guard.acquire()

        guard.release()
        guard.release()

        assert not guard.is_valid()

    def test_release_on_exception(self, runner):
        guard = SessionGuard(runner=runner, interval_s=10, geteuid=lambda: 501)

        with pytest.raises(KeyboardInterrupt):
            with guard:
                raise KeyboardInterrupt

        assert not guard.active
        assert SessionGuard._live is None

    def test_is_valid_reflects_sudo(self, runner):
        guard = SessionGuard(runner=runner, interval_s=10, geteuid=lambda: 501)
        with guard:
            assert guard.is_valid()
            runner.script("sudo", "-n", "true", returncode=1)
            assert not guard.is_valid()

    def test_interrupt_during_sudo_prompt_frees_the_slot(self, runner):
        def ctrl_c(_argv):
            raise KeyboardInterrupt

        runner.script("sudo", "-v", fn=ctrl_c)
        guard = SessionGuard(runner=runner, interval_s=10, geteuid=lambda: 501)

        with pytest.raises(KeyboardInterrupt):
            guard.acquire()

        assert SessionGuard._live is None
        assert not guard.active
