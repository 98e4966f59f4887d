"""Tests for capture session lifecycle."""

import os
import stat
import sys
import time
from unittest.mock import MagicMock

import pytest

from netextcap.core.config import ExtcapConfig
from netextcap.core.exceptions import ChannelError
from netextcap.extcap.discovery import DiscoveryProber
from netextcap.extcap.pipes import FifoPipeFactory, PipeChannel
from netextcap.extcap.protocol import INVALID_PID, capture_command
from netextcap.extcap.runner import ProcessLauncher
from netextcap.extcap.session import (
    CaptureSession,
    InterfaceOptions,
    InterfaceState,
    InterfaceType,
    SessionManager,
)

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="needs /bin/sh helpers and FIFOs")


class FailingAfterFactory(FifoPipeFactory):
    """FIFO factory that fails once it has created `limit` channels."""

    def __init__(self, config, limit):
        super().__init__(config)
        self.limit = limit
        self.created = []

    def create_channel(self):
        if len(self.created) >= self.limit:
            raise ChannelError("Cannot create fifo", "simulated failure")
        channel = super().create_channel()
        self.created.append(channel.path)
        return channel


def _mock_factory():
    factory = MagicMock()
    counter = iter(range(100))
    factory.create_channel.side_effect = lambda: PipeChannel(f"/tmp/chan{next(counter)}")
    return factory


class TestInterfaceOptions:
    """Test immutable interface revisions."""

    def test_defaults(self):
        """Test a native entry has no channel or process."""
        options = InterfaceOptions(name="eth0")
        assert options.if_type is InterfaceType.NATIVE
        assert options.extcap_pid == INVALID_PID
        assert options.has_process is False
        assert options.state is InterfaceState.CONFIGURED

    def test_extcap_requires_helper(self):
        """Test a helper-backed entry must name its helper."""
        with pytest.raises(ValueError):
            InterfaceOptions(name="eth-ext", if_type=InterfaceType.EXTCAP)

    def test_advance_returns_new_revision(self):
        """Test advancing leaves the old revision untouched."""
        first = InterfaceOptions(name="eth-ext", if_type=InterfaceType.EXTCAP, extcap="/x")
        second = first.advance(InterfaceState.CHANNEL_CREATED, extcap_fifo="/tmp/f")

        assert first.state is InterfaceState.CONFIGURED
        assert first.extcap_fifo is None
        assert second.state is InterfaceState.CHANNEL_CREATED
        assert second.extcap_fifo == "/tmp/f"

    def test_no_backward_transitions(self):
        """Test states never move backwards."""
        options = InterfaceOptions(
            name="eth-ext",
            if_type=InterfaceType.EXTCAP,
            extcap="/x",
            state=InterfaceState.RUNNING,
        )
        with pytest.raises(ValueError):
            options.advance(InterfaceState.CHANNEL_CREATED)
        assert options.advance(InterfaceState.STOPPED).state is InterfaceState.STOPPED

    def test_to_dict(self):
        """Test serialization."""
        options = InterfaceOptions(
            name="eth-ext",
            if_type=InterfaceType.EXTCAP,
            extcap="/x",
            extcap_args={"--delay": "5"},
        )
        data = options.to_dict()
        assert data["type"] == "extcap"
        assert data["args"] == {"--delay": "5"}
        assert data["pid"] == INVALID_PID


class TestCaptureSession:
    """Test the index to revision mapping."""

    def test_add_and_replace(self):
        """Test entries keep their index across revisions."""
        session = CaptureSession()
        native = session.add_native("eth0")
        ext = session.add_extcap("eth-ext", "/extcap/a", {"--delay": "5"})

        revised = session.get(ext).advance(InterfaceState.CHANNEL_CREATED, extcap_fifo="/f")
        session.replace(ext, revised)

        assert [o.name for o in session] == ["eth0", "eth-ext"]
        assert session.get(ext).extcap_fifo == "/f"
        assert session.extcap_items() == [(ext, revised)]
        assert session.get(native).is_extcap is False
        assert len(session) == 2

    def test_replace_unknown_index(self):
        """Test replacing a missing entry fails."""
        with pytest.raises(KeyError):
            CaptureSession().replace(3, InterfaceOptions(name="eth0"))

    def test_args_copied(self):
        """Test the caller's argument mapping is not shared."""
        args = {"--delay": "5"}
        session = CaptureSession()
        index = session.add_extcap("eth-ext", "/extcap/a", args)
        args["--delay"] = "9"
        assert session.get(index).extcap_args == {"--delay": "5"}


class TestCaptureCommand:
    """Test run-capture argument building."""

    def test_order_and_flags(self):
        """Test verb, interface, fifo, then extras in mapping order."""
        argv = capture_command(
            "/extcap/a",
            "eth-ext",
            "/tmp/fifo",
            {"--delay": "5", "--verify": None, "--message": "hi"},
        )
        assert argv == [
            "/extcap/a",
            "--capture",
            "--extcap-interface",
            "eth-ext",
            "--fifo",
            "/tmp/fifo",
            "--delay",
            "5",
            "--verify",
            "--message",
            "hi",
        ]

    def test_no_extras(self):
        """Test a command without extra arguments."""
        argv = capture_command("/extcap/a", "eth-ext", "/tmp/fifo")
        assert argv[-2:] == ["--fifo", "/tmp/fifo"]


class TestSessionManagerWithMocks:
    """Test lifecycle rules with mocked channels and processes."""

    def test_add_interface_uses_registry(self, registry):
        """Test configured entries take their helper from the registry."""
        registry.register("eth-ext", "/extcap/a")
        manager = SessionManager(registry=registry, pipe_factory=MagicMock(), launcher=MagicMock())
        session = CaptureSession()

        index = manager.add_interface(session, "eth-ext", {"--delay": "1"})

        assert session.get(index).extcap == "/extcap/a"
        assert manager.add_interface(session, "unknown-ext") is None
        assert len(session) == 1

    def test_init_spawns_each_extcap_entry(self, registry):
        """Test channels and helpers are created per helper-backed entry."""
        launcher = MagicMock()
        launcher.spawn.side_effect = [101, 102]
        manager = SessionManager(registry=registry, pipe_factory=_mock_factory(), launcher=launcher)
        session = CaptureSession()
        session.add_native("eth0")
        first = session.add_extcap("eth-ext", "/extcap/a", {"--delay": "5"})
        second = session.add_extcap("usb-ext", "/extcap/b")

        assert manager.init_interfaces(session) is True

        assert launcher.spawn.call_args_list[0].args[0] == [
            "/extcap/a",
            "--capture",
            "--extcap-interface",
            "eth-ext",
            "--fifo",
            "/tmp/chan0",
            "--delay",
            "5",
        ]
        assert session.get(first).extcap_pid == 101
        assert session.get(second).extcap_fifo == "/tmp/chan1"
        assert session.get(first).state is InterfaceState.RUNNING
        assert session.get(0).state is InterfaceState.CONFIGURED

    def test_spawn_failure_not_fatal(self, registry):
        """Test a helper that fails to start leaves an invalid pid but init succeeds."""
        launcher = MagicMock()
        launcher.spawn.side_effect = [INVALID_PID, 202]
        manager = SessionManager(registry=registry, pipe_factory=_mock_factory(), launcher=launcher)
        session = CaptureSession()
        broken = session.add_extcap("eth-ext", "/extcap/a")
        ok = session.add_extcap("usb-ext", "/extcap/b")

        assert manager.init_interfaces(session) is True

        assert session.get(broken).extcap_pid == INVALID_PID
        assert session.get(broken).state is InterfaceState.PROCESS_SPAWNED
        assert session.get(broken).extcap_fifo == "/tmp/chan0"
        assert session.get(ok).state is InterfaceState.RUNNING

    def test_channel_failure_aborts(self, registry):
        """Test a channel failure stops init before any later entry."""
        factory = MagicMock()
        factory.create_channel.side_effect = [PipeChannel("/tmp/one"), ChannelError("nope")]
        launcher = MagicMock()
        launcher.spawn.return_value = 303
        manager = SessionManager(registry=registry, pipe_factory=factory, launcher=launcher)
        session = CaptureSession()
        first = session.add_extcap("eth-ext", "/extcap/a")
        second = session.add_extcap("usb-ext", "/extcap/b")
        third = session.add_extcap("ble-ext", "/extcap/c")

        assert manager.init_interfaces(session) is False

        assert launcher.spawn.call_count == 1
        assert session.get(first).state is InterfaceState.PROCESS_SPAWNED
        assert session.get(second).state is InterfaceState.CONFIGURED
        assert session.get(third).state is InterfaceState.CONFIGURED

    def test_init_skips_started_entries(self, registry):
        """Test a second init call does not restart running entries."""
        launcher = MagicMock()
        launcher.spawn.return_value = 404
        manager = SessionManager(registry=registry, pipe_factory=_mock_factory(), launcher=launcher)
        session = CaptureSession()
        session.add_extcap("eth-ext", "/extcap/a")

        manager.init_interfaces(session)
        manager.init_interfaces(session)

        assert launcher.spawn.call_count == 1

    def test_cleanup_releases_everything(self, registry):
        """Test channels and process handles are released and entries stopped."""
        factory = _mock_factory()
        launcher = MagicMock()
        launcher.spawn.return_value = 505
        manager = SessionManager(registry=registry, pipe_factory=factory, launcher=launcher)
        session = CaptureSession()
        session.add_native("eth0")
        index = session.add_extcap("eth-ext", "/extcap/a")
        manager.init_interfaces(session)

        manager.cleanup(session)

        factory.release.assert_called_once_with("/tmp/chan0", None)
        launcher.release.assert_called_once_with(505)
        options = session.get(index)
        assert options.extcap_fifo is None
        assert options.extcap_pid == INVALID_PID
        assert options.state is InterfaceState.STOPPED
        assert session.get(0).state is InterfaceState.CONFIGURED

    def test_cleanup_is_idempotent(self, registry):
        """Test a second cleanup releases nothing more."""
        factory = _mock_factory()
        launcher = MagicMock()
        launcher.spawn.return_value = 606
        manager = SessionManager(registry=registry, pipe_factory=factory, launcher=launcher)
        session = CaptureSession()
        session.add_extcap("eth-ext", "/extcap/a")
        manager.init_interfaces(session)

        manager.cleanup(session)
        manager.cleanup(session)

        assert factory.release.call_count == 1
        assert launcher.release.call_count == 1

    def test_cleanup_failure_isolated(self, registry):
        """Test one entry's teardown failure does not block the next."""
        factory = _mock_factory()
        factory.release.side_effect = [ChannelError("busy"), None]
        launcher = MagicMock()
        launcher.spawn.side_effect = [701, 702]
        manager = SessionManager(registry=registry, pipe_factory=factory, launcher=launcher)
        session = CaptureSession()
        first = session.add_extcap("eth-ext", "/extcap/a")
        second = session.add_extcap("usb-ext", "/extcap/b")
        manager.init_interfaces(session)

        manager.cleanup(session)

        assert factory.release.call_count == 2
        assert [c.args[0] for c in launcher.release.call_args_list] == [701, 702]
        assert session.get(first).extcap_fifo == "/tmp/chan0"
        assert session.get(first).state is InterfaceState.STOPPED
        assert session.get(second).extcap_fifo is None

    def test_cleanup_of_unstarted_session(self, registry):
        """Test cleanup of a never-started session touches nothing."""
        factory = MagicMock()
        launcher = MagicMock()
        manager = SessionManager(registry=registry, pipe_factory=factory, launcher=launcher)
        session = CaptureSession()
        index = session.add_extcap("eth-ext", "/extcap/a")

        manager.cleanup(session)

        factory.release.assert_not_called()
        launcher.release.assert_not_called()
        assert session.get(index).state is InterfaceState.STOPPED


@posix_only
class TestSessionWithHelpers:
    """End-to-end session behaviour with real FIFOs and helper processes."""

    def _discover(self, make_helper, helper_dir, registry):
        helper = make_helper(
            "helper",
            interfaces=[("eth-ext", "Ethernet"), ("usb-ext", "USB")],
        )
        DiscoveryProber(registry=registry).enumerate(helper_dir)
        return helper

    def test_start_and_stop(self, make_helper, helper_dir, pipe_dir, registry):
        """Test a helper is launched with its channel and the channel is removed at stop."""
        helper = self._discover(make_helper, helper_dir, registry)
        manager = SessionManager(
            registry=registry,
            pipe_factory=FifoPipeFactory(ExtcapConfig(pipe_dir=pipe_dir)),
        )
        session = CaptureSession()
        index = manager.add_interface(session, "eth-ext", {"--delay": "5", "--verify": None})

        assert manager.init_interfaces(session) is True
        options = session.get(index)
        assert options.has_process
        assert stat.S_ISFIFO(os.stat(options.extcap_fifo).st_mode)

        calls = helper.wait_for_calls(2)
        assert calls[-1] == (
            f"--capture --extcap-interface eth-ext --fifo {options.extcap_fifo} --delay 5 --verify"
        )

        manager.cleanup(session)
        manager.cleanup(session)

        assert not os.path.lexists(options.extcap_fifo)
        assert list(pipe_dir.iterdir()) == []
        assert session.get(index).state is InterfaceState.STOPPED

    def test_unstartable_helper(self, helper_dir, pipe_dir, registry):
        """Test a helper that cannot be executed still gets its channel cleaned up."""
        registry.register("gone-ext", str(helper_dir / "does-not-exist"))
        manager = SessionManager(
            registry=registry,
            pipe_factory=FifoPipeFactory(ExtcapConfig(pipe_dir=pipe_dir)),
        )
        session = CaptureSession()
        index = manager.add_interface(session, "gone-ext")

        assert manager.init_interfaces(session) is True
        assert session.get(index).extcap_pid == INVALID_PID

        manager.cleanup(session)
        assert list(pipe_dir.iterdir()) == []

    def test_second_channel_failure_keeps_first(self, make_helper, helper_dir, pipe_dir, registry):
        """Test the current non-rollback behaviour when a later channel fails."""
        self._discover(make_helper, helper_dir, registry)
        factory = FailingAfterFactory(ExtcapConfig(pipe_dir=pipe_dir), limit=1)
        manager = SessionManager(registry=registry, pipe_factory=factory)
        session = CaptureSession()
        first = manager.add_interface(session, "eth-ext")
        second = manager.add_interface(session, "usb-ext")

        try:
            assert manager.init_interfaces(session) is False

            assert len(factory.created) == 1
            assert os.path.lexists(factory.created[0])
            assert session.get(first).extcap_fifo == factory.created[0]
            assert session.get(second).extcap_fifo is None
        finally:
            manager.cleanup(session)

        assert not os.path.lexists(factory.created[0])


class TestProcessLauncher:
    """Test process bookkeeping."""

    def test_spawn_failure_returns_invalid(self, tmp_path):
        """Test an unstartable program yields INVALID_PID."""
        launcher = ProcessLauncher()
        assert launcher.spawn([str(tmp_path / "missing")]) == INVALID_PID
        assert launcher.pids == []

    def test_release_unknown(self):
        """Test releasing unknown or invalid pids is a no-op."""
        launcher = ProcessLauncher()
        assert launcher.release(INVALID_PID) is False
        assert launcher.release(999999) is False
        assert launcher.is_running(INVALID_PID) is False

    def test_spawn_and_release(self):
        """Test a spawned process is tracked until released."""
        launcher = ProcessLauncher()
        pid = launcher.spawn([sys.executable, "-c", "pass"])

        assert pid != INVALID_PID
        assert launcher.pids == [pid]
        assert launcher.release(pid) is True
        assert launcher.pids == []

    def test_release_running_process_is_reaped_later(self):
        """Test a helper released while alive is reaped once it exits."""
        launcher = ProcessLauncher()
        pid = launcher.spawn([sys.executable, "-c", "import time; time.sleep(0.5)"])

        assert launcher.release(pid) is True
        assert launcher.pids == []
        assert launcher.released_pids == [pid]

        deadline = time.monotonic() + 10
        while launcher.released_pids and time.monotonic() < deadline:
            launcher.is_running(pid)
            time.sleep(0.05)

        assert launcher.released_pids == []
        assert launcher.is_running(pid) is False
