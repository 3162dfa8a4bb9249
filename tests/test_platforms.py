"""Tests for platform detection and the per-platform worker hosts."""

import shlex

import pytest

from warden.local import commands
from warden.local.config import HostPlatform, detect_host_platform
from warden.local.errors import LaunchFailure, PlatformNotSupportedError
from warden.local.platforms import (
    ScreenSessionHost,
    TerminalWindowHost,
    UbuntuScreenSessionHost,
    get_worker_host,
)

from conftest import completed, make_config

SCREEN_LIST_RUNNING = (
    "There is a screen on:\n"
    "\t4242.nexus_node\t(Detached)\n"
    "1 Socket in /run/screen/S-user.\n"
)
SCREEN_LIST_EMPTY = "No Sockets found in /run/screen/S-user.\n"


class TestDetection:

    def test_darwin_is_macos(self):
        assert HostPlatform.MACOS.is_gui
        assert detect_host_platform("Darwin") is HostPlatform.MACOS

    @pytest.mark.parametrize("release_id, expected", [
        ("ubuntu", HostPlatform.UBUNTU),
        ("debian", HostPlatform.LINUX),
        ("", HostPlatform.LINUX),
    ])
    def test_linux_distributions(self, release_id, expected):
        assert detect_host_platform("Linux", os_release_id=release_id) is expected
        assert not expected.is_gui

    def test_other_kernels_are_rejected(self):
        with pytest.raises(PlatformNotSupportedError):
            detect_host_platform("Windows")

    @pytest.mark.parametrize("host_platform, host_class", [
        (HostPlatform.MACOS, TerminalWindowHost),
        (HostPlatform.UBUNTU, UbuntuScreenSessionHost),
        (HostPlatform.LINUX, ScreenSessionHost),
    ])
    def test_one_host_per_platform(self, tmp_path, host_platform, host_class):
        assert type(get_worker_host(make_config(tmp_path, host_platform))) is host_class


@pytest.fixture
def recorded_commands(monkeypatch):
    """Records every command and answers `screen -list` from a mutable script."""
    state = {"calls": [], "screen_list": SCREEN_LIST_RUNNING, "osascript": []}

    def fake_run(args, timeout=None, env=None, input_text=None):
        args = list(args)
        state["calls"].append((args, input_text, env))
        if args[:2] == ["screen", "-list"]:
            return completed(args, stdout=state["screen_list"], returncode=1)
        if args[0] == "osascript":
            return state["osascript"].pop(0) if state["osascript"] else completed(args, returncode=1)
        return completed(args)

    monkeypatch.setattr(commands, "run_command", fake_run)
    monkeypatch.setattr(commands, "which", lambda name, path=None: f"/opt/nexus bin/{name}")
    return state


class TestScreenSessionHost:

    def test_launch_builds_detached_session_with_quoted_identity(self, session_config, recorded_commands):
        host = ScreenSessionHost(session_config, sleep=lambda _: None)

        context = host.open_execution_context("abc-123")

        args, _, env = recorded_commands["calls"][0]
        assert args[:5] == ["screen", "-dmS", "nexus_node", "bash", "-c"]
        inner = shlex.split(args[5])
        assert inner[:4] == ["/opt/nexus bin/nexus-network", "start", "--node-id", "abc-123"]
        assert inner[-3:] == [">>", str(session_config.log_file), "2>&1"]
        assert env is not None and "PATH" in env
        assert context.kind == "screen-session"
        assert context.label == "nexus_node"

    def test_launch_waits_for_settle_period(self, tmp_path, recorded_commands):
        slept = []
        host = ScreenSessionHost(make_config(tmp_path, launch_settle_seconds=2), sleep=slept.append)
        host.open_execution_context("abc-123")
        assert slept == [2]

    def test_missing_session_after_settle_is_a_launch_failure(self, session_config, recorded_commands):
        recorded_commands["screen_list"] = SCREEN_LIST_EMPTY
        host = ScreenSessionHost(session_config, sleep=lambda _: None)
        with pytest.raises(LaunchFailure):
            host.open_execution_context("abc-123")

    def test_session_name_must_match_exactly(self, session_config, recorded_commands):
        recorded_commands["screen_list"] = "\t4242.nexus_node_old\t(Detached)\n"
        assert ScreenSessionHost(session_config).session_exists() is False

    def test_close_quits_existing_session(self, session_config, recorded_commands):
        assert ScreenSessionHost(session_config).close_execution_contexts() is True
        assert recorded_commands["calls"][-1][0] == ["screen", "-S", "nexus_node", "-X", "quit"]

    def test_close_without_session_does_nothing(self, session_config, recorded_commands):
        recorded_commands["screen_list"] = SCREEN_LIST_EMPTY
        assert ScreenSessionHost(session_config).close_execution_contexts() is False
        assert all(call[0][:2] == ["screen", "-list"] for call in recorded_commands["calls"])


class TestTerminalWindowHost:

    def test_launch_sends_applescript_on_stdin(self, gui_config, recorded_commands):
        recorded_commands["osascript"] = [completed(["osascript"], stdout="tab 1 of window id 7\n")]

        context = TerminalWindowHost(gui_config).open_execution_context("abc-123")

        args, script, _ = recorded_commands["calls"][0]
        assert args == ["osascript", "-"]
        assert 'tell application "Terminal"' in script
        assert "--node-id abc-123" in script
        assert context.kind == "terminal-window"

    def test_failed_osascript_is_a_launch_failure(self, gui_config, recorded_commands):
        recorded_commands["osascript"] = [completed(["osascript"], stderr="not authorised", returncode=1)]
        with pytest.raises(LaunchFailure, match="not authorised"):
            TerminalWindowHost(gui_config).open_execution_context("abc-123")

    def test_close_closes_every_marked_window(self, gui_config, recorded_commands):
        recorded_commands["osascript"] = [
            completed(["osascript"], stdout="11\n"),
            completed(["osascript"]),
            completed(["osascript"], stdout="12\n"),
            completed(["osascript"]),
            completed(["osascript"], returncode=1),
        ]

        assert TerminalWindowHost(gui_config).close_execution_contexts() is True

        scripts = [call[1] for call in recorded_commands["calls"]]
        assert any("close window id 11" in s for s in scripts)
        assert any("close window id 12" in s for s in scripts)
