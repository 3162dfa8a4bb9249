"""Shared fixtures for the supervisor test suite."""

import subprocess
from datetime import datetime
from typing import List, Optional

import pytest

from warden.local.config import HostPlatform, SessionConfig
from warden.local.errors import LaunchFailure
from warden.local.platforms import ExecutionContext, WorkerHost


def make_config(tmp_path, host_platform: HostPlatform = HostPlatform.LINUX, **overrides) -> SessionConfig:
    nexus_home = tmp_path / ".nexus"
    nexus_home.mkdir(exist_ok=True)
    values = dict(
        platform=host_platform,
        home_dir=tmp_path,
        nexus_home=nexus_home,
        config_file=nexus_home / "config.json",
        pid_file=nexus_home / "warden.pid",
        log_file=tmp_path / "nexus.log",
        poll_interval=0.01,
        launch_settle_seconds=0,
        grace_period=0.1,
        install_backoff=0,
        identity_confirm_timeout=0,
        extra_bin_dirs=(),
    )
    values.update(overrides)
    return SessionConfig(**values)


def completed(args, stdout: str = "", stderr: str = "", returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr=stderr)


class FakeHost(WorkerHost):
    """A WorkerHost that records calls instead of touching the OS."""

    context_kind = "fake-session"

    def __init__(self, config: SessionConfig, launch_results: Optional[List[bool]] = None, calls: Optional[list] = None):
        super().__init__(config, sleep=lambda _: None)
        self.calls = calls if calls is not None else []
        self.launch_results = list(launch_results or [])
        self.launches: List[str] = []
        self.closed = 0
        self.alive = False

    def install_dependencies(self, dependency_manager) -> bool:
        return True

    def open_execution_context(self, node_id: str) -> ExecutionContext:
        self.launches.append(node_id)
        ok = self.launch_results.pop(0) if self.launch_results else True
        if not ok:
            self.alive = False
            raise LaunchFailure("session not found after settle period")
        self.alive = True
        return ExecutionContext(self.context_kind, self.config.session_name, datetime.now())

    def context_alive(self, context=None) -> bool:
        return self.alive

    def close_execution_contexts(self) -> bool:
        self.calls.append("close_context")
        self.closed += 1
        was_alive, self.alive = self.alive, False
        return was_alive


class FakeRegistry:
    """A ProcessRegistry stand-in with fixed answers."""

    def __init__(self, workers=frozenset(), children=frozenset(), calls=None):
        self.calls = calls if calls is not None else []
        self.workers = frozenset(workers)
        self.child_pids = frozenset(children)

    def worker_processes(self):
        self.calls.append("find_workers")
        return self.workers

    def children(self):
        self.calls.append("find_children")
        return self.child_pids

    def describe(self, pids):
        return []


@pytest.fixture
def session_config(tmp_path):
    return make_config(tmp_path)


@pytest.fixture
def gui_config(tmp_path):
    return make_config(tmp_path, host_platform=HostPlatform.MACOS)


@pytest.fixture
def fake_host(session_config):
    return FakeHost(session_config)


@pytest.fixture
def fake_registry():
    return FakeRegistry()
