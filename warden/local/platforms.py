"""
Platform-specific launch, inspection and teardown of the worker's execution context.

Each supported HostPlatform maps to one WorkerHost implementation:
- macOS runs the worker in a visible Terminal window driven through osascript.
- Ubuntu and other Linux hosts run it in a detached, named `screen` session
  whose output is appended to the session log file.
"""
import re
import time
import shlex
import logging
from datetime import datetime
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from warden.local import commands
from warden.local.config import HostPlatform, SessionConfig
from warden.local.errors import LaunchFailure

if TYPE_CHECKING:
    from warden.local.external import DependencyManager

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionContext:
    """Where a launched worker lives: a Terminal window or a screen session."""
    kind: str
    label: str
    started_at: datetime


class WorkerHost:
    """Capabilities every platform provides to the supervisor."""

    context_kind = ""

    def __init__(self, config: SessionConfig, sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.sleep = sleep

    def worker_command(self, node_id: str) -> str:
        """The shell command that starts the worker, with the identity as one quoted argument."""
        executable = commands.which(self.config.launch_executable, path=self.config.search_path)
        executable = executable or self.config.launch_executable
        return f"{shlex.quote(executable)} start --node-id {shlex.quote(node_id)}"

    def install_dependencies(self, dependency_manager: "DependencyManager") -> bool:
        raise NotImplementedError

    def open_execution_context(self, node_id: str) -> ExecutionContext:
        """Starts the worker. Raises LaunchFailure if the context could not be created."""
        raise NotImplementedError

    def context_alive(self, context: Optional[ExecutionContext] = None) -> bool:
        raise NotImplementedError

    def close_execution_contexts(self) -> bool:
        """Tears down any context left by a previous launch. Returns True if one was found."""
        raise NotImplementedError


class TerminalWindowHost(WorkerHost):
    """macOS: one visible Terminal window per worker."""

    context_kind = "terminal-window"
    max_windows_closed = 10

    def _osascript(self, script: str):
        return commands.run_command(
            ["osascript", "-"], timeout=self.config.command_timeout, input_text=script
        )

    def _find_window_id(self) -> Optional[str]:
        marker = self.config.window_marker.replace('"', '\\"')
        result = self._osascript(
            f'tell application "Terminal" to id of first window whose name contains "{marker}"'
        )
        if result is None or result.returncode != 0:
            return None
        window_id = result.stdout.strip()
        return window_id if window_id.isdigit() else None

    def install_dependencies(self, dependency_manager: "DependencyManager") -> bool:
        brew_ok = dependency_manager.install_homebrew_packages()
        rust_ok = dependency_manager.install_rust()
        return brew_ok and rust_ok

    def open_execution_context(self, node_id: str) -> ExecutionContext:
        script_content = (
            f'cd ~ && echo "Starting Nexus Node..." && {self.worker_command(node_id)}; '
            f'echo "Process exited."; read -n 1'
        )
        escaped = script_content.replace("\\", "\\\\").replace('"', '\\"')
        applescript = (
            'tell application "Terminal"\n'
            f'  do script "{escaped}"\n'
            '  activate\n'
            'end tell\n'
        )
        result = self._osascript(applescript)
        if result is None or result.returncode != 0:
            detail = result.stderr.strip() if result is not None else "osascript unavailable"
            raise LaunchFailure(f"Terminal window could not be opened: {detail}")
        log.info("Node started in new Terminal window.")
        return ExecutionContext(self.context_kind, self.config.window_marker, datetime.now())

    def context_alive(self, context: Optional[ExecutionContext] = None) -> bool:
        return self._find_window_id() is not None

    def close_execution_contexts(self) -> bool:
        closed = False
        for _ in range(self.max_windows_closed):
            window_id = self._find_window_id()
            if window_id is None:
                break
            log.info(f"Closing Nexus Terminal window (ID: {window_id})...")
            self._osascript(f'tell application "Terminal" to close window id {window_id} saving no')
            closed = True
        return closed


class ScreenSessionHost(WorkerHost):
    """Linux: one detached `screen` session named after the supervisor."""

    context_kind = "screen-session"

    def session_exists(self) -> bool:
        result = commands.run_command(["screen", "-list"], timeout=self.config.command_timeout)
        pattern = re.compile(rf"\d+\.{re.escape(self.config.session_name)}\s")
        return any(pattern.search(line) for line in commands.output_lines(result))

    def install_dependencies(self, dependency_manager: "DependencyManager") -> bool:
        return dependency_manager.install_rust()

    def open_execution_context(self, node_id: str) -> ExecutionContext:
        inner = f"{self.worker_command(node_id)} >> {shlex.quote(str(self.config.log_file))} 2>&1"
        result = commands.run_command(
            ["screen", "-dmS", self.config.session_name, "bash", "-c", inner],
            timeout=self.config.command_timeout,
            env=self.config.child_env(),
        )
        if result is None:
            raise LaunchFailure("screen is not available to host the worker.")

        self.sleep(self.config.launch_settle_seconds)
        if not self.session_exists():
            raise LaunchFailure(f"Failed to start node in screen session '{self.config.session_name}'.")
        log.info(f"Node started in screen session '{self.config.session_name}'.")
        return ExecutionContext(self.context_kind, self.config.session_name, datetime.now())

    def context_alive(self, context: Optional[ExecutionContext] = None) -> bool:
        return self.session_exists()

    def close_execution_contexts(self) -> bool:
        if not self.session_exists():
            return False
        log.info(f"Terminating screen session '{self.config.session_name}'...")
        commands.run_command(
            ["screen", "-S", self.config.session_name, "-X", "quit"],
            timeout=self.config.command_timeout,
        )
        return True


class UbuntuScreenSessionHost(ScreenSessionHost):
    """Ubuntu additionally installs the build toolchain through apt."""

    def install_dependencies(self, dependency_manager: "DependencyManager") -> bool:
        apt_ok = dependency_manager.install_apt_packages()
        rust_ok = dependency_manager.install_rust()
        return apt_ok and rust_ok


_HOSTS = {
    HostPlatform.MACOS: TerminalWindowHost,
    HostPlatform.UBUNTU: UbuntuScreenSessionHost,
    HostPlatform.LINUX: ScreenSessionHost,
}


def get_worker_host(config: SessionConfig, **kwargs) -> WorkerHost:
    """Returns the WorkerHost implementation for the session's platform."""
    return _HOSTS[config.platform](config, **kwargs)
