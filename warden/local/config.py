import os
import platform
import logging
from enum import Enum
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import warden.settings as default_settings
from warden.local.errors import PlatformNotSupportedError

log = logging.getLogger(__name__)


class HostPlatform(Enum):
    """The closed set of host platforms the supervisor runs on."""
    MACOS = "macOS"
    UBUNTU = "Ubuntu"
    LINUX = "Linux"

    @property
    def is_gui(self) -> bool:
        """True when the worker runs in a visible Terminal window instead of a detached session."""
        return self is HostPlatform.MACOS


def _read_os_release_id() -> Optional[str]:
    try:
        return platform.freedesktop_os_release().get("ID")
    except OSError:
        return None


def detect_host_platform(system: Optional[str] = None, os_release_id: Optional[str] = None) -> HostPlatform:
    """
    Maps the running kernel to a supported platform.

    :param system: Override for `platform.system()`, used by tests.
    :param os_release_id: Override for the `/etc/os-release` ID field.
    :return: The detected HostPlatform.
    :raises PlatformNotSupportedError: For anything other than macOS or Linux.
    """
    system = system or platform.system()
    if system == "Darwin":
        return HostPlatform.MACOS
    if system == "Linux":
        release_id = os_release_id if os_release_id is not None else _read_os_release_id()
        return HostPlatform.UBUNTU if release_id == "ubuntu" else HostPlatform.LINUX
    raise PlatformNotSupportedError(
        f"Unsupported OS: {system}. Only macOS and Ubuntu/Linux are supported."
    )


@dataclass(frozen=True)
class SessionConfig:
    """
    Immutable configuration for one supervision session.

    Built once at startup by `load_session_config()` and handed to every
    component; nothing reads the settings module after that.
    """
    platform: HostPlatform
    home_dir: Path
    nexus_home: Path
    config_file: Path
    pid_file: Path
    log_file: Path
    max_log_bytes: int = default_settings.MAX_LOG_SIZE_BYTES
    poll_interval: float = default_settings.POLL_INTERVAL_SECONDS
    launch_settle_seconds: float = default_settings.LAUNCH_SETTLE_SECONDS
    grace_period: float = default_settings.GRACEFUL_SHUTDOWN_TIMEOUT
    install_attempts: int = default_settings.INSTALL_ATTEMPTS
    install_backoff: float = default_settings.INSTALL_BACKOFF_SECONDS
    identity_confirm_timeout: float = default_settings.IDENTITY_CONFIRM_TIMEOUT
    command_timeout: float = default_settings.COMMAND_TIMEOUT_SECONDS
    install_timeout: float = default_settings.INSTALL_TIMEOUT_SECONDS
    repo_url: str = default_settings.WORKER_REPO_URL
    installer_url: str = default_settings.WORKER_INSTALLER_URL
    process_pattern: str = default_settings.WORKER_PROCESS_PATTERN
    worker_executables: Tuple[str, ...] = default_settings.WORKER_EXECUTABLES
    launch_executable: str = default_settings.WORKER_LAUNCH_EXECUTABLE
    version_commands: Tuple[Tuple[str, str], ...] = default_settings.WORKER_VERSION_COMMANDS
    session_name: str = default_settings.SESSION_NAME
    window_marker: str = default_settings.WINDOW_TITLE_MARKER
    node_id_env_vars: Tuple[str, ...] = default_settings.NODE_ID_ENV_VARS
    extra_bin_dirs: Tuple[Path, ...] = field(default=default_settings.EXTRA_BIN_DIRS)

    @property
    def search_path(self) -> str:
        """PATH used to locate the worker, with the installer directories prepended."""
        inherited = os.environ.get("PATH", "")
        dirs = [str(d) for d in self.extra_bin_dirs]
        if inherited:
            dirs.append(inherited)
        return os.pathsep.join(dirs)

    def child_env(self) -> Dict[str, str]:
        """Environment for every subprocess the supervisor spawns."""
        env = dict(os.environ)
        env["PATH"] = self.search_path
        return env


def load_session_config(host_platform: Optional[HostPlatform] = None) -> SessionConfig:
    """
    Builds the session configuration from the settings module.

    :param host_platform: Skip detection and use this platform.
    :return: A frozen SessionConfig.
    """
    host_platform = host_platform or detect_host_platform()
    config = SessionConfig(
        platform=host_platform,
        home_dir=default_settings.HOME_DIR,
        nexus_home=default_settings.NEXUS_HOME,
        config_file=default_settings.CONFIG_FILE_PATH,
        pid_file=default_settings.PID_FILE_PATH,
        log_file=default_settings.LOG_FILE_PATH,
    )
    config.nexus_home.mkdir(parents=True, exist_ok=True)
    log.debug(f"Session configuration loaded for platform {host_platform.value}.")
    return config
