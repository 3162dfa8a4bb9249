import os
import psutil
import logging
from pathlib import Path
from typing import Optional

import warden.settings as default_settings

log = logging.getLogger(__name__)

SUPERVISOR_COMMAND_NAMES = ("warden", "nexus-warden")


def get_supervisor_pid(pid_file: Path) -> Optional[int]:
    """
    Reads the supervisor PID file.

    :param pid_file: Path of the PID file.
    :return: The recorded pid if the file exists and is valid, else None.
    """
    if not pid_file.exists():
        return None
    try:
        return int(pid_file.read_text().strip())
    except (ValueError, OSError):
        pid_file.unlink(missing_ok=True)
        return None


def get_process(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking."""
    return psutil.Process(pid)


def is_supervisor_process(pid: int) -> bool:
    """
    Checks that a pid belongs to a supervisor, by its process title or by
    the command that started it.

    :param pid: The pid to inspect.
    :return: True if the process is a running supervisor.
    """
    try:
        cmdline = get_process(pid).cmdline()
    except psutil.Error:
        return False
    if default_settings.SUPERVISOR_PROCESS_TITLE in " ".join(cmdline):
        return True
    return any(Path(arg).name in SUPERVISOR_COMMAND_NAMES for arg in cmdline)


def get_running_supervisor_pid(pid_file: Path) -> Optional[int]:
    """
    Returns the recorded supervisor pid only if that process is still a
    supervisor and is not us. A PID file pointing anywhere else is removed.
    """
    pid = get_supervisor_pid(pid_file)
    if pid is None or pid == os.getpid():
        return None
    if not is_supervisor_process(pid):
        log.debug(f"Removing stale supervisor PID file (PID {pid}).")
        pid_file.unlink(missing_ok=True)
        return None
    return pid


def write_pid_file(pid_file: Path, pid: Optional[int] = None) -> None:
    """
    Atomically writes the supervisor PID to the PID file.

    :param pid_file: Path of the PID file.
    :param pid: The pid to record, defaults to the current process.
    """
    pid = pid if pid is not None else os.getpid()
    temp_pid_path = pid_file.with_suffix(".tmp")
    try:
        pid_file.parent.mkdir(parents=True, exist_ok=True)
        temp_pid_path.write_text(str(pid))
        temp_pid_path.replace(pid_file)
    except OSError as e:
        log.error(f"Failed to write PID file: {e}", exc_info=True)
    finally:
        temp_pid_path.unlink(missing_ok=True)
