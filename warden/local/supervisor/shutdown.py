import enum
import psutil
import logging
from typing import Iterable, List, Set

from warden.local.config import SessionConfig
from warden.local.platforms import WorkerHost
from warden.local.supervisor.process_utils import ProcessRegistry

log = logging.getLogger(__name__)


class CleanupMode(enum.Enum):
    EXIT = "exit"
    RESTART = "restart"


#* --- Process Termination ---
def get_process(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking."""
    return psutil.Process(pid)


def wait_procs(procs: List[psutil.Process], timeout: float):
    """A wrapper for psutil.wait_procs for easy testing/mocking."""
    return psutil.wait_procs(procs, timeout=timeout)


def _resolve(pids: Iterable[int]) -> List[psutil.Process]:
    procs = []
    for pid in sorted(pids):
        try:
            procs.append(get_process(pid))
        except psutil.NoSuchProcess:
            continue
        except psutil.Error as e:
            log.warning(f"Cannot access process {pid}: {e}")
    return procs


def _terminate_processes(processes: List[psutil.Process]) -> None:
    """Sends SIGTERM to every process."""
    for proc in processes:
        try:
            log.debug(f"Sending SIGTERM to PID {proc.pid}")
            proc.terminate()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            log.warning(f"Access denied while terminating PID {proc.pid}.")


def _forceful_kill(processes: List[psutil.Process]) -> None:
    """Forcefully kills processes that didn't terminate gracefully."""
    if not processes:
        return

    log.warning(f"{len(processes)} processes did not terminate gracefully. Forcing shutdown...")
    for proc in processes:
        try:
            log.warning(f"Killing stubborn process PID {proc.pid}.")
            proc.kill()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            log.warning(f"Access denied while killing PID {proc.pid}.")


def graceful_shutdown_sequence(pids: Iterable[int], grace_period: float) -> None:
    """
    Terminates processes in two phases: SIGTERM, wait up to the grace
    period, then SIGKILL for anything still alive.

    :param pids: The process ids to stop.
    :param grace_period: Seconds to wait between the two phases.
    """
    processes = _resolve(pids)
    if not processes:
        return
    _terminate_processes(processes)
    try:
        _, alive = wait_procs(processes, timeout=grace_period)
    except psutil.Error:
        alive = [p for p in processes if p.is_running()]
    _forceful_kill(alive)


def kill_immediately(pids: Iterable[int]) -> None:
    """SIGKILLs the given processes with no grace period."""
    for proc in _resolve(pids):
        try:
            proc.kill()
        except psutil.Error:
            continue


class CleanupEngine:
    """
    Stops every trace of the worker: its execution context, its processes
    and their direct children. Safe to call when nothing is running.
    """

    def __init__(self, config: SessionConfig, host: WorkerHost, registry: ProcessRegistry):
        self.config = config
        self.host = host
        self.registry = registry

    def _close_windows(self) -> None:
        if self.config.platform.is_gui:
            self.host.close_execution_contexts()

    def _close_session(self) -> None:
        if not self.config.platform.is_gui:
            self.host.close_execution_contexts()

    def cleanup(self, mode: CleanupMode) -> None:
        """
        Runs the full cleanup sequence.

        In EXIT mode this ends the supervisor process with status 0 and never
        returns. In RESTART mode it deletes the session log and returns.
        """
        log.info(f"Initiating cleanup ({mode.value})...")

        self._close_windows()

        pids = self.registry.worker_processes()
        if pids:
            log.info(f"Terminating Nexus processes: {' '.join(str(p) for p in sorted(pids))}")
            graceful_shutdown_sequence(pids, self.config.grace_period)

        self._close_session()

        leftovers: Set[int] = set(self.registry.children())
        if leftovers:
            log.info(f"Killing leftover child processes: {' '.join(str(p) for p in sorted(leftovers))}")
            kill_immediately(leftovers)

        if mode is CleanupMode.EXIT:
            log.info("Cleanup finished. Exiting.")
            self.config.pid_file.unlink(missing_ok=True)
            raise SystemExit(0)

        log.info("Cleanup finished. Ready for restart.")
        self.config.log_file.unlink(missing_ok=True)
