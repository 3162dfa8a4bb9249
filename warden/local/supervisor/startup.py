import logging
from typing import TYPE_CHECKING, Optional

from warden.local.errors import LaunchFailure
from warden.local.platforms import ExecutionContext
from warden.local.supervisor import persistence

if TYPE_CHECKING:
    from .supervisor import NodeSupervisor

log = logging.getLogger(__name__)


def check_if_already_running(manager: "NodeSupervisor") -> bool:
    """
    Checks if another supervisor is already running based on the PID file.

    :param manager: The NodeSupervisor instance.
    :return: True if already running, False otherwise.
    """
    pid = persistence.get_running_supervisor_pid(manager.config.pid_file)
    if pid is not None:
        log.error(f"A supervisor is already running (PID {pid}). Use 'stop' first.")
        return True
    return False


def run_installation(manager: "NodeSupervisor") -> bool:
    """
    Runs the dependency installer and the worker installer once.

    Failures are logged and supervision continues with whatever worker
    binary is already installed.

    :param manager: The NodeSupervisor instance.
    :return: True if a usable worker binary is available afterwards.
    """
    log.info("=" * 10 + " Checking System Dependencies " + "=" * 10)
    if not manager.host.install_dependencies(manager.dependency_manager):
        log.error("Dependency installation failed. Continuing with the existing toolchain.")

    if manager.dependency_manager.install_worker():
        return True

    existing = manager.dependency_manager.find_worker_binary()
    if existing:
        log.warning(f"Continuing with previously installed worker at {existing}.")
        return True
    log.error("No usable worker binary is installed. Launch will likely fail.")
    return False


def launch_worker(manager: "NodeSupervisor") -> Optional[ExecutionContext]:
    """
    Starts the worker in a fresh execution context.

    A failed launch is logged and reported as None; it never stops supervision.

    :param manager: The NodeSupervisor instance.
    :return: The new ExecutionContext, or None if the launch failed.
    """
    log.info(f"Starting Nexus Node (ID: {manager.node_id})...")
    try:
        context = manager.host.open_execution_context(manager.node_id)
    except LaunchFailure as e:
        log.error(f"Failed to start the worker: {e}")
        return None
    log.info(f"Worker running in {context.kind} '{context.label}'.")
    return context
