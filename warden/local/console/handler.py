import os
import signal
import psutil
import logging
import setproctitle

import warden.settings as default_settings
from warden.local.config import SessionConfig
from warden.local.external import DependencyManager, VersionOracle
from warden.local.identity import IdentityStore
from warden.local.platforms import get_worker_host
from warden.local.supervisor import NodeSupervisor, persistence, startup
from warden.local.supervisor.process_utils import ProcessRegistry
from warden.local.supervisor.shutdown import CleanupEngine, CleanupMode

log = logging.getLogger(__name__)

STOP_TIMEOUT_SECONDS = 30


def start_supervision(config: SessionConfig) -> None:
    """Runs a supervision session in the foreground until a termination signal arrives."""
    supervisor = NodeSupervisor(config)
    if startup.check_if_already_running(supervisor):
        raise SystemExit(1)
    setproctitle.setproctitle(default_settings.SUPERVISOR_PROCESS_TITLE)
    log.info("=" * 20 + " Nexus Warden Starting " + "=" * 20)
    supervisor.run()


def stop_supervision(config: SessionConfig) -> None:
    """
    Stops the worker. If a supervisor is running it is asked to shut down
    with SIGTERM so it runs its own exit cleanup; otherwise the exit cleanup
    runs here.
    """
    pid = persistence.get_running_supervisor_pid(config.pid_file)
    if pid is None:
        log.info("No running supervisor found. Cleaning up worker processes directly.")
        engine = CleanupEngine(config, get_worker_host(config), ProcessRegistry(config.process_pattern))
        engine.cleanup(CleanupMode.EXIT)
        return

    log.info(f"Sending SIGTERM to supervisor (PID {pid})...")
    try:
        os.kill(pid, signal.SIGTERM)
        psutil.Process(pid).wait(timeout=STOP_TIMEOUT_SECONDS)
        log.info("Supervisor stopped.")
    except psutil.NoSuchProcess:
        log.info("Supervisor stopped.")
    except ProcessLookupError:
        log.info("Supervisor was already gone.")
    except psutil.TimeoutExpired:
        log.error(f"Supervisor (PID {pid}) did not stop within {STOP_TIMEOUT_SECONDS}s.")


def display_status(config: SessionConfig) -> None:
    """Prints the supervisor, the stored node id and the worker processes."""
    print("\n--- Nexus Warden Status ---")
    pid = persistence.get_running_supervisor_pid(config.pid_file)
    if pid is None:
        print("  Supervisor : STOPPED")
    else:
        print(f"  Supervisor : RUNNING (PID {pid})")
    print(f"  Platform   : {config.platform.value}")
    print(f"  Node ID    : {IdentityStore(config.config_file).get() or 'not configured'}")

    registry = ProcessRegistry(config.process_pattern)
    records = registry.describe(registry.worker_processes())
    if not records:
        print("  Worker     : STOPPED")
    for record in records:
        try:
            proc = psutil.Process(record.pid)
            mem = proc.memory_info().rss
            print(f"  - {record.name:<20} : PID {record.pid:<8} | Status: {proc.status().upper()} | MEM: {mem/1024/1024:.1f} MB")
        except psutil.NoSuchProcess:
            print(f"  - {record.name:<20} : PID {record.pid:<8} | Status: STOPPED")
        except psutil.AccessDenied:
            print(f"  - {record.name:<20} : PID {record.pid:<8} | Status: RUNNING (Access Denied)")

    host = get_worker_host(config)
    print(f"  Context    : {'present' if host.context_alive() else 'none'} ({host.context_kind})")
    print(f"  Log file   : {config.log_file}")
    print("-" * 27 + "\n")


def display_update_check(config: SessionConfig) -> None:
    """Prints the installed and the latest published worker versions."""
    oracle = VersionOracle(config)
    latest = oracle.latest_version()
    current = oracle.installed_version()
    binary = DependencyManager(config).find_worker_binary()
    print(f"\nWorker binary : {binary or 'not installed'}")
    print(f"Installed     : {current or 'unknown'}")
    print(f"Latest        : {latest or 'unknown'}")
    if latest is not None and current is not None and latest > current:
        print("An update is available.\n")
    else:
        print("No update.\n")


def print_help() -> None:
    """Prints the main help text."""
    print("\nUsage: nexus-warden [command] [--verbose]")
    print("\nAvailable commands:")
    print("  start          - Install, launch and supervise the Nexus worker (default).")
    print("  stop           - Stop the running supervisor and its worker.")
    print("  status         - Show the supervisor and worker status.")
    print("  check-update   - Compare the installed worker with the latest release.")
    print("  help           - Show this help message.")
    print("\nSet NEXUS_NODE_ID to skip the interactive node id prompt.")
    print()
