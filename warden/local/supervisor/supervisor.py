import enum
import signal
import logging
import threading
from typing import Dict, Optional

from warden.local.config import SessionConfig
from warden.local.errors import IdentityValidationError, SupervisorTerminated
from warden.local.external import DependencyManager, VersionOracle
from warden.local.identity import IdentityResolver, IdentityStore
from warden.local.platforms import ExecutionContext, WorkerHost, get_worker_host
from warden.local.supervisor import persistence, startup
from warden.local.supervisor.polling import PollTicker
from warden.local.supervisor.process_utils import ProcessRegistry
from warden.local.supervisor.shutdown import CleanupEngine, CleanupMode

log = logging.getLogger(__name__)


class SupervisorState(enum.Enum):
    INSTALLING = "installing"
    CONFIGURED = "configured"
    RUNNING = "running"
    POLLING = "polling"
    RESTARTING = "restarting"
    TERMINATED = "terminated"


class NodeSupervisor:
    """
    Keeps one worker running for the session and replaces it whenever a
    newer worker release is published.

    The reconciliation loop is strictly sequential. The only asynchronous
    input is a termination signal, which pre-empts whatever phase is running
    and always ends in exit-mode cleanup.
    """
    HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)

    def __init__(
        self,
        config: SessionConfig,
        host: Optional[WorkerHost] = None,
        registry: Optional[ProcessRegistry] = None,
        dependency_manager: Optional[DependencyManager] = None,
        oracle: Optional[VersionOracle] = None,
        identity_resolver: Optional[IdentityResolver] = None,
        ticker: Optional[PollTicker] = None,
    ) -> None:
        self.config = config
        self.host = host or get_worker_host(config)
        self.registry = registry or ProcessRegistry(config.process_pattern)
        self.dependency_manager = dependency_manager or DependencyManager(config)
        self.oracle = oracle or VersionOracle(config)
        self.identity_resolver = identity_resolver or IdentityResolver(
            IdentityStore(config.config_file),
            env_vars=config.node_id_env_vars,
            confirm_timeout=config.identity_confirm_timeout,
        )
        self.cleanup_engine = CleanupEngine(config, self.host, self.registry)

        self.shutdown_signal_received = threading.Event()
        self.ticker = ticker or PollTicker(config.poll_interval, self.shutdown_signal_received)

        self.state: Optional[SupervisorState] = None
        self.node_id: Optional[str] = None
        self.context: Optional[ExecutionContext] = None
        self._previous_handlers: Dict[int, object] = {}

    def _transition(self, state: SupervisorState) -> None:
        log.debug(f"Supervisor state: {self.state.value if self.state else 'none'} -> {state.value}")
        self.state = state

    #* --- Signals ---
    def install_signal_handlers(self) -> None:
        """Routes SIGINT, SIGTERM and SIGHUP to exit-mode cleanup. Must run on the main thread."""
        for signum in self.HANDLED_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)

    def restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def _handle_signal(self, signum: int, frame) -> None:
        if self.state is SupervisorState.TERMINATED or self.shutdown_signal_received.is_set():
            log.debug(f"Ignoring {signal.Signals(signum).name}: shutdown already in progress.")
            return
        self.shutdown_signal_received.set()
        self.ticker.cancel()
        raise SupervisorTerminated(signum)

    #* --- Worker Lifecycle ---
    def start_worker(self) -> bool:
        """Restart-mode cleanup followed by a fresh launch."""
        self.cleanup_engine.cleanup(CleanupMode.RESTART)
        self.context = startup.launch_worker(self)
        return self.context is not None

    def restart_worker(self, upgrade: bool = True) -> bool:
        """
        Replaces the running worker.

        :param upgrade: Re-run the worker installer between cleanup and launch.
        :return: True if the new worker was launched.
        """
        self._transition(SupervisorState.RESTARTING)
        self.cleanup_engine.cleanup(CleanupMode.RESTART)
        if upgrade:
            self.dependency_manager.install_worker()
        self.context = startup.launch_worker(self)
        self._transition(SupervisorState.POLLING)
        return self.context is not None

    def reconcile_once(self) -> None:
        """One polling cycle: upgrade on a newer release, otherwise relaunch a missing worker."""
        if self.oracle.update_available():
            log.info("Update found. Updating...")
            self.restart_worker(upgrade=True)
            return

        if self.context is None:
            log.warning("Worker is not running after a failed launch. Retrying launch...")
            self.restart_worker(upgrade=False)
        elif not self.host.context_alive(self.context):
            log.warning(
                f"Worker {self.context.kind} '{self.context.label}' started at "
                f"{self.context.started_at:%Y-%m-%d %H:%M:%S} is gone. Relaunching..."
            )
            self.restart_worker(upgrade=False)

    def supervision_loop(self) -> None:
        """Polls for updates until the ticker is cancelled."""
        self._transition(SupervisorState.POLLING)
        minutes = self.config.poll_interval / 60
        log.info(f"Entering monitoring mode (Check every {minutes:g}m)...")
        while self.ticker.wait():
            self.reconcile_once()

    def run(self) -> None:
        """
        Runs the whole supervision session. Never returns normally: it ends
        with SystemExit(0) from exit-mode cleanup, or propagates a fatal
        identity validation error.
        """
        self.install_signal_handlers()
        persistence.write_pid_file(self.config.pid_file)
        try:
            self._transition(SupervisorState.INSTALLING)
            startup.run_installation(self)

            self._transition(SupervisorState.CONFIGURED)
            self.node_id = self.identity_resolver.resolve()

            self._transition(SupervisorState.RUNNING)
            self.start_worker()

            self.supervision_loop()
        except SupervisorTerminated as e:
            log.warning(f"Received {signal.Signals(e.signum).name}. Shutting down...")
        except IdentityValidationError:
            self.config.pid_file.unlink(missing_ok=True)
            self.restore_signal_handlers()
            raise
        self.terminate()

    def terminate(self) -> None:
        """Exit-mode cleanup; ends the process with status 0."""
        self._transition(SupervisorState.TERMINATED)
        self.ticker.cancel()
        try:
            self.cleanup_engine.cleanup(CleanupMode.EXIT)
        finally:
            self.restore_signal_handlers()
