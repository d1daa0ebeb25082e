import psutil
import logging
import threading
from typing import Callable, Optional
from stacklaunch.local.console import report
from stacklaunch.local.supervisor.registry import LiveRegistry, TrackedProcess
from stacklaunch.local.supervisor.timing import Clock

log = logging.getLogger(__name__)

IDLE = "idle"
SHUTTING_DOWN = "shutting_down"
TERMINATED = "terminated"


class ShutdownState:
    """
    One-way shutdown flag: idle -> shutting_down -> terminated.

    `begin` is the only way out of idle and succeeds for exactly one caller.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._triggered = threading.Event()
        self.phase = IDLE
        self.started_at: Optional[float] = None

    @property
    def triggered(self) -> bool:
        return self._triggered.is_set()

    @property
    def event(self) -> threading.Event:
        """Set once shutdown begins; sleeping startup steps wait on it."""
        return self._triggered

    def begin(self, now: float) -> bool:
        """Moves to shutting_down. Returns False if shutdown had already begun."""
        with self._lock:
            if self.phase != IDLE:
                return False
            self.phase = SHUTTING_DOWN
            self.started_at = now
            self._triggered.set()
            return True

    def finish(self) -> None:
        with self._lock:
            self.phase = TERMINATED


def request_termination(tracked: TrackedProcess) -> bool:
    """
    Asks one tracked process to terminate.

    A process that has already exited is the expected race during shutdown
    and is not reported as a failure.

    :param tracked: The process to stop.
    :return bool: True if a termination request was delivered.
    """
    try:
        tracked.terminate()
        return True
    except (psutil.NoSuchProcess, ProcessLookupError):
        log.debug(f"{tracked.name} (PID {tracked.pid}) had already exited.")
    except psutil.Error as e:
        log.warning(f"Could not terminate {tracked.name} (PID {tracked.pid}): {e}")
        report(f"  ⚠️  Could not stop {tracked.name}: {e}", "yellow")
    return False


class ShutdownCoordinator:
    """
    Tears down every registered process exactly once and bounds the time the
    supervisor spends doing so.

    The coordinator does not install any signal handlers itself; the entry
    point wires `on_signal` and `on_exit` to the OS and interpreter hooks.
    """

    def __init__(
        self,
        registry: LiveRegistry,
        clock: Optional[Clock] = None,
        cooldown: float = 2.0,
        exit_func: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.registry = registry
        self.clock = clock or Clock()
        self.cooldown = cooldown
        self.exit_func = exit_func
        self.state = ShutdownState()
        self.exit_code = 0
        self._done = threading.Event()
        self._timer = None

    def trigger(self, exit_code: int = 0, blocking: bool = False) -> bool:
        """
        Starts the shutdown sequence. Only the first call does any work.

        The cooldown and the exit function are scheduled even if the sweep fails.

        :param exit_code: Status the supervisor exits with after the cooldown.
        :param blocking: Wait out the cooldown on the calling thread and leave exiting to the caller.
        :return bool: True if this call performed the shutdown, False if it was a no-op.
        """
        if not self.state.begin(self.clock.now()):
            log.debug("Shutdown already in progress. Ignoring trigger.")
            return False

        self.exit_code = exit_code
        try:
            report("\n\n🛑 Shutting down all services...", "yellow")
            log.info(f"Shutdown triggered (exit code {exit_code}).")
            self.sweep()
        finally:
            if blocking:
                self.clock.sleep(self.cooldown)
                self._complete(call_exit=False)
            else:
                self._timer = self.clock.call_later(self.cooldown, self._complete)
        return True

    def sweep(self) -> int:
        """
        Requests termination of every registered process in launch order.

        :return int: The number of processes a request was issued for.
        """
        entries = self.registry.drain()
        for tracked in entries:
            report(f"  Stopping {tracked.name}...", "cyan")
            request_termination(tracked)
        log.info(f"Termination requested for {len(entries)} processes.")
        return len(entries)

    def _complete(self, call_exit: bool = True) -> None:
        try:
            report("✅ All services stopped", "green")
            log.info("Shutdown sequence completed.")
            self.state.finish()
            if call_exit and self.exit_func is not None:
                self.exit_func(self.exit_code)
        finally:
            self._done.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the shutdown sequence has completed. Returns False on timeout."""
        return self._done.wait(timeout)

    @property
    def finished(self) -> bool:
        return self._done.is_set()

    def on_signal(self, signum, frame) -> threading.Thread:
        """
        Signal handler for SIGINT and SIGTERM.

        A signal interrupts the main thread at any point, including while it
        holds the registry lock or is writing to stdout, so the handler only
        hands the shutdown to a separate thread.

        :return threading.Thread: The thread running the shutdown.
        """
        worker = threading.Thread(
            target=self._shutdown_on_signal,
            args=(signum,),
            daemon=True,
            name=f"shutdown-signal-{signum}",
        )
        worker.start()
        return worker

    def _shutdown_on_signal(self, signum) -> None:
        log.info(f"Received signal {signum}.")
        self.trigger()

    def on_exit(self) -> None:
        """
        Interpreter exit hook. Runs the shutdown inline since no new threads
        can be started once the interpreter is finalizing. The interpreter
        keeps the exit status it was already leaving with.
        """
        self.trigger(blocking=True)
