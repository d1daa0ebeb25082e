import logging
import threading
import subprocess
from pathlib import Path
from typing import Optional
from stacklaunch.local.console import report
from stacklaunch.local.app_process import ServiceDescriptor, build_command_line, resolve_cwd
from stacklaunch.local.supervisor.registry import LiveRegistry, TrackedProcess
from stacklaunch.local.supervisor.shutdown import ShutdownState, request_termination
from stacklaunch.local.supervisor.timing import Clock

log = logging.getLogger(__name__)


class LaunchError(Exception):
    """Raised when a service's process could not be spawned."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"{name} error: {message}")
        self.name = name
        self.message = message


#* --- Process Monitoring ---
def _report_exit(tracked: TrackedProcess, returncode: Optional[int]) -> None:
    """
    Reports how a service ended. Negative codes mean the process was killed by
    a signal, which is not a failure of the service itself.
    """
    if returncode is None or returncode < 0:
        log.debug(f"{tracked.name} (PID {tracked.pid}) ended by signal ({returncode}).")
        return
    if returncode != 0:
        log.warning(f"{tracked.name} (PID {tracked.pid}) exited with code {returncode}")
        report(f"⚠️  {tracked.name} exited with code {returncode}", "yellow")
    else:
        log.info(f"{tracked.name} (PID {tracked.pid}) exited cleanly.")


def _wait_for_exit(tracked: TrackedProcess) -> None:
    """Target function for exit watcher threads."""
    try:
        returncode = tracked.process.wait()
    except OSError as e:
        log.debug(f"Exit watcher for {tracked.name} stopped: {e}")
        return
    _report_exit(tracked, returncode)


def watch_exit(tracked: TrackedProcess) -> threading.Thread:
    """Starts a background daemon thread that reports when the process exits."""
    watcher = threading.Thread(
        target=_wait_for_exit,
        args=(tracked,),
        daemon=True,
        name=f"exit-watcher-{tracked.name}",
    )
    watcher.start()
    return watcher


#* --- Process Creation ---
def launch_process(
    descriptor: ServiceDescriptor,
    registry: LiveRegistry,
    clock: Clock,
    base_dir: Path,
    shutdown_state: Optional[ShutdownState] = None,
) -> TrackedProcess:
    """
    Spawns one service and adds it to the registry.

    The child runs through the shell and shares the supervisor's stdin,
    stdout and stderr. This returns as soon as the process is spawned;
    it never waits for the service to become ready.

    :param descriptor: The service to start.
    :param registry: Registry the new process is appended to.
    :param clock: Source of the launch timestamp.
    :param base_dir: Working directory used when the descriptor has none.
    :param shutdown_state: If given and shutdown has begun, the new process is terminated at once
        instead of being registered.
    :return TrackedProcess: The tracked handle.
    :raises LaunchError: If the process could not be spawned. Nothing is registered in that case.
    """
    report(f"🚀 Starting {descriptor.name}...", descriptor.color)
    cwd = resolve_cwd(descriptor, base_dir)
    command_line = build_command_line(descriptor)
    log.debug(f"Spawning '{command_line}' in '{cwd}'")

    try:
        process = subprocess.Popen(command_line, shell=True, cwd=str(cwd))
    except (OSError, ValueError) as e:
        log.error(f"Failed to start process '{descriptor.name}': {e}")
        report(f"❌ {descriptor.name} error: {e}", "red")
        raise LaunchError(descriptor.name, str(e)) from e

    tracked = TrackedProcess(name=descriptor.name, process=process, launched_at=clock.now())
    watch_exit(tracked)
    log.info(f"{descriptor.name} started with PID: {process.pid}")

    # A spawn that completes while shutdown is running must not outlive it.
    # The registry refuses entries once the sweep has drained it.
    late = shutdown_state is not None and shutdown_state.triggered
    if late or not registry.add(tracked):
        log.warning(f"{descriptor.name} started after shutdown began. Terminating it.")
        report(f"  Stopping {descriptor.name}...", "cyan")
        request_termination(tracked)

    return tracked
