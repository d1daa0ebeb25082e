import os
import sys
import time
import atexit
import signal
import logging
from typing import Callable, Optional, Sequence
from stacklaunch.local.config import MergedSettings, effective_settings
from stacklaunch.local.app_process import ServiceDescriptor
from stacklaunch.local.external import BinaryProvisioner
from stacklaunch.local.supervisor.registry import LiveRegistry
from stacklaunch.local.supervisor.shutdown import ShutdownCoordinator
from stacklaunch.local.supervisor.startup import ServiceSequencer
from stacklaunch.local.supervisor.timing import Clock

log = logging.getLogger(__name__)


def hard_exit(exit_code: int) -> None:
    """
    Ends the supervisor process from whichever thread calls it.

    Runs on the cooldown timer, so it cannot rely on the main thread, which may
    still be blocked in a download or a launch delay.
    """
    log.info(f"Supervisor exiting with code {exit_code}.")
    sys.stdout.flush()
    logging.shutdown()
    os._exit(exit_code)


class ProcessManager:
    """
    Owns the state of one supervisor run: the live registry, the shutdown
    coordinator, the broker provisioner and the startup sequencer.
    """

    def __init__(
        self,
        config: Optional[MergedSettings] = None,
        clock: Optional[Clock] = None,
        exit_func: Optional[Callable[[int], None]] = hard_exit,
    ) -> None:
        """
        Initializes the ProcessManager state.

        :param exit_func: Called with the exit status once the shutdown cooldown has elapsed.
        """
        self.config = config or effective_settings
        self.clock = clock or Clock()
        self.registry = LiveRegistry()
        self.coordinator = ShutdownCoordinator(
            self.registry, self.clock, cooldown=self.config.SHUTDOWN_COOLDOWN, exit_func=exit_func
        )

        self.provisioner: Optional[BinaryProvisioner] = None
        if self.config.BROKER_PROVISION:
            self.provisioner = BinaryProvisioner(
                "NATS server",
                self.config.broker_download_url(),
                timeout=self.config.DOWNLOAD_TIMEOUT,
                chunk_size=self.config.DOWNLOAD_CHUNK_SIZE,
                user_agent=self.config.USER_AGENT,
            )

        self.sequencer = ServiceSequencer(
            self.registry,
            self.coordinator,
            self.config.BASE_DIR,
            clock=self.clock,
            provisioner=self.provisioner,
            broker_path=self.config.broker_executable(),
            broker_required=self.config.BROKER_REQUIRED,
            launch_broker=self.config.BROKER_LAUNCH,
            inter_launch_delay=self.config.INTER_LAUNCH_DELAY,
            broker_startup_delay=self.config.BROKER_STARTUP_DELAY,
        )
        self.start_time: Optional[float] = None

    def install_shutdown_hooks(self) -> None:
        """
        Routes SIGINT, SIGTERM and interpreter exit to the shutdown coordinator.
        Must be called from the main thread.
        """
        signal.signal(signal.SIGINT, self.coordinator.on_signal)
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, self.coordinator.on_signal)
        atexit.register(self.coordinator.on_exit)
        log.debug("Shutdown hooks installed for SIGINT, SIGTERM and interpreter exit.")

    def start_all(self, descriptors: Optional[Sequence[ServiceDescriptor]] = None) -> bool:
        """
        Starts every service in order.

        :param descriptors: Services to launch. Defaults to the configured stack.
        :return bool: True if every service was attempted without a fatal error.
        """
        if descriptors is None:
            descriptors = self.config.load_service_descriptors()

        log.info("=" * 20 + " Supervisor Starting " + "=" * 20)
        self.start_time = time.time()
        started = self.sequencer.run_all(descriptors)
        if started:
            log.info(
                f"{len(self.registry)} of {len(descriptors)} services started "
                f"in {time.time() - self.start_time:.2f} seconds."
            )
        return started

    def run(self) -> int:
        """
        Starts the stack and blocks until a shutdown has completed.

        With the default exit function the process ends on the cooldown timer
        and this never returns.

        :return int: The exit status chosen by the shutdown coordinator.
        """
        self.start_all()
        # Short waits keep the main thread responsive to Ctrl+C on Windows.
        while not self.coordinator.wait(timeout=1.0):
            pass
        if self.start_time:
            log.info(f"Total runtime: {time.strftime('%H:%M:%S', time.gmtime(time.time() - self.start_time))}")
        return self.coordinator.exit_code
