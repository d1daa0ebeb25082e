import logging
from pathlib import Path
from typing import List, Optional, Sequence
from stacklaunch.local.console import report
from stacklaunch.local.app_process import ServiceDescriptor
from stacklaunch.local.external import BinaryProvisioner, ProvisionError
from stacklaunch.local.supervisor.registry import LiveRegistry
from stacklaunch.local.supervisor.shutdown import ShutdownCoordinator
from stacklaunch.local.supervisor.timing import Clock
from stacklaunch.local.supervisor import process_utils

log = logging.getLogger(__name__)


class ServiceSequencer:
    """
    Drives the ordered startup of the service stack.

    Broker first (provisioned on a best-effort basis), then each agent followed
    by a fixed delay so it can bind its port, then the frontend with no delay.
    Readiness is only approximated by those delays.
    """

    def __init__(
        self,
        registry: LiveRegistry,
        coordinator: ShutdownCoordinator,
        base_dir: Path,
        clock: Optional[Clock] = None,
        provisioner: Optional[BinaryProvisioner] = None,
        broker_path: Optional[Path] = None,
        broker_required: bool = False,
        launch_broker: bool = True,
        inter_launch_delay: float = 2.0,
        broker_startup_delay: float = 3.0,
    ) -> None:
        self.registry = registry
        self.coordinator = coordinator
        self.base_dir = base_dir
        self.clock = clock or coordinator.clock
        self.provisioner = provisioner
        self.broker_path = broker_path
        self.broker_required = broker_required
        self.launch_broker = launch_broker
        self.inter_launch_delay = inter_launch_delay
        self.broker_startup_delay = broker_startup_delay
        self.failed: List[str] = []

    #* --- Helpers ---
    def _aborted(self) -> bool:
        if self.coordinator.state.triggered:
            log.info("Shutdown in progress. Remaining launches cancelled.")
            return True
        return False

    def _pause(self, seconds: float) -> bool:
        """Waits between launches. Returns False if shutdown began during the wait."""
        if seconds <= 0:
            return not self._aborted()
        if not self.clock.sleep(seconds, interrupt=self.coordinator.state.event):
            log.info("Shutdown in progress. Remaining launches cancelled.")
            return False
        return not self._aborted()

    def _launch(self, descriptor: ServiceDescriptor) -> bool:
        """Launches one service. A LaunchError is recorded and does not stop the sequence."""
        try:
            process_utils.launch_process(
                descriptor, self.registry, self.clock, self.base_dir, self.coordinator.state
            )
            return True
        except process_utils.LaunchError as e:
            log.warning(f"Continuing startup without {descriptor.name}: {e.message}")
            self.failed.append(descriptor.name)
            return False

    #* --- Broker ---
    def provision_broker(self) -> None:
        """
        Best-effort broker provisioning.

        :raises ProvisionError: Only when the broker is configured as required.
        """
        if self.provisioner is None or self.broker_path is None:
            report("ℹ️  Skipping NATS server provisioning (use external NATS or Docker)", "yellow")
            report("   Or download manually from: https://nats.io/download/", "cyan")
            return

        try:
            self.provisioner.ensure_binary(self.broker_path)
        except ProvisionError as e:
            if self.broker_required:
                raise
            log.warning(f"Broker provisioning skipped: {e}")
            report(f"⚠️  Could not download NATS server: {e}", "yellow")
            report("   Assuming an external NATS server is available.", "cyan")

    def _start_brokers(self, brokers: Sequence[ServiceDescriptor]) -> bool:
        """Launches broker descriptors whose executable is available. Returns False if aborted."""
        if not brokers or not self.launch_broker:
            return True

        if self.broker_path is not None and not self.broker_path.exists():
            message = f"NATS server executable not found at '{self.broker_path}'."
            if self.broker_required:
                raise ProvisionError(message)
            log.warning(message)
            report(f"ℹ️  {message} Skipping broker launch.", "yellow")
            return True

        report("📡 Starting NATS Server...", "green")
        for broker in brokers:
            if self._aborted():
                return False
            self._launch(broker)
            delay = broker.delay if broker.delay is not None else self.broker_startup_delay
            if not self._pause(delay):
                return False
        return True

    #* --- Sequence ---
    def run_all(self, descriptors: Sequence[ServiceDescriptor]) -> bool:
        """
        Runs the whole startup sequence.

        Any error other than a per-service LaunchError aborts the sequence and
        triggers a shutdown with exit status 1.

        :param descriptors: The services, in launch order within each role.
        :return bool: True if every descriptor was attempted.
        """
        brokers = [d for d in descriptors if d.role == "broker"]
        agents = [d for d in descriptors if d.role == "agent"]
        frontends = [d for d in descriptors if d.role == "frontend"]
        self.failed = []

        report("\n╔════════════════════════════════════════╗", "cyan")
        report("║   Starting All Services               ║", "cyan")
        report("╚════════════════════════════════════════╝\n", "cyan")

        try:
            self.provision_broker()
            if not self._start_brokers(brokers):
                return False

            if agents:
                report("\n🤖 Starting Agents...", "green")
            for descriptor in agents:
                if self._aborted():
                    return False
                self._launch(descriptor)
                delay = descriptor.delay if descriptor.delay is not None else self.inter_launch_delay
                if not self._pause(delay):
                    return False

            if frontends:
                report("\n🌐 Starting Frontend...", "green")
            for descriptor in frontends:
                if self._aborted():
                    return False
                self._launch(descriptor)
        except Exception as e:
            log.critical(f"Startup failed due to an error: {e}", exc_info=True)
            report(f"\n❌ Startup failed: {e}", "red")
            self.coordinator.trigger(exit_code=1)
            return False

        self.report_summary(descriptors)
        return True

    def report_summary(self, descriptors: Sequence[ServiceDescriptor]) -> None:
        """Prints the post-start banner and the address of every running service."""
        running = set(self.registry.names())
        report("\n\n╔════════════════════════════════════════╗", "green")
        report("║     ✅ All Services Started!          ║", "green")
        report("╚════════════════════════════════════════╝", "green")

        urls = [d for d in descriptors if d.url and d.name in running]
        if urls:
            report("\n📊 Service URLs:", "cyan")
            width = max(len(d.name) for d in urls) + 1
            for d in urls:
                report(f"   {d.name + ':':<{width}} {d.url}", d.color)
        if self.failed:
            report(f"\n⚠️  Failed to start: {', '.join(self.failed)}", "yellow")
        report("\n💡 Press Ctrl+C to stop all services\n", "yellow")
