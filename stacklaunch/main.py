"""
Entry point for the stacklaunch supervisor.

Running it starts the whole service stack and blocks until Ctrl+C, SIGTERM
or a fatal startup error, then stops every service and exits.
"""
import sys
import logging
import setproctitle

from stacklaunch.local import effective_settings as config
from stacklaunch.local.console import report
from stacklaunch.local.supervisor import ProcessManager
from stacklaunch.log.setup import setup_logging

log = logging.getLogger("stacklaunch")


def main() -> None:
    """Starts the supervisor and exits with the status chosen by the shutdown sequence."""
    setproctitle.setproctitle(config.PROCESS_TITLE)
    setup_logging(logging.DEBUG if config.VERBOSE_LOGGING else logging.WARNING)

    try:
        manager = ProcessManager()
        manager.install_shutdown_hooks()
        exit_code = manager.run()
    except Exception as e:
        log.critical(f"Fatal error: {e}", exc_info=True)
        report(f"❌ Fatal error: {e}", "red")
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
