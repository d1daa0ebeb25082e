import logging
import sys
from pathlib import Path
from typing import Optional

from stacklaunch.local.config import effective_settings as config

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'


def setup_logging(console_level: int = logging.WARNING, log_file: Optional[Path] = None) -> None:
    """
    Configures the root logger for the supervisor.
    This sets up a console handler and a file handler, clearing any
    previously configured handlers to prevent duplication.

    The console handler defaults to WARNING because status lines are already
    written by the console reporter; the file keeps everything.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param log_file: Where to write the full log. Defaults to LOG_FILE_PATH.
    """
    log_file = Path(log_file or config.LOG_FILE_PATH)

    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # --- File Handler (always enabled for all levels) ---
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.error(f"Failed to initialize file logging handler at '{log_file}': {e}. Logging to file will be disabled.")

    # urllib3 logs every connection at DEBUG; keep the file readable.
    logging.getLogger("urllib3").setLevel(logging.INFO)
