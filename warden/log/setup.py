import sys
import logging
from typing import TYPE_CHECKING

import warden.settings as default_settings
from warden.log.handler import RotatingLogFileHandler

if TYPE_CHECKING:
    from warden.local.config import SessionConfig

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s [%(name)s] %(message)s"


class MainFormatter(logging.Formatter):
    """Formats every line with the session timestamp convention, time zone included."""

    def __init__(self) -> None:
        super().__init__(fmt=LOG_FORMAT, datefmt=default_settings.LOG_TIMESTAMP_FORMAT)


def setup_logging(config: "SessionConfig", console_level: int = logging.INFO) -> None:
    """
    Configures the root logger for the supervisor.
    This sets up a console handler and the rotating session log file,
    clearing any previously configured handlers to prevent duplication.

    :param config: The session configuration holding the log file path and ceiling.
    :param console_level: The logging level for the console output (e.g., logging.INFO).
    """
    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    if root_logger.hasHandlers():
        for handler in list(root_logger.handlers):
            handler.close()
        root_logger.handlers.clear()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # --- Session Log File ---
    try:
        file_handler = RotatingLogFileHandler(config.log_file, max_bytes=config.max_log_bytes)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(MainFormatter())
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.error(f"Failed to open session log file '{config.log_file}': {e}. File logging disabled.")
