import time
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

import warden.settings as default_settings


def rotate_log_file(log_path: Path, max_bytes: int, now: Optional[float] = None) -> Optional[Path]:
    """
    Rotates the log file once it has reached the size ceiling.

    The active file is renamed to `<name>.<timestamp>.bak` and a fresh,
    empty file is created in its place. Nothing happens below the ceiling.

    :param log_path: Path of the active log file.
    :param max_bytes: Size ceiling in bytes; rotation happens at size >= max_bytes.
    :param now: Timestamp used for the backup suffix, defaults to the current time.
    :return: The backup path if a rotation happened, otherwise None.
    """
    try:
        size = log_path.stat().st_size
    except FileNotFoundError:
        return None
    if size < max_bytes:
        return None

    suffix = time.strftime(default_settings.LOG_BACKUP_SUFFIX_FORMAT, time.localtime(now))
    backup_path = log_path.with_name(f"{log_path.name}.{suffix}.bak")
    counter = 1
    while backup_path.exists():
        backup_path = log_path.with_name(f"{log_path.name}.{suffix}-{counter}.bak")
        counter += 1

    log_path.rename(backup_path)
    log_path.touch()
    return backup_path


class RotatingLogFileHandler(logging.handlers.WatchedFileHandler):
    """
    Appends records to the session log file.

    The file is shared with the worker's own output and is deleted by
    restart-mode cleanup, so the handler reopens it whenever it disappears.
    After each record it rotates the file if the size ceiling was reached.
    """

    def __init__(self, filename: Path, max_bytes: int = default_settings.MAX_LOG_SIZE_BYTES):
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        super().__init__(str(filename), mode="a", encoding="utf-8", delay=False)
        self.max_bytes = max_bytes
        self.rotations = 0

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        try:
            if rotate_log_file(Path(self.baseFilename), self.max_bytes) is not None:
                self.rotations += 1
                self.reopenIfNeeded()
        except OSError:
            self.handleError(record)
