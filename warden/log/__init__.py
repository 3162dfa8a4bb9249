"""
Logging module for the supervisor.
This module provides the logging setup and the size-capped session log file handler.
"""

from .setup import setup_logging
from .handler import RotatingLogFileHandler, rotate_log_file

__all__ = ["setup_logging", "RotatingLogFileHandler", "rotate_log_file"]
