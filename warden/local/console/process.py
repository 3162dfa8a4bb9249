import logging
from typing import List

from warden.local.config import SessionConfig
from warden.local.console.handler import (
    display_status, display_update_check, print_help, start_supervision, stop_supervision,
)

log = logging.getLogger(__name__)


def execute_command(command: str, args: List[str], config: SessionConfig) -> bool:
    """
    Executes a single command from the operator.

    :param command: The main command string (e.g., 'start', 'status').
    :param args: A list of arguments for the command.
    :param config: The session configuration.
    :return bool: True if the command was recognised, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "start": lambda: start_supervision(config),
        "stop": lambda: stop_supervision(config),
        "status": lambda: display_status(config),
        "check-update": lambda: display_update_check(config),
        "help": print_help,
    }

    if command not in command_map:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
        return False
    command_map[command]()
    return True
