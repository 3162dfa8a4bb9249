import sys
import logging

# Basic console logger for messages BEFORE full setup is complete.
# This logger will be replaced by the full setup later.
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)-8s - [console] - %(message)s',
    stream=sys.stdout
)
log = logging.getLogger("console")

from warden.log import setup_logging
from warden.local.config import load_session_config
from warden.local.console import execute_command
from warden.local.errors import IdentityValidationError, PlatformNotSupportedError


def main() -> None:
    """The main entry point for the supervisor command line."""
    args = sys.argv[1:]
    verbose = "--verbose" in args
    if verbose:
        args.remove("--verbose")
    command, command_args = (args[0].lower(), args[1:]) if args else ("start", [])

    try:
        config = load_session_config()
    except PlatformNotSupportedError as e:
        log.critical(str(e))
        sys.exit(1)

    setup_logging(config, logging.DEBUG if verbose else logging.INFO)

    try:
        if not execute_command(command, command_args, config):
            sys.exit(2)
    except IdentityValidationError as e:
        logging.getLogger(__name__).critical(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
