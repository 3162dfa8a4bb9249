import shutil
import logging
import subprocess
from typing import Dict, List, Optional, Sequence

log = logging.getLogger(__name__)


def run_command(
    args: Sequence[str],
    timeout: Optional[float] = None,
    env: Optional[Dict[str, str]] = None,
    input_text: Optional[str] = None,
) -> Optional[subprocess.CompletedProcess]:
    """
    Runs an external command and captures its output as text.

    A missing executable, a timeout or any other launch error is logged at
    debug level and reported as None, so callers can treat "the tool is not
    there" the same as "nothing found".

    :param args: The command and its arguments.
    :param timeout: Seconds to wait before giving up.
    :param env: Environment for the child, defaults to the inherited one.
    :param input_text: Text written to the child's stdin.
    :return: The completed process, or None if it could not be run.
    """
    try:
        return subprocess.run(
            list(args),
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
            check=False,
        )
    except FileNotFoundError:
        log.debug(f"Command not found: {args[0]}")
    except subprocess.TimeoutExpired:
        log.warning(f"Command timed out after {timeout}s: {' '.join(args)}")
    except (OSError, subprocess.SubprocessError) as e:
        log.debug(f"Command {' '.join(args)} failed to run: {e}")
    return None


def which(name: str, path: Optional[str] = None) -> Optional[str]:
    """A wrapper for shutil.which for easy testing/mocking."""
    return shutil.which(name, path=path)


def output_lines(result: Optional[subprocess.CompletedProcess]) -> List[str]:
    if result is None or not result.stdout:
        return []
    return result.stdout.splitlines()
