import os
import re
import sys
import json
import select
import logging
from pathlib import Path
from typing import Callable, Mapping, Optional

import warden.settings as default_settings
from warden.local.errors import IdentityValidationError

log = logging.getLogger(__name__)

_NODE_ID_RE = re.compile(default_settings.NODE_ID_PATTERN)


def validate_node_id(value: Optional[str]) -> str:
    """
    Checks a node identity token against the allowed format.

    :param value: The candidate identity.
    :return: The identity, unchanged.
    :raises IdentityValidationError: If it is empty or contains anything but letters, digits and hyphens.
    """
    token = value or ""
    if not _NODE_ID_RE.fullmatch(token):
        raise IdentityValidationError(
            f"Invalid Node ID {token!r}. Alphanumeric and hyphens only."
        )
    return token


class IdentityStore:
    """Reads and writes the persisted node identity (`{"node_id": "..."}`)."""

    def __init__(self, path: Path):
        self.path = path

    def get(self) -> Optional[str]:
        """Returns the stored node id, or None if the file is missing, malformed or empty."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            log.warning(f"Ignoring unreadable identity file '{self.path}': {e}")
            return None
        if not isinstance(data, dict):
            return None
        node_id = data.get("node_id")
        return node_id if isinstance(node_id, str) and node_id else None

    def set(self, node_id: str) -> None:
        """Atomically replaces the identity file with the given node id."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        try:
            temp_path.write_text(json.dumps({"node_id": node_id}))
            temp_path.replace(self.path)
        finally:
            temp_path.unlink(missing_ok=True)


def timed_confirm(question: str, timeout: float, default: bool = True) -> bool:
    """
    Asks a yes/no question on the terminal and waits a bounded time for the answer.

    No answer within the timeout, an empty line, or a closed stdin all return the default.
    """
    print(f"{question} (y/n) [Default: {'y' if default else 'n'}, Timeout: {timeout:g}s]", flush=True)
    try:
        ready, _, _ = select.select([sys.stdin], [], [], timeout)
    except (OSError, ValueError):
        return default
    if not ready:
        return default
    answer = sys.stdin.readline().strip().lower()
    if not answer:
        return default
    return answer not in ("n", "no")


def prompt_node_id() -> str:
    try:
        return input("Enter new Node ID: ")
    except EOFError:
        return ""


class IdentityResolver:
    """
    Resolves the node identity for a supervision session.

    Precedence: an environment override (no interaction at all), then the
    persisted identity with a timed confirmation, then an interactive prompt.
    The resolved identity is validated and persisted before it is returned.
    """

    def __init__(
        self,
        store: IdentityStore,
        env_vars=default_settings.NODE_ID_ENV_VARS,
        confirm_timeout: float = default_settings.IDENTITY_CONFIRM_TIMEOUT,
        environ: Optional[Mapping[str, str]] = None,
        confirm: Callable[[str, float], bool] = timed_confirm,
        prompt: Callable[[], str] = prompt_node_id,
    ):
        self.store = store
        self.env_vars = tuple(env_vars)
        self.confirm_timeout = confirm_timeout
        self.environ = environ if environ is not None else os.environ
        self.confirm = confirm
        self.prompt = prompt

    def _from_environment(self) -> Optional[str]:
        for name in self.env_vars:
            value = self.environ.get(name)
            if value:
                return value
        return None

    def resolve(self) -> str:
        """
        :return: The validated node identity.
        :raises IdentityValidationError: If the chosen identity is malformed.
        """
        override = self._from_environment()
        if override is not None:
            node_id = validate_node_id(override)
            self.store.set(node_id)
            log.info(f"Using Node ID from environment: {node_id}")
            return node_id

        current_id = self.store.get()
        if current_id:
            log.info(f"Found existing Node ID: {current_id}")
            if self.confirm("Use this ID?", self.confirm_timeout):
                candidate = current_id
            else:
                candidate = self.prompt()
        else:
            log.warning("No Node ID found.")
            candidate = self.prompt()

        node_id = validate_node_id(candidate)
        self.store.set(node_id)
        log.info(f"Node ID configured: {node_id}")
        return node_id
