import re
import logging
from typing import Iterable, NamedTuple, Optional

from warden.local import commands
from warden.local.config import SessionConfig

log = logging.getLogger(__name__)

# Strict release tags only: no pre-release suffixes, no peeled "^{}" refs.
_TAG_REF_RE = re.compile(r"refs/tags/(v\d+\.\d+\.\d+)$")
_VERSION_RE = re.compile(r"v?(\d+)\.(\d+)\.(\d+)")


class WorkerVersion(NamedTuple):
    """A `major.minor.patch` version; tuple ordering is semantic-version ordering."""
    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, text: str) -> Optional["WorkerVersion"]:
        """Parses a whole `vX.Y.Z` or `X.Y.Z` string, returning None for anything else."""
        match = _VERSION_RE.fullmatch(text.strip())
        if not match:
            return None
        return cls(*(int(part) for part in match.groups()))

    @classmethod
    def search(cls, text: str) -> Optional["WorkerVersion"]:
        """Returns the first version-like substring embedded in arbitrary text."""
        match = _VERSION_RE.search(text)
        if not match:
            return None
        return cls(*(int(part) for part in match.groups()))

    def __str__(self) -> str:
        return f"v{self.major}.{self.minor}.{self.patch}"


def latest_from_tag_listing(lines: Iterable[str]) -> Optional[WorkerVersion]:
    """
    Picks the highest strict release tag from `git ls-remote --tags` output.

    :param lines: Lines of the form `<sha>\\trefs/tags/<tag>`.
    :return: The maximum version, or None if no line holds a strict tag.
    """
    versions = []
    for line in lines:
        match = _TAG_REF_RE.search(line.strip())
        if match:
            version = WorkerVersion.parse(match.group(1))
            if version is not None:
                versions.append(version)
    return max(versions) if versions else None


class VersionOracle:
    """Compares the installed worker against the newest published release."""

    def __init__(self, config: SessionConfig):
        self.config = config

    def latest_version(self) -> Optional[WorkerVersion]:
        """The newest published release, or None (Unknown) if the listing is empty or unreachable."""
        result = commands.run_command(
            ["git", "ls-remote", "--tags", self.config.repo_url],
            timeout=self.config.command_timeout,
            env=self.config.child_env(),
        )
        if result is None or result.returncode != 0:
            detail = result.stderr.strip() if result is not None else "git unavailable"
            log.warning(f"Could not fetch latest version info: {detail}")
            return None
        latest = latest_from_tag_listing(commands.output_lines(result))
        if latest is None:
            log.warning("Could not fetch latest version info: no release tags listed.")
        return latest

    def installed_version(self) -> Optional[WorkerVersion]:
        """The version the installed worker reports about itself, or None (Unknown)."""
        for executable, flag in self.config.version_commands:
            path = commands.which(executable, path=self.config.search_path)
            if path is None:
                continue
            result = commands.run_command(
                [path, flag], timeout=self.config.command_timeout, env=self.config.child_env()
            )
            if result is None:
                continue
            version = WorkerVersion.search(f"{result.stdout}\n{result.stderr}")
            if version is not None:
                return version
            log.debug(f"'{executable} {flag}' reported no version: {result.stdout.strip()!r}")
            return None
        return None

    def update_available(self) -> bool:
        """
        True only when both versions are known and the published one is strictly newer.
        An Unknown on either side counts as no update.
        """
        log.info("Checking for updates...")
        latest = self.latest_version()
        if latest is None:
            return False
        current = self.installed_version()
        if current is None:
            log.warning(f"Installed worker version is unknown; latest is {latest}. Not updating.")
            return False
        if latest > current:
            log.info(f"New version available: {latest} (Current: {current})")
            return True
        log.debug(f"Worker is up to date ({current}).")
        return False
