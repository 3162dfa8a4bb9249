import time
import logging
import requests
from typing import Callable, List, Optional

import warden.settings as default_settings
from warden.local import commands
from warden.local.config import SessionConfig
from warden.local.errors import InstallError

log = logging.getLogger(__name__)


class DependencyManager:
    """Installs the build toolchain and installs or upgrades the worker binary."""

    def __init__(self, config: SessionConfig, sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.sleep = sleep

    def _fetch_script(self, url: str) -> str:
        """Downloads an installer script."""
        headers = {"User-Agent": default_settings.HTTP_USER_AGENT}
        try:
            res = requests.get(url, timeout=30, headers=headers)
            res.raise_for_status()
        except requests.RequestException as e:
            raise InstallError(f"Failed to download installer from {url}: {e}") from e
        return res.text

    def _run(self, args: List[str], input_text: Optional[str] = None) -> bool:
        result = commands.run_command(
            args,
            timeout=self.config.install_timeout,
            env=self.config.child_env(),
            input_text=input_text,
        )
        if result is None:
            return False
        if result.returncode != 0:
            log.debug(f"'{' '.join(args)}' exited with {result.returncode}: {result.stderr.strip()}")
            return False
        return True

    def _run_script(self, url: str, shell_args: List[str]) -> bool:
        """Fetches an installer script and pipes it into a shell."""
        try:
            script = self._fetch_script(url)
        except InstallError as e:
            log.error(str(e))
            return False
        return self._run(shell_args, input_text=script)

    def _has(self, command: str) -> bool:
        return commands.which(command, path=self.config.search_path) is not None

    #* --- System Dependencies ---
    def install_apt_packages(self) -> bool:
        """Installs the build toolchain with apt (Ubuntu)."""
        log.info("Checking system dependencies (apt)...")
        if not self._run(["sudo", "apt-get", "update", "-y"]):
            log.error("Failed to refresh package lists (apt).")
            return False
        if not self._run(["sudo", "apt-get", "install", "-y", *default_settings.APT_PACKAGES]):
            log.error("Failed to install dependencies (apt).")
            return False
        log.info("System dependencies are installed.")
        return True

    def install_homebrew_packages(self) -> bool:
        """Installs Homebrew if missing, then any missing formulae (macOS)."""
        log.info("Checking system dependencies (Homebrew)...")
        if not self._has("brew"):
            log.info("Installing Homebrew...")
            if not self._run_script(default_settings.HOMEBREW_INSTALLER_URL, ["/bin/bash"]):
                log.error("Failed to install Homebrew.")
                return False

        all_ok = True
        for formula, command in default_settings.BREW_PACKAGES.items():
            if self._has(command):
                continue
            log.info(f"Installing {formula} via Homebrew...")
            if not self._run(["brew", "install", formula]):
                log.error(f"Failed to install {formula} via Homebrew.")
                all_ok = False
        return all_ok

    def install_rust(self) -> bool:
        """Installs Rust through rustup if missing and adds the RISC-V target."""
        if self._has("rustc"):
            result = commands.run_command(["rustc", "--version"], timeout=self.config.command_timeout, env=self.config.child_env())
            version = result.stdout.strip() if result is not None else "unknown version"
            log.info(f"Rust is already installed ({version}).")
        else:
            log.info("Installing Rust...")
            if not self._run_script(default_settings.RUSTUP_INSTALLER_URL, ["sh", "-s", "--", "-y"]):
                log.error("Failed to install Rust.")
                return False

        result = commands.run_command(
            ["rustup", "target", "list", "--installed"],
            timeout=self.config.command_timeout,
            env=self.config.child_env(),
        )
        if default_settings.RUST_TARGET in commands.output_lines(result):
            log.info("RISC-V target already installed.")
            return True

        log.info("Adding RISC-V target...")
        if not self._run(["rustup", "target", "add", default_settings.RUST_TARGET]):
            log.error(f"Failed to add Rust target {default_settings.RUST_TARGET}.")
            return False
        return True

    #* --- Worker ---
    def find_worker_binary(self) -> Optional[str]:
        """Returns the path of the first worker executable on the search path."""
        for executable in self.config.worker_executables:
            path = commands.which(executable, path=self.config.search_path)
            if path:
                return path
        return None

    def install_worker(self) -> bool:
        """
        Installs or upgrades the worker with bounded retries.

        :return: True once a worker binary is reachable after a successful install run.
        """
        attempts = self.config.install_attempts
        for attempt in range(1, attempts + 1):
            log.info(f"Installing/Updating Nexus CLI (Attempt {attempt}/{attempts})...")
            if self._run_script(self.config.installer_url, ["sh"]):
                binary = self.find_worker_binary()
                if binary:
                    log.info(f"Nexus CLI installed successfully at {binary}.")
                    return True
                log.warning("Installer finished but no worker binary is on the search path.")
            if attempt < attempts:
                self.sleep(self.config.install_backoff)

        log.error(f"Failed to install Nexus CLI after {attempts} attempts.")
        return False
