"""
This module contains the configuration settings for Nexus Warden.
It defines paths, supervision timings, worker invocation details and the
external installer sources. Values can be overridden through the environment
or a `.env` file in the working directory.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=False)


def _env_path(name: str, default: pathlib.Path) -> pathlib.Path:
    value = os.getenv(name)
    return pathlib.Path(value).expanduser() if value else default


#* --- Core Paths ---
HOME_DIR = pathlib.Path.home()
NEXUS_HOME = _env_path("NEXUS_HOME", HOME_DIR / ".nexus")
CONFIG_FILE_PATH = NEXUS_HOME / "config.json"
PID_FILE_PATH = NEXUS_HOME / "warden.pid"
LOG_FILE_PATH = _env_path("WARDEN_LOG_FILE", HOME_DIR / "nexus.log")

#* --- Logging ---
MAX_LOG_SIZE_BYTES = int(os.getenv("WARDEN_MAX_LOG_BYTES", str(10 * 1024 * 1024)))  # 10 MiB
LOG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %Z"
LOG_BACKUP_SUFFIX_FORMAT = "%Y-%m-%d_%H-%M-%S"

#* --- Node Identity ---
# The first variable that is set wins.
NODE_ID_ENV_VARS = ("NEXUS_NODE_ID", "NODE_IDENTITY_OVERRIDE")
NODE_ID_PATTERN = r"^[A-Za-z0-9-]+$"
IDENTITY_CONFIRM_TIMEOUT = 5  # seconds, defaults to reusing the stored id

#* --- Supervisor Settings ---
SUPERVISOR_PROCESS_TITLE = "Nexus Warden - Supervisor"
POLL_INTERVAL_SECONDS = float(os.getenv("WARDEN_POLL_INTERVAL", "1800"))  # 30 minutes
LAUNCH_SETTLE_SECONDS = 2
GRACEFUL_SHUTDOWN_TIMEOUT = 1  # seconds before force-killing
INSTALL_ATTEMPTS = 3
INSTALL_BACKOFF_SECONDS = 3
COMMAND_TIMEOUT_SECONDS = 60
INSTALL_TIMEOUT_SECONDS = 1800

#* --- Worker ---
WORKER_EXECUTABLES = ("nexus-network", "nexus-cli")
WORKER_LAUNCH_EXECUTABLE = "nexus-network"
WORKER_PROCESS_PATTERN = r"nexus-cli|nexus-network"
# Checked in order; the first executable found reports the installed version.
WORKER_VERSION_COMMANDS = (
    ("nexus-cli", "-V"),
    ("nexus-network", "--version"),
)
SESSION_NAME = "nexus_node"
WINDOW_TITLE_MARKER = "node-id"

# Extra directories searched for the worker and toolchain binaries, in
# addition to the inherited PATH.
EXTRA_BIN_DIRS = (
    NEXUS_HOME / "bin",
    HOME_DIR / ".cargo" / "bin",
    pathlib.Path("/opt/homebrew/bin"),
)

#* --- Upstream Sources ---
WORKER_REPO_URL = os.getenv("WARDEN_REPO_URL", "https://github.com/nexus-xyz/nexus-cli.git")
WORKER_INSTALLER_URL = os.getenv("WARDEN_INSTALLER_URL", "https://cli.nexus.xyz/")
RUSTUP_INSTALLER_URL = "https://sh.rustup.rs"
HOMEBREW_INSTALLER_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
HTTP_USER_AGENT = "NexusWarden/1.0"

#* --- System Dependencies ---
APT_PACKAGES = (
    "curl", "jq", "screen", "build-essential", "cmake",
    "protobuf-compiler", "git", "unzip",
)
BREW_PACKAGES = {"cmake": "cmake", "protobuf": "protoc"}  # formula -> command it provides
RUST_TARGET = "riscv32i-unknown-none-elf"
