"""
This module initializes the external dependency and version management system.
It exposes the `DependencyManager` installer and the `VersionOracle` update check.
"""

from .external import DependencyManager
from .versions import VersionOracle, WorkerVersion

__all__ = ["DependencyManager", "VersionOracle", "WorkerVersion"]
