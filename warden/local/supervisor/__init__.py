"""
The Supervisor package.
Keeps the Nexus worker running and replaces it when a new release appears.

This package contains the central NodeSupervisor class and its helper modules,
which together handle process lookup, cleanup, launching, polling and the
supervisor PID file.
"""
from .supervisor import NodeSupervisor, SupervisorState

__all__ = ['NodeSupervisor', 'SupervisorState']
