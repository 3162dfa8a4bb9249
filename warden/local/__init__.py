"""
Local package for Nexus Warden.

This package holds the session configuration, the node identity store, the
platform-specific worker hosts and the supervisor itself.
"""
