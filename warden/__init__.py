"""
Nexus Warden: keeps a Nexus worker node running and upgrades it when a new
release is published.
"""

__version__ = "1.0.0"
