"""Admin authorization layer: roles and capabilities, bans, impersonation."""

__version__ = "0.1.0"
