"""Domain core: permissions, bans, impersonation and the admin service."""
