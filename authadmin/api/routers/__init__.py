"""API routers for authadmin."""

from . import admin
