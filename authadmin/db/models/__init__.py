"""Database models for authadmin."""

from authadmin.db.models.user import User
from authadmin.db.models.session import Session
from authadmin.db.models.account import Account

__all__ = [
    "User",
    "Session",
    "Account",
]
