"""Factory functions for creating test database records.

Each factory creates a model instance, adds it to the session and commits,
so rows survive the rollback the identity store performs after a failed
operation. All fields have sensible defaults but can be overridden via
keyword arguments.

Usage::

    from tests.factories import create_user, create_session

    def test_something(db_session):
        admin = create_user(db_session, role="admin")
        session = create_session(db_session, user=admin)
        assert session.user_id == admin.id
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session as DBSession

from authadmin.core.security import generate_session_token, get_password_hash, utcnow
from authadmin.db.models import Account, Session, User


_counter = 0


def _next_id() -> int:
    """Return a monotonically increasing integer for unique default values."""
    global _counter
    _counter += 1
    return _counter


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------


def create_user(
    session: DBSession,
    *,
    email: Optional[str] = None,
    name: Optional[str] = None,
    role: Optional[str] = "user",
    banned: bool = False,
    ban_reason: Optional[str] = None,
    ban_expires: Optional[datetime] = None,
    password: Optional[str] = None,
) -> User:
    n = _next_id()
    user = User(
        email=email or f"user{n}@example.com",
        name=name or f"Test User {n}",
        role=role,
        banned=banned,
        ban_reason=ban_reason,
        ban_expires=ban_expires,
    )
    session.add(user)
    session.flush()
    if password is not None:
        session.add(Account(
            user_id=user.id,
            provider_id="credential",
            account_id=user.id,
            password=get_password_hash(password),
        ))
    session.commit()
    return user


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def create_session(
    session: DBSession,
    *,
    user: User,
    token: Optional[str] = None,
    expires_at: Optional[datetime] = None,
    impersonated_by: Optional[str] = None,
) -> Session:
    row = Session(
        token=token or generate_session_token(),
        user_id=user.id,
        expires_at=expires_at or utcnow() + timedelta(days=7),
        impersonated_by=impersonated_by,
    )
    session.add(row)
    session.commit()
    return row
