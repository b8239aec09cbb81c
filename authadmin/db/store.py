"""SQLAlchemy implementation of the identity store.

Every public method is one unit of work: writes commit before returning,
and SQLAlchemy errors surface as ``InternalError`` after a rollback.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional

from sqlalchemy import Boolean, asc, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from authadmin.core.errors import AdminErrorCode, BadRequest, InternalError
from authadmin.core.interfaces import (
    IdentityStore,
    SessionCreateContext,
    SessionCreateHook,
    SortBy,
    Where,
)
from authadmin.core.records import SessionRecord, SessionWithUser, UserRecord
from authadmin.core.security import expires_in, generate_session_token, utcnow
from authadmin.db.models import Account, Session, User

logger = logging.getLogger(__name__)

# Session fields only a privileged creation may set
PROTECTED_SESSION_FIELDS = frozenset({"impersonated_by", "expires_at"})
OVERRIDABLE_SESSION_FIELDS = frozenset({"ip_address", "user_agent"}) | PROTECTED_SESSION_FIELDS

USER_COLUMNS = frozenset(column.name for column in User.__table__.columns)
SEARCHABLE_USER_COLUMNS = USER_COLUMNS - {"id"}


class SqlIdentityStore(IdentityStore):
    """Identity store over a SQLAlchemy session."""

    def __init__(
        self,
        db: DBSession,
        *,
        default_role: str = "user",
        session_expires_in: int = 60 * 60 * 24 * 7,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.default_role = default_role
        self.session_expires_in = session_expires_in
        self.clock = clock
        self._session_hooks: List[SessionCreateHook] = []

    @classmethod
    def from_settings(cls, db: DBSession, settings, **kwargs) -> "SqlIdentityStore":
        return cls(
            db,
            default_role=settings.default_role,
            session_expires_in=settings.session_expires_in,
            **kwargs,
        )

    def register_session_hook(self, hook: SessionCreateHook) -> None:
        """Run ``hook`` before every session row is written."""
        self._session_hooks.append(hook)

    @contextmanager
    def _unit_of_work(self, commit: bool = True) -> Iterator[None]:
        try:
            yield
            if commit:
                self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Identity store operation failed")
            raise InternalError(AdminErrorCode.STORE_ERROR, message=str(e)) from e
        except Exception:
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_user_by_id(self, user_id: str) -> Optional[UserRecord]:
        if not user_id:
            return None
        with self._unit_of_work(commit=False):
            user = self.db.get(User, user_id)
            return UserRecord.model_validate(user) if user else None

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._unit_of_work(commit=False):
            user = self.db.query(User).filter(User.email == email.lower()).first()
            return UserRecord.model_validate(user) if user else None

    def create_user(self, data: Dict[str, Any]) -> Optional[UserRecord]:
        values = dict(data)
        values["email"] = values["email"].lower()
        if not values.get("role"):
            values["role"] = self.default_role
        unknown = set(values) - USER_COLUMNS
        if unknown:
            raise BadRequest(
                AdminErrorCode.INVALID_USER_FIELD,
                message=f"Invalid user field: {', '.join(sorted(unknown))}",
            )

        user = User(**values)
        try:
            with self._unit_of_work():
                self.db.add(user)
        except InternalError as e:
            if isinstance(e.__cause__, IntegrityError):
                return None
            raise
        self.db.refresh(user)
        return UserRecord.model_validate(user)

    def update_user(self, user_id: str, patch: Dict[str, Any]) -> Optional[UserRecord]:
        unknown = set(patch) - USER_COLUMNS
        if unknown:
            raise BadRequest(
                AdminErrorCode.INVALID_USER_FIELD,
                message=f"Invalid user field: {', '.join(sorted(unknown))}",
            )
        with self._unit_of_work():
            user = self.db.get(User, user_id)
            if user is None:
                return None
            for key, value in patch.items():
                setattr(user, key, value.lower() if key == "email" and value else value)
            user.updated_at = self.clock()
        self.db.refresh(user)
        return UserRecord.model_validate(user)

    def delete_user(self, user_id: str) -> None:
        with self._unit_of_work():
            user = self.db.get(User, user_id)
            if user is not None:
                self.db.delete(user)

    def link_account(
        self,
        user_id: str,
        provider_id: str,
        account_id: str,
        password: Optional[str] = None,
    ) -> None:
        with self._unit_of_work():
            self.db.add(Account(
                user_id=user_id,
                provider_id=provider_id,
                account_id=account_id,
                password=password,
            ))

    def update_password(self, user_id: str, password_hash: str) -> int:
        with self._unit_of_work():
            return self.db.query(Account).filter(
                Account.user_id == user_id,
                Account.provider_id == "credential",
            ).update(
                {Account.password: password_hash, Account.updated_at: self.clock()},
                synchronize_session=False,
            )

    def list_users(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: Optional[SortBy] = None,
        where: Optional[List[Where]] = None,
    ) -> List[UserRecord]:
        with self._unit_of_work(commit=False):
            query = self._filtered_users(where)
            if sort_by is not None:
                column = self._user_column(sort_by.field)
                query = query.order_by(desc(column) if sort_by.direction == "desc" else asc(column))
            else:
                query = query.order_by(User.created_at.asc())
            if offset:
                query = query.offset(offset)
            if limit:
                query = query.limit(limit)
            return [UserRecord.model_validate(user) for user in query.all()]

    def count_total_users(self, where: Optional[List[Where]] = None) -> int:
        with self._unit_of_work(commit=False):
            return self._filtered_users(where).count()

    def _user_column(self, field: str):
        if field not in SEARCHABLE_USER_COLUMNS:
            raise BadRequest(
                AdminErrorCode.INVALID_USER_FIELD,
                message=f"Invalid user field: {field}",
            )
        return getattr(User, field)

    def _filtered_users(self, where: Optional[List[Where]]):
        query = self.db.query(User)
        for condition in where or []:
            column = self._user_column(condition.field)
            value = condition.value
            if isinstance(column.type, Boolean) and isinstance(value, str):
                value = value.lower() == "true"

            op = condition.operator
            if op == "eq":
                query = query.filter(column == value)
            elif op == "ne":
                query = query.filter(column != value)
            elif op == "lt":
                query = query.filter(column < value)
            elif op == "lte":
                query = query.filter(column <= value)
            elif op == "gt":
                query = query.filter(column > value)
            elif op == "gte":
                query = query.filter(column >= value)
            elif op == "contains":
                query = query.filter(column.ilike(f"%{value}%"))
            elif op == "starts_with":
                query = query.filter(column.ilike(f"{value}%"))
            elif op == "ends_with":
                query = query.filter(column.ilike(f"%{value}"))
            else:
                raise BadRequest("INVALID_OPERATOR", message=f"Invalid operator: {op}")
        return query

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def find_session(self, token: str) -> Optional[SessionWithUser]:
        if not token:
            return None
        with self._unit_of_work(commit=False):
            session = self.db.query(Session).filter(Session.token == token).first()
            if session is None or session.expires_at <= self.clock():
                return None
            return SessionWithUser(
                session=SessionRecord.model_validate(session),
                user=UserRecord.model_validate(session.user),
            )

    def create_session(
        self,
        user_id: str,
        context: Optional[SessionCreateContext] = None,
        *,
        overrides: Optional[Dict[str, Any]] = None,
        privileged: bool = False,
    ) -> Optional[SessionRecord]:
        overrides = dict(overrides or {})
        unknown = set(overrides) - OVERRIDABLE_SESSION_FIELDS
        if unknown:
            raise ValueError(f"Cannot override session fields: {', '.join(sorted(unknown))}")
        if not privileged and set(overrides) & PROTECTED_SESSION_FIELDS:
            raise ValueError("Only privileged session creation may set impersonated_by or expires_at")

        if self.find_user_by_id(user_id) is None:
            return None

        context = context or SessionCreateContext()
        # Hooks run for privileged creations too; a hook raising aborts the session
        for hook in self._session_hooks:
            hook(user_id, context)

        session = Session(
            token=generate_session_token(),
            user_id=user_id,
            expires_at=expires_in(self.session_expires_in, self.clock()),
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        for key, value in overrides.items():
            setattr(session, key, value)

        with self._unit_of_work():
            self.db.add(session)
        self.db.refresh(session)
        return SessionRecord.model_validate(session)

    def delete_session(self, token: str) -> None:
        with self._unit_of_work():
            self.db.query(Session).filter(Session.token == token).delete(synchronize_session=False)

    def delete_sessions(self, user_id: str) -> None:
        with self._unit_of_work():
            self.db.query(Session).filter(Session.user_id == user_id).delete(synchronize_session=False)

    def list_sessions(self, user_id: str) -> List[SessionRecord]:
        with self._unit_of_work(commit=False):
            sessions = self.db.query(Session).filter(
                Session.user_id == user_id,
                Session.expires_at > self.clock(),
            ).order_by(Session.created_at.desc()).all()
            return [SessionRecord.model_validate(session) for session in sessions]
