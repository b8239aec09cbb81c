"""Tests for the SQLAlchemy identity store."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from authadmin.core.errors import BadRequest, InternalError
from authadmin.core.interfaces import SessionCreateContext, SortBy, Where
from authadmin.db.store import SqlIdentityStore
from tests.factories import create_session, create_user


class TestUsers:

    def test_create_user_applies_default_role(self, store):
        user = store.create_user({"email": "Someone@Example.com", "name": "Someone"})
        assert user.email == "someone@example.com"
        assert user.role == "user"
        assert user.banned is False

    def test_create_duplicate_returns_none(self, store):
        store.create_user({"email": "dup@example.com", "name": "A"})
        assert store.create_user({"email": "dup@example.com", "name": "B"}) is None

    def test_create_rolls_back_only_failed_insert(self, store, db_session):
        existing = create_user(db_session, email="keep@example.com")
        store.create_user({"email": "keep@example.com", "name": "Again"})
        assert store.find_user_by_id(existing.id) is not None

    def test_create_unknown_field(self, store):
        with pytest.raises(BadRequest):
            store.create_user({"email": "x@example.com", "nickname": "x"})

    def test_update_missing_user(self, store):
        assert store.update_user("missing", {"name": "x"}) is None

    def test_update_sets_updated_at(self, store, db_session, clock):
        user = create_user(db_session)
        clock.advance(60)
        updated = store.update_user(user.id, {"name": "New"})
        assert updated.name == "New"
        assert updated.updated_at == clock()

    def test_find_by_email_is_case_insensitive(self, store, db_session):
        user = create_user(db_session, email="case@example.com")
        assert store.find_user_by_email("CASE@example.com").id == user.id

    def test_update_password_without_account(self, store, db_session):
        user = create_user(db_session)
        assert store.update_password(user.id, "hash") == 0

    def test_delete_user_cascades(self, store, db_session):
        user = create_user(db_session, password="pw")
        store.create_session(user.id)
        store.delete_user(user.id)
        assert store.find_user_by_id(user.id) is None
        assert store.list_sessions(user.id) == []
        assert store.update_password(user.id, "hash") == 0


class TestListUsers:

    @pytest.fixture
    def users(self, db_session):
        return [
            create_user(db_session, email="carol@example.com", name="Carol", role="admin"),
            create_user(db_session, email="alice@example.com", name="Alice"),
            create_user(db_session, email="bob@test.org", name="Bob", banned=True),
        ]

    def test_sort(self, store, users):
        emails = [u.email for u in store.list_users(sort_by=SortBy("email", "desc"))]
        assert emails == ["carol@example.com", "bob@test.org", "alice@example.com"]

    def test_limit_offset(self, store, users):
        page = store.list_users(limit=1, offset=1, sort_by=SortBy("email"))
        assert [u.email for u in page] == ["bob@test.org"]

    def test_operators(self, store, users):
        def emails(where):
            return sorted(u.email for u in store.list_users(where=[where]))

        assert emails(Where("email", "example.com", "ends_with")) == [
            "alice@example.com", "carol@example.com",
        ]
        assert emails(Where("name", "bo", "starts_with")) == ["bob@test.org"]
        assert emails(Where("role", "admin", "ne")) == ["alice@example.com", "bob@test.org"]
        assert emails(Where("banned", "true")) == ["bob@test.org"]

    def test_count_matches_filter(self, store, users):
        assert store.count_total_users() == 3
        assert store.count_total_users([Where("email", "example", "contains")]) == 2

    def test_invalid_operator(self, store, users):
        with pytest.raises(BadRequest):
            store.list_users(where=[Where("email", "x", "regex")])

    def test_invalid_field(self, store, users):
        with pytest.raises(BadRequest):
            store.list_users(where=[Where("id", "x")])

    def test_database_error_becomes_internal_error(self, store, monkeypatch):
        def broken(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(store.db, "query", broken)
        with pytest.raises(InternalError) as exc_info:
            store.list_users()
        assert exc_info.value.code == "STORE_ERROR"


class TestSessions:

    def test_create_session_defaults(self, store, db_session, clock):
        user = create_user(db_session)
        context = SessionCreateContext(path="/sign-in", ip_address="10.0.0.1", user_agent="pytest")

        session = store.create_session(user.id, context)

        assert session.ip_address == "10.0.0.1"
        assert session.user_agent == "pytest"
        assert session.impersonated_by is None
        assert session.expires_at == clock() + timedelta(days=7)

    def test_create_session_for_missing_user(self, store):
        assert store.create_session("missing") is None

    def test_protected_overrides_need_privilege(self, store, db_session):
        user = create_user(db_session)
        with pytest.raises(ValueError):
            store.create_session(user.id, overrides={"impersonated_by": "admin"})

    def test_privileged_overrides(self, store, db_session, clock):
        user = create_user(db_session)
        expires = clock() + timedelta(hours=1)
        session = store.create_session(
            user.id,
            overrides={"impersonated_by": "admin-id", "expires_at": expires},
            privileged=True,
        )
        assert session.impersonated_by == "admin-id"
        assert session.expires_at == expires

    def test_unknown_override_rejected(self, store, db_session):
        user = create_user(db_session)
        with pytest.raises(ValueError):
            store.create_session(user.id, overrides={"token": "chosen"}, privileged=True)

    def test_hooks_run_for_privileged_sessions(self, store, db_session):
        seen = []
        store.register_session_hook(lambda user_id, context: seen.append(user_id))
        user = create_user(db_session)

        store.create_session(
            user.id,
            overrides={"impersonated_by": "admin-id"},
            privileged=True,
        )
        assert seen == [user.id]

    def test_find_session_ignores_expired(self, store, db_session, clock):
        user = create_user(db_session)
        expired = create_session(db_session, user=user, expires_at=clock() - timedelta(seconds=1))
        assert store.find_session(expired.token) is None

    def test_find_session_returns_user(self, store, db_session):
        user = create_user(db_session)
        session = store.create_session(user.id)
        found = store.find_session(session.token)
        assert found.user.id == user.id
        assert found.session.token == session.token

    def test_list_sessions_newest_first(self, store, db_session, clock):
        user = create_user(db_session)
        older = create_session(db_session, user=user, expires_at=clock() + timedelta(days=1))
        older.created_at = clock() - timedelta(hours=1)
        db_session.commit()
        newer = store.create_session(user.id)
        create_session(db_session, user=user, expires_at=clock() - timedelta(days=1))

        tokens = [s.token for s in store.list_sessions(user.id)]
        assert tokens == [newer.token, older.token]

    def test_delete_sessions_is_idempotent(self, store, db_session):
        user = create_user(db_session)
        store.create_session(user.id)
        store.delete_sessions(user.id)
        store.delete_sessions(user.id)
        assert store.list_sessions(user.id) == []

    def test_from_settings(self, db_session, settings):
        store = SqlIdentityStore.from_settings(db_session, settings)
        assert store.default_role == settings.default_role
        assert store.session_expires_in == settings.session_expires_in
