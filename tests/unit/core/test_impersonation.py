"""Tests for the impersonation state machine."""

import pytest

from authadmin.core.errors import BadRequest, Forbidden, InternalError, NotFound, Unauthorized
from authadmin.core.impersonation import (
    ImpersonationState,
    ImpersonationTransition,
    SavedSession,
    can_transition,
    state_of,
)
from authadmin.core.rbac.roles import ADMIN_POLICY
from authadmin.core.service import AdminService
from tests.fakes import FakeCookieController
from tests.factories import create_user


ADMIN_COOKIE = "authadmin.admin_session"
SESSION_COOKIE = "authadmin.session_token"
DONT_REMEMBER_COOKIE = "authadmin.dont_remember"


@pytest.fixture
def admin(db_session):
    return create_user(db_session, role="admin", email="admin@example.com")


@pytest.fixture
def target(db_session):
    return create_user(db_session, email="target@example.com")


@pytest.fixture
def admin_session(store, admin):
    record = store.create_session(admin.id)
    return store.find_session(record.token)


@pytest.fixture
def signed_in_cookies(admin_session):
    return FakeCookieController({SESSION_COOKIE: admin_session.session.token})


class TestTransitions:

    def test_valid_transitions(self):
        assert can_transition(ImpersonationState.NORMAL, ImpersonationTransition.START)
        assert can_transition(ImpersonationState.IMPERSONATING, ImpersonationTransition.STOP)

    def test_invalid_transitions(self):
        assert not can_transition(ImpersonationState.NORMAL, ImpersonationTransition.STOP)
        assert not can_transition(ImpersonationState.IMPERSONATING, ImpersonationTransition.START)


class TestSavedSession:

    def test_encode(self):
        assert SavedSession("tok", "true").encode() == "tok:true"
        assert SavedSession("tok").encode() == "tok:"

    def test_decode(self):
        saved = SavedSession.decode("tok:true")
        assert saved.admin_session_token == "tok"
        assert saved.remember_me is False
        assert SavedSession.decode("tok:").remember_me is True

    def test_decode_malformed(self):
        assert SavedSession.decode(None) is None
        assert SavedSession.decode("") is None
        assert SavedSession.decode("no-delimiter") is None
        assert SavedSession.decode(":true") is None


class TestStart:

    def test_start_issues_target_session(self, service, admin_session, target, signed_in_cookies, clock):
        result = service.impersonate_user(admin_session, target.id, signed_in_cookies)

        assert result.user.id == target.id
        assert result.session.user_id == target.id
        assert result.session.impersonated_by == admin_session.user.id
        assert (result.session.expires_at - clock()).total_seconds() == 3600

        jar = signed_in_cookies.jar
        assert jar[SESSION_COOKIE] == result.session.token
        assert jar[ADMIN_COOKIE] == f"{admin_session.session.token}:"
        assert jar[DONT_REMEMBER_COOKIE] == "true"

    def test_start_keeps_admin_dont_remember_flag(self, service, admin_session, target):
        cookies = FakeCookieController({
            SESSION_COOKIE: admin_session.session.token,
            DONT_REMEMBER_COOKIE: "true",
        })
        service.impersonate_user(admin_session, target.id, cookies)
        assert cookies.jar[ADMIN_COOKIE] == f"{admin_session.session.token}:true"

    def test_start_requires_capability(self, service, store, db_session, target):
        plain = create_user(db_session)
        caller = store.find_session(store.create_session(plain.id).token)

        with pytest.raises(Forbidden) as exc_info:
            service.impersonate_user(caller, target.id, FakeCookieController())
        assert exc_info.value.code == "YOU_ARE_NOT_ALLOWED_TO_IMPERSONATE_USERS"

    def test_start_with_custom_role(self, store, settings, clock, db_session, target):
        policy = {"admin": ADMIN_POLICY, "user": {}, "support": {"user": ["impersonate"]}}
        custom = settings.model_copy(update={"role_policy": policy})
        service = AdminService(store, custom, clock=clock)
        agent = create_user(db_session, role="support")
        caller = store.find_session(store.create_session(agent.id).token)

        result = service.impersonate_user(caller, target.id, FakeCookieController())
        assert result.session.impersonated_by == agent.id

    def test_start_unknown_target(self, service, admin_session, signed_in_cookies):
        with pytest.raises(NotFound):
            service.impersonate_user(admin_session, "missing", signed_in_cookies)

    def test_start_self(self, service, admin_session, signed_in_cookies):
        with pytest.raises(BadRequest) as exc_info:
            service.impersonate_user(admin_session, admin_session.user.id, signed_in_cookies)
        assert exc_info.value.code == "YOU_CANNOT_IMPERSONATE_YOURSELF"

    def test_start_banned_target(self, service, admin_session, db_session, signed_in_cookies, store):
        banned = create_user(db_session, banned=True)

        with pytest.raises(Forbidden) as exc_info:
            service.impersonate_user(admin_session, banned.id, signed_in_cookies)

        assert exc_info.value.code == "BANNED_USER"
        assert store.list_sessions(banned.id) == []
        assert signed_in_cookies.jar == {SESSION_COOKIE: admin_session.session.token}

    def test_nested_impersonation_refused(self, service, store, admin_session, target, db_session, signed_in_cookies):
        other = create_user(db_session, role="admin")
        result = service.impersonate_user(admin_session, target.id, signed_in_cookies)
        # Even an admin-role target session cannot start another episode
        store.update_user(target.id, {"role": "admin"})
        current = store.find_session(result.session.token)

        with pytest.raises(BadRequest) as exc_info:
            service.impersonate_user(current, other.id, signed_in_cookies)
        assert exc_info.value.code == "ALREADY_IMPERSONATING"


class TestStop:

    def test_round_trip_restores_admin(self, service, store, admin_session, target, signed_in_cookies):
        result = service.impersonate_user(admin_session, target.id, signed_in_cookies)
        current = store.find_session(signed_in_cookies.get_session_token())

        restored = service.stop_impersonating(current, signed_in_cookies)

        assert restored.session.token == admin_session.session.token
        assert restored.user.id == admin_session.user.id
        assert store.find_session(result.session.token) is None
        assert signed_in_cookies.jar == {SESSION_COOKIE: admin_session.session.token}
        assert signed_in_cookies.session_cookie_calls[-1] == (admin_session.session.token, False)

    def test_round_trip_preserves_dont_remember(self, service, store, admin_session, target):
        cookies = FakeCookieController({
            SESSION_COOKIE: admin_session.session.token,
            DONT_REMEMBER_COOKIE: "true",
        })
        service.impersonate_user(admin_session, target.id, cookies)
        current = store.find_session(cookies.get_session_token())

        service.stop_impersonating(current, cookies)

        assert cookies.session_cookie_calls[-1] == (admin_session.session.token, True)
        assert cookies.jar[DONT_REMEMBER_COOKIE] == "true"

    def test_stop_without_session(self, service):
        with pytest.raises(Unauthorized):
            service.stop_impersonating(None, FakeCookieController())

    def test_stop_when_not_impersonating(self, service, admin_session, signed_in_cookies):
        with pytest.raises(BadRequest) as exc_info:
            service.stop_impersonating(admin_session, signed_in_cookies)
        assert exc_info.value.code == "NOT_IMPERSONATING"

    def test_stop_missing_admin_cookie(self, service, store, admin_session, target, signed_in_cookies):
        service.impersonate_user(admin_session, target.id, signed_in_cookies)
        current = store.find_session(signed_in_cookies.get_session_token())
        signed_in_cookies.delete_cookie(ADMIN_COOKIE)

        with pytest.raises(InternalError) as exc_info:
            service.stop_impersonating(current, signed_in_cookies)
        assert exc_info.value.code == "FAILED_TO_FIND_ADMIN_SESSION"
        assert store.find_session(current.session.token) is not None

    def test_stop_rejects_foreign_admin_session(self, service, store, admin_session, target, db_session, signed_in_cookies):
        service.impersonate_user(admin_session, target.id, signed_in_cookies)
        current = store.find_session(signed_in_cookies.get_session_token())
        stranger = create_user(db_session)
        foreign = store.create_session(stranger.id)
        signed_in_cookies.jar[ADMIN_COOKIE] = f"{foreign.token}:"

        with pytest.raises(InternalError) as exc_info:
            service.stop_impersonating(current, signed_in_cookies)
        assert exc_info.value.code == "FAILED_TO_FIND_ADMIN_SESSION"

    def test_stop_after_admin_session_revoked(self, service, store, admin_session, target, signed_in_cookies):
        service.impersonate_user(admin_session, target.id, signed_in_cookies)
        current = store.find_session(signed_in_cookies.get_session_token())
        store.delete_session(admin_session.session.token)

        with pytest.raises(InternalError):
            service.stop_impersonating(current, signed_in_cookies)

    def test_stop_when_admin_deleted(self, service, store, admin_session, target, signed_in_cookies):
        service.impersonate_user(admin_session, target.id, signed_in_cookies)
        current = store.find_session(signed_in_cookies.get_session_token())
        store.delete_user(admin_session.user.id)

        with pytest.raises(InternalError) as exc_info:
            service.stop_impersonating(current, signed_in_cookies)
        assert exc_info.value.code == "FAILED_TO_FIND_USER"

    def test_state(self, service, store, admin_session, target, signed_in_cookies):
        assert state_of(admin_session.session) == ImpersonationState.NORMAL
        service.impersonate_user(admin_session, target.id, signed_in_cookies)
        current = store.find_session(signed_in_cookies.get_session_token())
        assert state_of(current.session) == ImpersonationState.IMPERSONATING
        assert state_of(None) == ImpersonationState.NORMAL
