from typing import Generator, Optional

from fastapi import Depends, Request, Response

from authadmin.api.cookies import ResponseCookieController
from authadmin.core.ban import BanEnforcementHook
from authadmin.core.config import Settings, get_settings
from authadmin.core.errors import Unauthorized
from authadmin.core.interfaces import SessionCreateContext
from authadmin.core.records import SessionWithUser
from authadmin.core.service import AdminService
from authadmin.db.session import get_session_factory
from authadmin.db.store import SqlIdentityStore


def get_db(settings: Settings = Depends(get_settings)) -> Generator:
    """Database session dependency."""
    db = get_session_factory(settings.database_url)()
    try:
        yield db
    finally:
        db.close()


def get_store(
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SqlIdentityStore:
    """Identity store with ban enforcement on every session creation."""
    store = SqlIdentityStore.from_settings(db, settings)
    store.register_session_hook(BanEnforcementHook(store, settings))
    return store


def get_admin_service(
    store: SqlIdentityStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> AdminService:
    return AdminService(store, settings)


def get_cookies(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
) -> ResponseCookieController:
    return ResponseCookieController(request, response, settings)


def get_session_context(request: Request) -> SessionCreateContext:
    return SessionCreateContext(
        path=request.url.path,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_optional_session(
    cookies: ResponseCookieController = Depends(get_cookies),
    store: SqlIdentityStore = Depends(get_store),
) -> Optional[SessionWithUser]:
    """Session resolved from the session cookie, if any."""
    token = cookies.get_session_token()
    return store.find_session(token) if token else None


def get_current_session(
    session: Optional[SessionWithUser] = Depends(get_optional_session),
) -> SessionWithUser:
    """Session required; 401 otherwise."""
    if session is None:
        raise Unauthorized()
    return session
