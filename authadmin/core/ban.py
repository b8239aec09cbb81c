"""Ban enforcement at session creation.

Bans are checked lazily: nothing sweeps expired bans. Instead every
session-creation attempt for a banned user either lifts an expired ban or
refuses the session.
"""

import logging
from datetime import datetime
from typing import Callable, Optional
from urllib.parse import urlencode

from authadmin.core.errors import AdminErrorCode, BanRedirect, Forbidden
from authadmin.core.interfaces import IdentityStore, SessionCreateContext
from authadmin.core.security import utcnow

logger = logging.getLogger(__name__)

# Social sign-in callbacks cannot render a JSON error
OAUTH_CALLBACK_PREFIXES = ("/callback", "/oauth2/callback")

CLEARED_BAN = {"banned": False, "ban_reason": None, "ban_expires": None}


class BanEnforcementHook:
    """Session-create hook that enforces or lifts account bans.

    Registered on the identity store, it runs before every session row is
    written, including the privileged sessions created for impersonation.
    """

    def __init__(
        self,
        store: IdentityStore,
        settings,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.banned_user_message = settings.banned_user_message
        self.error_url = settings.ban_error_url
        self.clock = clock

    def __call__(self, user_id: str, context: Optional[SessionCreateContext] = None) -> None:
        user = self.store.find_user_by_id(user_id)
        if user is None or not user.banned:
            return

        if user.ban_expires is not None and user.ban_expires < self.clock():
            self.store.update_user(user_id, dict(CLEARED_BAN))
            logger.info("Ban on user %s expired at %s; lifted", user_id, user.ban_expires)
            return

        path = context.path if context else ""
        logger.warning("Refused session for banned user %s (path=%s)", user_id, path or "-")
        if path.startswith(OAUTH_CALLBACK_PREFIXES):
            query = urlencode({"error": "banned", "error_description": self.banned_user_message})
            raise BanRedirect(f"{self.error_url}?{query}")

        raise Forbidden(AdminErrorCode.BANNED_USER, message=self.banned_user_message)
