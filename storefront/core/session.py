from __future__ import annotations

import enum
import json
import logging
import re
from typing import Any, Awaitable, Callable, Optional

from storefront.constants import MIN_PASSWORD_LENGTH, STRONG_PASSWORD_LENGTH, TOKEN_KEY, USER_KEY
from storefront.core.gateway import HttpGateway
from storefront.db.sqlite import KeyValueStorage
from storefront.errors import ApiError
from storefront.models import Session, unwrap
from storefront.utils.validators import validate_registration

logger = logging.getLogger(__name__)


class SignOutReason(enum.Enum):
    LOGOUT = "logout"
    EXPIRED = "expired"  # a live session was rejected by the backend
    REJECTED = "rejected"  # 401 while no session was held (e.g. bad login)


class PasswordStrength(enum.Enum):
    WEAK = "Weak"
    FAIR = "Fair"
    GOOD = "Good"
    STRONG = "Strong"


def password_strength(password: str) -> PasswordStrength:
    if len(password) < MIN_PASSWORD_LENGTH:
        return PasswordStrength.WEAK
    if len(password) < STRONG_PASSWORD_LENGTH:
        return PasswordStrength.FAIR
    if re.search(r"[A-Z]", password) and re.search(r"[0-9]", password) and re.search(r"[^A-Za-z0-9]", password):
        return PasswordStrength.STRONG
    return PasswordStrength.GOOD


class SessionStore:
    """Current session of one shopper, backed by a key-value storage.

    Reads are pure. Only :class:`AuthController` calls ``_write``/``_clear``.
    """

    def __init__(self, storage: KeyValueStorage):
        self._storage = storage
        self._session: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def token(self) -> Optional[str]:
        return self._session.token if self._session else None

    def is_authenticated(self) -> bool:
        return self._session is not None

    def has_role(self, role: str) -> bool:
        return self._session is not None and role in self._session.roles

    def rehydrate(self) -> Optional[Session]:
        """Rebuild the session from storage without asking the backend."""
        token = self._storage.get(TOKEN_KEY)
        raw_user = self._storage.get(USER_KEY)
        profile: Any = None
        if raw_user:
            try:
                profile = json.loads(raw_user)
            except ValueError:
                profile = None

        if not token or not isinstance(profile, dict):
            if token or raw_user:
                logger.warning("Discarding incomplete persisted session")
                self._storage.clear()
            self._session = None
            return None

        self._session = Session.from_profile(profile, token)
        return self._session

    def _write(self, session: Session) -> None:
        if not session.token:
            raise ValueError("session token is empty")
        self._session = session
        # profile first: rehydrate ignores a profile without a token
        self._storage.set(USER_KEY, json.dumps(session.profile()))
        self._storage.set(TOKEN_KEY, session.token)

    def _clear(self) -> None:
        self._session = None
        self._storage.clear()


SignOutListener = Callable[[SignOutReason], Awaitable[None]]


class AuthController:
    def __init__(
        self,
        gateway: HttpGateway,
        store: SessionStore,
        on_signed_out: Optional[SignOutListener] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.on_signed_out = on_signed_out
        gateway.subscribe(self._session_invalidated)

    async def login(self, email: str, password: str) -> Session:
        body = await self.gateway.send("POST", "/auth/login", json={"email": email, "password": password})
        return self._sign_in(body)

    async def register(self, full_name: str, email: str, password: str, confirm_password: str) -> Session:
        validate_registration(password, confirm_password)
        body = await self.gateway.send(
            "POST",
            "/auth/register",
            json={"fullName": full_name, "email": email, "password": password},
        )
        return self._sign_in(body)

    async def logout(self) -> None:
        self.store._clear()
        logger.info("Signed out")
        await self._notify(SignOutReason.LOGOUT)

    def _sign_in(self, body: Any) -> Session:
        data = body if isinstance(body, dict) and body.get("token") else unwrap(body)
        if not isinstance(data, dict) or not data.get("token"):
            raise ApiError(200, "Authentication response carried no token", body)
        session = Session.from_auth_response(data)
        self.store._write(session)
        logger.info("Signed in user_id=%s roles=%s", session.user_id, sorted(session.roles))
        return session

    async def _session_invalidated(self) -> None:
        reason = SignOutReason.EXPIRED if self.store.is_authenticated() else SignOutReason.REJECTED
        self.store._clear()
        await self._notify(reason)

    async def _notify(self, reason: SignOutReason) -> None:
        if self.on_signed_out is not None:
            await self.on_signed_out(reason)
