"""
Auth service: sign-up, login/logout, password flows, role resolution and page guards.

Role decisions rest on one primitive, `is_admin`: an identity is an admin if
and only if an active row in `admins` carries its auth id. Profile lookups try
`users` first and fall back to `admins`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from confdesk.cache import KeyValueCache
from confdesk.config import Settings, get_settings
from confdesk.db import RecordStore
from confdesk.errors import (
    IncompleteProfile,
    NotAuthenticated,
    Unauthorized,
    ValidationError,
)
from confdesk.identity import AuthProvider
from confdesk.models import (
    Admin,
    AdminIdentity,
    AuthSession,
    AuthUser,
    Identity,
    Profile,
    Unresolved,
    User,
    UserIdentity,
)
from confdesk.results import returns_result
from confdesk.validation import check_password, is_valid_email

logger = logging.getLogger(__name__)


def session_key(access_token: str) -> str:
    return f"session:{access_token}"


@dataclass
class GuardResult:
    """Outcome of a page guard; a denied guard carries where to send the user and when."""

    allowed: bool
    redirect_to: Optional[str] = None
    delay_seconds: float = 0.0
    message: Optional[str] = None
    status_code: int = 200


@dataclass
class LoginOutcome:
    session: AuthSession
    is_admin: bool
    profile: Optional[Profile]


class AuthService:
    def __init__(
        self,
        provider: AuthProvider,
        store: RecordStore,
        cache: KeyValueCache,
        settings: Optional[Settings] = None,
    ):
        self.provider = provider
        self.store = store
        self.cache = cache
        self.settings = settings or get_settings()

    def _login_url(self) -> str:
        return f"{self.settings.site_url.rstrip('/')}{self.settings.login_path}"

    # Identity lookups

    def current_user(self, access_token: Optional[str]) -> Optional[AuthUser]:
        """Session cache first, then the provider's session lookup."""
        if not access_token:
            return None
        cached = self.cache.get(session_key(access_token))
        if cached:
            return AuthUser(id=cached["id"], email=cached["email"])
        user = self.provider.get_user(access_token)
        if user:
            self.cache.set(
                session_key(access_token),
                {"id": user.id, "email": user.email},
                self.settings.session_ttl_seconds,
            )
        return user

    def is_logged_in(self, access_token: Optional[str]) -> bool:
        return self.current_user(access_token) is not None

    def _active_admin_row(self, auth_id: str) -> Optional[Admin]:
        rows = self.store.select(
            "admins", filters={"auth_id": auth_id, "is_active": True}, limit=1
        )
        return Admin.from_row(rows[0]) if rows else None

    def is_admin(self, access_token: Optional[str]) -> Optional[Admin]:
        user = self.current_user(access_token)
        if not user:
            return None
        return self._active_admin_row(user.id)

    def get_current_user_record(self, access_token: Optional[str]) -> Optional[Profile]:
        """Return the caller's User row, else their Admin row, else None (registration incomplete)."""
        user = self.current_user(access_token)
        if not user:
            return None
        users = self.store.select(
            "users", filters={"auth_id": user.id, "is_deleted": False}, limit=1
        )
        if users:
            return User.from_row(users[0])
        admins = self.store.select("admins", filters={"auth_id": user.id}, limit=1)
        if admins:
            return Admin.from_row(admins[0])
        return None

    def resolve_identity(self, access_token: Optional[str]) -> Identity:
        try:
            user = self.current_user(access_token)
            if not user:
                return Unresolved()
            profile = self.get_current_user_record(access_token)
        except Exception as exc:
            logger.warning("Could not resolve identity: %s", exc)
            return Unresolved()
        if isinstance(profile, User):
            return UserIdentity(auth=user, profile=profile)
        if isinstance(profile, Admin) and profile.is_active:
            return AdminIdentity(auth=user, profile=profile)
        return Unresolved(auth=user)

    def require_profile(self, access_token: Optional[str]) -> tuple[AuthUser, Profile]:
        user = self.current_user(access_token)
        if not user:
            raise NotAuthenticated("Please log in to continue")
        profile = self.get_current_user_record(access_token)
        if profile is None:
            raise IncompleteProfile(
                "User record not found. Please complete registration first."
            )
        return user, profile

    def require_admin_profile(self, access_token: Optional[str]) -> Admin:
        if not self.is_logged_in(access_token):
            raise NotAuthenticated("Please log in to continue")
        admin = self.is_admin(access_token)
        if not admin:
            raise Unauthorized("Unauthorized: Admin access required")
        return admin

    # Guards

    def require_auth(
        self, access_token: Optional[str], redirect_to: Optional[str] = None
    ) -> GuardResult:
        try:
            if self.is_logged_in(access_token):
                return GuardResult(allowed=True)
        except Exception as exc:
            logger.warning("Session check failed, treating caller as logged out: %s", exc)
        return GuardResult(
            allowed=False,
            redirect_to=redirect_to or self.settings.login_path,
            delay_seconds=self.settings.redirect_delay_seconds,
            message="Please log in to access this page",
            status_code=401,
        )

    def require_admin(
        self, access_token: Optional[str], redirect_to: Optional[str] = None
    ) -> GuardResult:
        try:
            if self.is_admin(access_token):
                return GuardResult(allowed=True)
        except Exception as exc:
            logger.warning("Admin check failed, denying access: %s", exc)
        return GuardResult(
            allowed=False,
            redirect_to=redirect_to or self.settings.home_path,
            delay_seconds=self.settings.redirect_delay_seconds,
            message="Admin access required",
            status_code=403,
        )

    # Account operations

    @returns_result("sign_up")
    def sign_up(self, email: str, password: str) -> AuthUser:
        if not is_valid_email(email):
            raise ValidationError("Please enter a valid email address")
        user = self.provider.sign_up(email, password, redirect_to=self._login_url())
        logger.info("Signed up auth identity %s", user.id)
        return user

    @returns_result("login")
    def login(self, email: str, password: str) -> LoginOutcome:
        if not email or not password:
            raise ValidationError("Please fill in all fields")
        if not is_valid_email(email):
            raise ValidationError("Please enter a valid email address")
        session = self.provider.sign_in_with_password(email, password)
        self.cache.set(
            session_key(session.access_token),
            {"id": session.user.id, "email": session.user.email},
            self.settings.session_ttl_seconds,
        )
        admin = self._active_admin_row(session.user.id)
        profile = self.get_current_user_record(session.access_token)
        logger.info(
            "Login for %s (admin=%s, profile=%s)",
            session.user.id,
            bool(admin),
            type(profile).__name__ if profile else None,
        )
        return LoginOutcome(session=session, is_admin=bool(admin), profile=profile)

    @returns_result("logout")
    def logout(self, access_token: Optional[str]) -> dict:
        if access_token:
            try:
                self.cache.delete(session_key(access_token))
            finally:
                self.provider.sign_out(access_token)
        return {"redirect_to": self.settings.login_path}

    @returns_result("reset_password")
    def reset_password(self, email: str) -> None:
        if not is_valid_email(email):
            raise ValidationError("Please enter a valid email address")
        self.provider.reset_password_for_email(email, redirect_to=self._login_url())

    @returns_result("update_password")
    def update_password(self, access_token: Optional[str], new_password: str) -> AuthUser:
        if not self.is_logged_in(access_token):
            raise NotAuthenticated("Please log in to continue")
        check_password(new_password)
        return self.provider.update_password(access_token, new_password)
