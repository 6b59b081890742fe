"""
Authentication provider abstraction: the hosted GoTrue-style auth API and an in-memory double.

The provider owns credentials and sessions. It answers "who holds this access
token"; role and profile resolution happen in `confdesk.auth`.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests
from werkzeug.security import check_password_hash, generate_password_hash

from confdesk.errors import (
    DuplicateAccount,
    InvalidCredential,
    NotAuthenticated,
    NotFound,
    UpstreamFailure,
    WeakCredential,
)
from confdesk.models import AuthSession, AuthUser

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthProvider(Protocol):
    """Operations the workflows need from the identity service."""

    def sign_up(
        self, email: str, password: str, redirect_to: Optional[str] = None
    ) -> AuthUser:
        ...

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        ...

    def sign_out(self, access_token: str) -> None:
        ...

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        ...

    def reset_password_for_email(
        self, email: str, redirect_to: Optional[str] = None
    ) -> None:
        ...

    def update_password(self, access_token: str, new_password: str) -> AuthUser:
        ...

    def delete_user(self, user_id: str) -> None:
        ...


@dataclass
class InMemoryAuthProvider:
    """Credential store kept in process memory for development and tests."""

    min_password_length: int = MIN_PASSWORD_LENGTH
    accounts: dict = field(default_factory=dict)
    tokens: dict = field(default_factory=dict)
    reset_requests: list = field(default_factory=list)

    def reset(self) -> None:
        self.accounts.clear()
        self.tokens.clear()
        self.reset_requests.clear()

    def _check_strength(self, password: str) -> None:
        if not password or len(password) < self.min_password_length:
            raise WeakCredential(
                f"Password should be at least {self.min_password_length} characters."
            )

    def sign_up(
        self, email: str, password: str, redirect_to: Optional[str] = None
    ) -> AuthUser:
        key = (email or "").strip().lower()
        if key in self.accounts:
            raise DuplicateAccount("User already registered")
        self._check_strength(password)
        account = {
            "id": str(uuid.uuid4()),
            "email": key,
            "password_hash": generate_password_hash(password),
        }
        self.accounts[key] = account
        return AuthUser(id=account["id"], email=account["email"])

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        account = self.accounts.get((email or "").strip().lower())
        if not account or not check_password_hash(account["password_hash"], password or ""):
            raise InvalidCredential("Invalid login credentials")
        token = secrets.token_urlsafe(32)
        self.tokens[token] = account["id"]
        return AuthSession(
            access_token=token,
            refresh_token=secrets.token_urlsafe(16),
            expires_in=3600,
            user=AuthUser(id=account["id"], email=account["email"]),
        )

    def _account_by_id(self, user_id: str) -> Optional[dict]:
        for account in self.accounts.values():
            if account["id"] == user_id:
                return account
        return None

    def sign_out(self, access_token: str) -> None:
        self.tokens.pop(access_token, None)

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        user_id = self.tokens.get(access_token or "")
        account = self._account_by_id(user_id) if user_id else None
        if not account:
            return None
        return AuthUser(id=account["id"], email=account["email"])

    def reset_password_for_email(
        self, email: str, redirect_to: Optional[str] = None
    ) -> None:
        self.reset_requests.append({"email": email, "redirect_to": redirect_to})

    def update_password(self, access_token: str, new_password: str) -> AuthUser:
        user = self.get_user(access_token)
        if not user:
            raise NotAuthenticated("Auth session missing!")
        self._check_strength(new_password)
        self.accounts[user.email]["password_hash"] = generate_password_hash(new_password)
        return user

    def delete_user(self, user_id: str) -> None:
        account = self._account_by_id(user_id)
        if not account:
            raise NotFound(f"User {user_id} not found")
        del self.accounts[account["email"]]
        for token, owner in list(self.tokens.items()):
            if owner == user_id:
                del self.tokens[token]


def _error_message(payload: dict) -> str:
    for key in ("msg", "message", "error_description", "error"):
        if payload.get(key):
            return str(payload[key])
    return "Unknown auth error"


class HostedAuthProvider:
    """
    Client for a GoTrue-compatible auth REST API (e.g. `<project>/auth/v1`).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        service_key: Optional[str] = None,
        timeout: float = 10.0,
    ):
        if not base_url or not api_key:
            raise ValueError("AUTH_URL and AUTH_API_KEY are required for HostedAuthProvider")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.service_key = service_key
        self.timeout = timeout
        self.http = requests.Session()
        self.http.headers.update({"apikey": api_key, "Content-Type": "application/json"})

    def _request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> requests.Response:
        headers = {"Authorization": f"Bearer {token or self.api_key}"}
        try:
            return self.http.request(
                method,
                f"{self.base_url}/auth/v1{path}",
                headers=headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamFailure(f"Auth service unreachable: {exc}") from exc

    @staticmethod
    def _payload(response: requests.Response) -> dict:
        try:
            return response.json() or {}
        except ValueError:
            return {}

    def _raise_for_error(self, response: requests.Response) -> None:
        if response.ok:
            return
        payload = self._payload(response)
        message = _error_message(payload)
        error_code = str(payload.get("error_code") or payload.get("error") or "")
        lowered = message.lower()
        if error_code == "user_already_exists" or "already registered" in lowered:
            raise DuplicateAccount(message)
        if error_code == "weak_password" or "password should" in lowered:
            raise WeakCredential(message)
        if error_code in ("invalid_credentials", "invalid_grant") or "invalid login" in lowered:
            raise InvalidCredential(message)
        if response.status_code == 401:
            raise NotAuthenticated(message)
        if response.status_code == 404:
            raise NotFound(message)
        raise UpstreamFailure(f"Auth service error ({response.status_code}): {message}")

    @staticmethod
    def _to_user(payload: dict) -> AuthUser:
        user = payload.get("user") if "user" in payload else payload
        if not user or not user.get("id"):
            raise UpstreamFailure("Auth service returned no user")
        return AuthUser(id=user["id"], email=user.get("email") or "")

    def sign_up(
        self, email: str, password: str, redirect_to: Optional[str] = None
    ) -> AuthUser:
        params = {"redirect_to": redirect_to} if redirect_to else None
        response = self._request(
            "POST", "/signup", params=params, json={"email": email, "password": password}
        )
        self._raise_for_error(response)
        return self._to_user(self._payload(response))

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        self._raise_for_error(response)
        payload = self._payload(response)
        return AuthSession(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=payload.get("expires_in"),
            user=self._to_user(payload),
        )

    def sign_out(self, access_token: str) -> None:
        response = self._request("POST", "/logout", token=access_token)
        if response.status_code in (401, 403, 404):
            # Session already gone on the server side.
            return
        self._raise_for_error(response)

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        if not access_token:
            return None
        response = self._request("GET", "/user", token=access_token)
        if response.status_code in (401, 403):
            return None
        self._raise_for_error(response)
        return self._to_user(self._payload(response))

    def reset_password_for_email(
        self, email: str, redirect_to: Optional[str] = None
    ) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        response = self._request("POST", "/recover", params=params, json={"email": email})
        self._raise_for_error(response)

    def update_password(self, access_token: str, new_password: str) -> AuthUser:
        response = self._request(
            "PUT", "/user", token=access_token, json={"password": new_password}
        )
        self._raise_for_error(response)
        return self._to_user(self._payload(response))

    def delete_user(self, user_id: str) -> None:
        if not self.service_key:
            raise UpstreamFailure("AUTH_SERVICE_KEY is required to delete users")
        response = self._request("DELETE", f"/admin/users/{user_id}", token=self.service_key)
        self._raise_for_error(response)
