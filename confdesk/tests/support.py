"""
Shared wiring for service-level tests: every gateway is the in-memory one.
"""

from __future__ import annotations

from confdesk.activity import ActivityLogger
from confdesk.admin import AdminService
from confdesk.auth import AuthService
from confdesk.cache import InMemoryCache
from confdesk.config import Settings
from confdesk.db import InMemoryRecordStore
from confdesk.identity import InMemoryAuthProvider
from confdesk.models import Admin, User
from confdesk.notifications import NotificationService
from confdesk.payments import InMemoryPaymentGateway
from confdesk.registration import RegistrationForm, RegistrationService
from confdesk.storage import InMemoryStorageClient
from confdesk.submissions import SubmissionService

PASSWORD = "secret123"


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, use_in_memory_backends=True, **overrides)


class Backend:
    """All services wired over fresh in-memory gateways."""

    def __init__(self, **settings_overrides):
        self.settings = make_settings(**settings_overrides)
        self.store = InMemoryRecordStore()
        self.storage = InMemoryStorageClient()
        self.cache = InMemoryCache()
        self.provider = InMemoryAuthProvider()
        self.gateway = InMemoryPaymentGateway()
        self.auth = AuthService(self.provider, self.store, self.cache, self.settings)
        self.notifications = NotificationService(self.store, self.settings)
        self.activity = ActivityLogger(self.store)
        self.submissions = SubmissionService(
            self.auth,
            self.store,
            self.storage,
            self.cache,
            self.notifications,
            self.settings,
        )
        self.admin = AdminService(
            self.auth,
            self.store,
            self.storage,
            self.notifications,
            self.activity,
            self.settings,
        )
        self.registrations = RegistrationService(
            self.auth,
            self.provider,
            self.store,
            self.gateway,
            self.notifications,
            self.settings,
        )

    def registration_form(self, email: str = "author@example.com", **overrides) -> RegistrationForm:
        values = dict(
            full_name="Asha Rao",
            email=email,
            phone="+91 9876543210",
            category="scholar",
            password=PASSWORD,
            confirm_password=PASSWORD,
            amount=2500.0,
            currency="INR",
            title="Dr.",
            affiliation="SASI Institute",
            designation="Research Scholar",
        )
        values.update(overrides)
        return RegistrationForm(**values)

    def login(self, email: str, password: str = PASSWORD) -> str:
        return self.auth.login(email, password).unwrap().session.access_token

    def register_user(self, email: str = "author@example.com", **overrides) -> tuple[User, str]:
        user = self.registrations.submit_registration(
            self.registration_form(email, **overrides)
        ).unwrap()
        return user, self.login(email)

    def create_admin(
        self, email: str = "admin@example.com", *, is_active: bool = True
    ) -> tuple[Admin, str]:
        auth_user = self.provider.sign_up(email, PASSWORD)
        row = self.store.insert(
            "admins",
            {
                "auth_id": auth_user.id,
                "full_name": "Conference Chair",
                "email": email,
                "role": "admin",
                "is_active": is_active,
            },
        )
        return Admin.from_row(row), self.login(email)

    def records(self, table: str) -> list[dict]:
        return self.store.select(table)
