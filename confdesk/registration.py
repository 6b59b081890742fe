"""
Registration and two-phase payment workflow.

Registration creates the auth identity and then the `users` row; a failed row
insert deletes the identity again. Payment runs in two phases: `process_payment`
opens a gateway order and records a `created` payment intent, and
`confirm_payment` verifies the checkout callback and marks the payment and the
user paid inside one record-store transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from confdesk.auth import AuthService
from confdesk.config import Settings, get_settings
from confdesk.db import RecordStore
from confdesk.errors import (
    InvalidState,
    NotFound,
    PaymentCancelled,
    Unauthorized,
    ValidationError,
)
from confdesk.identity import AuthProvider
from confdesk.models import Payment, PaymentStatus, User, utc_now_iso
from confdesk.notifications import NotificationService
from confdesk.payments import PaymentGateway, to_minor_units
from confdesk.results import returns_result
from confdesk.validation import (
    check_password,
    is_valid_email,
    is_valid_phone,
    normalize_category,
)

logger = logging.getLogger(__name__)


def matches_fee(amount: float, currency: str, user: User) -> bool:
    return (
        to_minor_units(amount) == to_minor_units(user.registration_fee or 0)
        and (currency or "").upper() == (user.currency or "").upper()
    )


@dataclass
class RegistrationForm:
    full_name: str
    email: str
    phone: str
    category: str
    password: Optional[str] = None
    confirm_password: Optional[str] = None
    amount: float = 0.0
    currency: str = "INR"
    title: Optional[str] = None
    affiliation: Optional[str] = None
    designation: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    newsletter: bool = False

    def validate(self) -> None:
        if not self.full_name or not self.email or not self.phone:
            raise ValidationError("Please fill in all required fields")
        if not is_valid_email(self.email):
            raise ValidationError("Please enter a valid email address")
        if not is_valid_phone(self.phone):
            raise ValidationError("Please enter a valid phone number")
        if not self.category:
            raise ValidationError("Please select a registration category")
        if self.amount is None or self.amount < 0:
            raise ValidationError("Registration fee must not be negative")
        check_password(self.password, self.confirm_password)


@dataclass
class PaymentRequest:
    amount: float
    currency: str = "INR"


@dataclass
class CheckoutSession:
    """Parameters the hosted checkout widget is opened with."""

    key: str
    order_id: str
    payment_id: str
    amount: int
    currency: str
    name: str
    description: str
    prefill: dict = field(default_factory=dict)


@dataclass
class CheckoutCallback:
    order_id: str
    payment_id: str
    signature: str


class RegistrationService:
    def __init__(
        self,
        auth: AuthService,
        provider: AuthProvider,
        store: RecordStore,
        gateway: PaymentGateway,
        notifications: Optional[NotificationService] = None,
        settings: Optional[Settings] = None,
    ):
        self.auth = auth
        self.provider = provider
        self.store = store
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.notifications = notifications or NotificationService(store, self.settings)

    @returns_result("submit_registration")
    def submit_registration(self, form: RegistrationForm) -> User:
        form.validate()
        auth_user = self.provider.sign_up(
            form.email,
            form.password,
            redirect_to=f"{self.settings.site_url.rstrip('/')}{self.settings.login_path}",
        )
        logger.info("Auth account created: %s", auth_user.id)
        try:
            row = self.store.insert(
                "users",
                {
                    "auth_id": auth_user.id,
                    "title": form.title,
                    "full_name": form.full_name.strip(),
                    "email": form.email.strip(),
                    "phone": form.phone,
                    "affiliation": form.affiliation,
                    "designation": form.designation,
                    "address": form.address,
                    "country": form.country,
                    "city": form.city or "",
                    "category": normalize_category(form.category),
                    "registration_fee": float(form.amount),
                    "currency": form.currency,
                    "payment_completed": False,
                    "newsletter_subscribed": bool(form.newsletter),
                },
            )
        except Exception:
            try:
                self.provider.delete_user(auth_user.id)
            except Exception as exc:
                logger.warning("Could not remove orphaned auth account %s: %s", auth_user.id, exc)
            raise

        user = User.from_row(row)
        logger.info("User registered: %s", user.id)
        if self.settings.notify_on_registration:
            self.notifications.registration_confirmation(user)
            self.notifications.admin_new_registration(user)
        return user

    def _payment_by_order(self, order_id: str) -> Payment:
        rows = self.store.select(
            "payments", filters={"transaction_order_id": order_id}, limit=1
        )
        if not rows:
            raise NotFound("Payment not found")
        return Payment.from_row(rows[0])

    @returns_result("process_payment")
    def process_payment(
        self, access_token: Optional[str], request: PaymentRequest
    ) -> CheckoutSession:
        _, profile = self.auth.require_profile(access_token)
        if not isinstance(profile, User):
            raise InvalidState("Only registered participants can pay a registration fee")
        if profile.payment_completed:
            raise InvalidState("Registration fee already paid")
        if request.amount is None or request.amount <= 0:
            raise ValidationError("Payment amount must be positive")
        if not matches_fee(request.amount, request.currency, profile):
            raise ValidationError(
                f"Payment must match the registration fee of {profile.currency} {profile.registration_fee:.2f}"
            )

        order = self.gateway.create_order(
            request.amount,
            request.currency,
            receipt=f"reg_{profile.id}",
            notes={"user_id": profile.id, "category": profile.category or ""},
        )
        row = self.store.insert(
            "payments",
            {
                "user_id": profile.id,
                "user_email": profile.email,
                "amount": float(request.amount),
                "currency": request.currency,
                "category": profile.category,
                "payment_method": self.settings.payment_method,
                "transaction_order_id": order.id,
                "status": PaymentStatus.CREATED.value,
            },
        )
        logger.info("Payment intent %s opened for order %s", row["id"], order.id)
        return CheckoutSession(
            key=self.gateway.key_id,
            order_id=order.id,
            payment_id=row["id"],
            amount=order.amount_minor,
            currency=order.currency,
            name=self.settings.conference_name,
            description=f"Registration Fee - {profile.category}",
            prefill={"name": profile.full_name, "email": profile.email, "contact": profile.phone},
        )

    @returns_result("confirm_payment")
    def confirm_payment(self, callback: CheckoutCallback) -> Payment:
        if not self.gateway.verify_signature(
            callback.order_id, callback.payment_id, callback.signature
        ):
            raise ValidationError("Payment signature verification failed")
        payment = self._payment_by_order(callback.order_id)
        if payment.status == PaymentStatus.COMPLETED.value:
            if payment.transaction_payment_id == callback.payment_id:
                return payment
            raise InvalidState("Order already paid with a different payment")
        if payment.status == PaymentStatus.CANCELLED.value:
            raise InvalidState("Payment was cancelled")
        user_row = self.store.get("users", payment.user_id)
        if user_row is None:
            raise NotFound("User not found")
        if not matches_fee(payment.amount, payment.currency, User.from_row(user_row)):
            raise InvalidState("Paid amount does not match the registration fee")

        with self.store.atomic() as tx:
            row = tx.update(
                "payments",
                payment.id,
                {
                    "status": PaymentStatus.COMPLETED.value,
                    "transaction_payment_id": callback.payment_id,
                    "transaction_signature": callback.signature,
                    "payment_date": utc_now_iso(),
                },
            )
            user_row = tx.update(
                "users",
                payment.user_id,
                {
                    "payment_completed": True,
                    "payment_method": payment.payment_method or self.settings.payment_method,
                },
            )
            if user_row is None:
                raise NotFound("User not found")

        completed = Payment.from_row(row)
        logger.info("Payment %s completed for user %s", completed.id, completed.user_id)
        if self.settings.notify_on_payment:
            self.notifications.payment_confirmation(User.from_row(user_row), completed)
        return completed

    @returns_result("cancel_payment")
    def cancel_payment(self, access_token: Optional[str], order_id: str) -> None:
        """Record a dismissed checkout. Always ends in a PaymentCancelled failure."""
        _, profile = self.auth.require_profile(access_token)
        payment = self._payment_by_order(order_id)
        if payment.user_id != profile.id:
            raise Unauthorized("You can only cancel your own payments")
        if payment.status == PaymentStatus.COMPLETED.value:
            raise InvalidState("Payment already completed")
        self.store.update("payments", payment.id, {"status": PaymentStatus.CANCELLED.value})
        raise PaymentCancelled("Payment cancelled by user")
