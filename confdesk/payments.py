"""
Payment gateway clients for the two-phase checkout.

The gateway creates an order before the hosted checkout opens; its callback
carries `(order_id, payment_id, signature)` where the signature is
HMAC-SHA256 of `order_id|payment_id` under the key secret.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import razorpay
import requests
from razorpay import errors as razorpay_errors

from confdesk.errors import UpstreamFailure, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class GatewayOrder:
    id: str
    amount_minor: int
    currency: str
    receipt: Optional[str] = None


def to_minor_units(amount: float) -> int:
    return int(round(float(amount) * 100))


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class PaymentGateway(Protocol):
    key_id: str

    def create_order(
        self, amount: float, currency: str, receipt: str, notes: Optional[dict] = None
    ) -> GatewayOrder:
        ...

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        ...


@dataclass
class InMemoryPaymentGateway:
    """Local gateway double; `sign` produces the callback signature a checkout would."""

    key_id: str = "rzp_test_local"
    key_secret: str = "local-secret"
    orders: dict = field(default_factory=dict)
    fail_next_order: bool = False

    def create_order(
        self, amount: float, currency: str, receipt: str, notes: Optional[dict] = None
    ) -> GatewayOrder:
        if self.fail_next_order:
            self.fail_next_order = False
            raise UpstreamFailure("Payment gateway unavailable")
        order = GatewayOrder(
            id=f"order_{uuid.uuid4().hex[:14]}",
            amount_minor=to_minor_units(amount),
            currency=currency,
            receipt=receipt,
        )
        self.orders[order.id] = order
        return order

    def sign(self, order_id: str, payment_id: str) -> str:
        return compute_signature(self.key_secret, order_id, payment_id)

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return hmac.compare_digest(self.sign(order_id, payment_id), signature or "")


class RazorpayGateway:
    """Razorpay orders client authenticated with the key id and secret."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com",
        timeout: float = 10.0,
    ):
        if not key_id or not key_secret:
            raise ValueError("PAYMENT_KEY_ID and PAYMENT_KEY_SECRET are required")
        self.key_id = key_id
        self.key_secret = key_secret
        self.timeout = timeout
        self.client = razorpay.Client(
            auth=(key_id, key_secret), base_url=base_url.rstrip("/")
        )

    def create_order(
        self, amount: float, currency: str, receipt: str, notes: Optional[dict] = None
    ) -> GatewayOrder:
        amount_minor = to_minor_units(amount)
        if amount_minor <= 0:
            raise ValidationError("Payment amount must be positive")
        order_data = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt[:40],
            "notes": notes or {},
        }
        try:
            payload = self.client.order.create(data=order_data, timeout=self.timeout)
        except (
            razorpay_errors.BadRequestError,
            razorpay_errors.GatewayError,
            razorpay_errors.ServerError,
            requests.RequestException,
        ) as exc:
            raise UpstreamFailure(f"Payment order creation failed: {exc}") from exc
        logger.info("Created payment order %s for receipt %s", payload["id"], receipt)
        return GatewayOrder(
            id=payload["id"],
            amount_minor=int(payload.get("amount", amount_minor)),
            currency=payload.get("currency", currency),
            receipt=payload.get("receipt"),
        )

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        expected = compute_signature(self.key_secret, order_id, payment_id)
        return hmac.compare_digest(expected, signature or "")
