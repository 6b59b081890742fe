"""
Pydantic schemas for the conference API.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class Envelope(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = None


class CredentialsPayload(BaseModel):
    email: str = Field(..., max_length=320)
    password: str


class ResetPasswordPayload(BaseModel):
    email: str = Field(..., max_length=320)


class UpdatePasswordPayload(BaseModel):
    new_password: str


class RegistrationPayload(BaseModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    category: str = ""
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


class CheckoutPayload(BaseModel):
    amount: float
    currency: str = "INR"


class ConfirmPaymentPayload(BaseModel):
    order_id: str
    payment_id: str
    signature: str


class CancelPaymentPayload(BaseModel):
    order_id: str


class StatusUpdatePayload(BaseModel):
    status: str
    comments: str = ""


class PaymentOverridePayload(BaseModel):
    payment_completed: bool
