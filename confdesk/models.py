"""
Domain records for registrations, papers, payments and the audit trail.

Rows travel through the record store as plain dicts keyed by column name; these
dataclasses are the typed view the workflow services work with.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from confdesk.errors import ValidationError


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PaperStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    REVISION_REQUIRED = "revision_required"

    @classmethod
    def parse(cls, value: Any) -> "PaperStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(status.value for status in cls)
            raise ValidationError(
                f"Invalid paper status '{value}'. Expected one of: {allowed}"
            ) from None


class PaymentStatus(str, Enum):
    CREATED = "created"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class _Record:
    """Shared row conversion for the dataclass records below."""

    @classmethod
    def from_row(cls, row: dict):
        names = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in row.items() if key in names})

    def as_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data


@dataclass
class User(_Record):
    id: str
    auth_id: Optional[str]
    full_name: str
    email: str
    title: Optional[str] = None
    phone: Optional[str] = None
    affiliation: Optional[str] = None
    designation: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    category: Optional[str] = None
    registration_fee: float = 0.0
    currency: str = "INR"
    payment_completed: bool = False
    payment_method: Optional[str] = None
    newsletter_subscribed: bool = False
    is_deleted: bool = False
    created_at: Optional[str] = None


@dataclass
class Admin(_Record):
    id: str
    auth_id: Optional[str]
    full_name: str
    email: str
    role: str = "admin"
    is_active: bool = True


Profile = Union[User, Admin]


@dataclass
class Paper(_Record):
    id: str
    user_id: str
    paper_title: str
    file_name: str
    file_url: str
    file_size_bytes: int
    status: str = PaperStatus.PENDING.value
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    abstract: str = ""
    keywords: list[str] = field(default_factory=list)
    reviewed_by: Optional[str] = None
    reviewer_name: Optional[str] = None
    review_date: Optional[str] = None
    review_comments: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == PaperStatus.PENDING.value


@dataclass
class Payment(_Record):
    id: str
    user_id: str
    amount: float
    currency: str
    status: str
    user_email: Optional[str] = None
    category: Optional[str] = None
    payment_method: Optional[str] = None
    transaction_order_id: Optional[str] = None
    transaction_payment_id: Optional[str] = None
    transaction_signature: Optional[str] = None
    payment_date: Optional[str] = None


@dataclass
class ActivityLog(_Record):
    id: str
    action_type: str
    admin_id: Optional[str] = None
    actor_email: Optional[str] = None
    actor_role: Optional[str] = None
    action_description: Optional[str] = None
    target_table: Optional[str] = None
    target_id: Optional[str] = None
    new_data: Optional[dict] = None
    created_at: Optional[str] = None


@dataclass
class EmailNotification(_Record):
    id: str
    recipient_email: str
    subject: str
    body: str
    type: str = "general"
    status: str = "opened_client"
    recipient_name: Optional[str] = None
    sent_at: Optional[str] = None


# Identities resolved from an access token.


@dataclass
class AuthUser:
    id: str
    email: str


@dataclass
class AuthSession:
    access_token: str
    user: AuthUser
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


@dataclass
class UserIdentity:
    auth: AuthUser
    profile: User
    kind: str = "user"


@dataclass
class AdminIdentity:
    auth: AuthUser
    profile: Admin
    kind: str = "admin"


@dataclass
class Unresolved:
    auth: Optional[AuthUser] = None
    kind: str = "unresolved"


Identity = Union[UserIdentity, AdminIdentity, Unresolved]
