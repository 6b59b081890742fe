"""
Input validation and category normalization for registration and submission forms.
"""

from __future__ import annotations

import os
import re
from typing import Iterable, Optional

from confdesk.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[+]?[\d\s\-()]{10,15}$")

DEFAULT_ALLOWED_EXTENSIONS = (".pdf", ".doc", ".docx")
DEFAULT_MAX_UPLOAD_MB = 10
MIN_PASSWORD_LENGTH = 6

# Values accepted by the users.category check constraint.
CATEGORY_ALIASES = {
    "scholar": "student",
    "expert": "scientist",
}


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def is_valid_phone(phone: Optional[str]) -> bool:
    return bool(phone) and bool(PHONE_PATTERN.match(phone))


def file_extension(file_name: str) -> str:
    return os.path.splitext(file_name or "")[1].lower()


def is_valid_file_type(
    file_name: str, allowed: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS
) -> bool:
    extension = file_extension(file_name)
    return bool(extension) and extension in {ext.lower() for ext in allowed}


def is_valid_file_size(size_bytes: int, max_size_mb: int = DEFAULT_MAX_UPLOAD_MB) -> bool:
    return size_bytes <= max_size_mb * 1024 * 1024


def normalize_category(category: Optional[str]) -> Optional[str]:
    """
    Collapse form category values onto the stored category enum.

    `listener_*` -> `listener`, `scholar` -> `student`, `expert` -> `scientist`;
    anything else passes through unchanged.
    """
    if category is None:
        return None
    if category.startswith("listener_"):
        return "listener"
    return CATEGORY_ALIASES.get(category, category)


def check_password(password: Optional[str], confirm: Optional[str] = None) -> None:
    if not password:
        raise ValidationError("Password is required for registration")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if confirm is not None and password != confirm:
        raise ValidationError("Passwords do not match")


def check_upload(
    file_name: str,
    size_bytes: int,
    *,
    allowed: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
    max_size_mb: int = DEFAULT_MAX_UPLOAD_MB,
) -> None:
    allowed = tuple(allowed)
    if not is_valid_file_type(file_name, allowed):
        names = ", ".join(ext.lstrip(".").upper() for ext in allowed)
        raise ValidationError(f"Invalid file type. Please upload {names} files only.")
    if not is_valid_file_size(size_bytes, max_size_mb):
        raise ValidationError(f"File size exceeds {max_size_mb} MB limit")
