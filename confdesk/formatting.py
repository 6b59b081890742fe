"""
Display formatting for dates, money, file sizes and paper statuses.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Union

from confdesk.models import PaperStatus

DateLike = Union[str, datetime, date, None]

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

STATUS_BADGES = {
    PaperStatus.PENDING: "warning",
    PaperStatus.UNDER_REVIEW: "info",
    PaperStatus.ACCEPTED: "success",
    PaperStatus.REJECTED: "danger",
    PaperStatus.REVISION_REQUIRED: "secondary",
}


def _to_datetime(value: DateLike) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def format_date(value: DateLike) -> str:
    """`2026-03-31` -> `31 March 2026`; empty input -> `N/A`."""
    moment = _to_datetime(value)
    if moment is None:
        return "N/A"
    return f"{moment.day} {moment:%B %Y}"


def format_datetime(value: DateLike) -> str:
    moment = _to_datetime(value)
    if moment is None:
        return "N/A"
    return f"{moment.day} {moment:%b %Y, %I:%M %p}"


def relative_time(value: DateLike, now: Optional[datetime] = None) -> str:
    moment = _to_datetime(value)
    if moment is None:
        return "N/A"
    if now is None:
        now = datetime.now(timezone.utc) if moment.tzinfo else datetime.now()
    seconds = int((now - moment).total_seconds())
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400

    def plural(count: int, unit: str) -> str:
        return f"{count} {unit}{'s' if count > 1 else ''} ago"

    if seconds < 60:
        return "Just now"
    if minutes < 60:
        return plural(minutes, "minute")
    if hours < 24:
        return plural(hours, "hour")
    if days < 30:
        return plural(days, "day")
    return format_date(moment)


def _group_indian(integer_part: str) -> str:
    # Lakh/crore grouping: last three digits, then pairs.
    if len(integer_part) <= 3:
        return integer_part
    head, tail = integer_part[:-3], integer_part[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_currency(amount: Optional[float], currency: str = "INR") -> str:
    if amount is None:
        return "N/A"
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    negative = amount < 0
    integer_part, fraction = f"{abs(amount):.2f}".split(".")
    formatted = f"{_group_indian(integer_part)}.{fraction}"
    return f"{symbol} {'-' if negative else ''}{formatted}"


def format_file_size(size_bytes: Optional[int]) -> str:
    if not size_bytes:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value, index = float(size_bytes), 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"


def capitalize(text: Optional[str]) -> str:
    if not text:
        return ""
    return text[0].upper() + text[1:]


def status_label(status: str) -> str:
    """Human label for a paper status. Unknown statuses raise ValidationError."""
    return capitalize(PaperStatus.parse(status).value.replace("_", " "))


def status_badge(status: str) -> str:
    return STATUS_BADGES[PaperStatus.parse(status)]


def truncate_text(text: Optional[str], max_length: int = 50) -> str:
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."
