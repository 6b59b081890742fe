import unittest
from datetime import datetime, timedelta, timezone

from confdesk.errors import ValidationError
from confdesk.formatting import (
    capitalize,
    format_currency,
    format_date,
    format_datetime,
    format_file_size,
    relative_time,
    status_badge,
    status_label,
    truncate_text,
)


class FormattingTests(unittest.TestCase):
    def test_dates(self):
        self.assertEqual(format_date("2026-03-31"), "31 March 2026")
        self.assertEqual(format_date("2026-03-05T10:00:00Z"), "5 March 2026")
        self.assertEqual(format_date(None), "N/A")
        self.assertEqual(format_datetime("2026-03-31T14:05:00"), "31 Mar 2026, 02:05 PM")
        self.assertEqual(format_datetime(""), "N/A")

    def test_relative_time(self):
        now = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(relative_time(now - timedelta(seconds=5), now), "Just now")
        self.assertEqual(relative_time(now - timedelta(minutes=1), now), "1 minute ago")
        self.assertEqual(relative_time(now - timedelta(hours=3), now), "3 hours ago")
        self.assertEqual(relative_time(now - timedelta(days=2), now), "2 days ago")
        self.assertEqual(relative_time(now - timedelta(days=45), now), "14 February 2026")

    def test_currency(self):
        self.assertEqual(format_currency(100000), "₹ 1,00,000.00")
        self.assertEqual(format_currency(2500, "INR"), "₹ 2,500.00")
        self.assertEqual(format_currency(12345678.5, "INR"), "₹ 1,23,45,678.50")
        self.assertEqual(format_currency(40, "USD"), "$ 40.00")
        self.assertEqual(format_currency(5, "JPY"), "JPY 5.00")
        self.assertEqual(format_currency(None), "N/A")

    def test_file_size(self):
        self.assertEqual(format_file_size(0), "0 Bytes")
        self.assertEqual(format_file_size(512), "512 Bytes")
        self.assertEqual(format_file_size(1536), "1.5 KB")
        self.assertEqual(format_file_size(2097152), "2 MB")
        self.assertEqual(format_file_size(1024 ** 3), "1 GB")

    def test_status_labels(self):
        self.assertEqual(status_label("under_review"), "Under review")
        self.assertEqual(status_label("revision_required"), "Revision required")
        self.assertEqual(status_badge("accepted"), "success")
        self.assertEqual(status_badge("pending"), "warning")
        with self.assertRaises(ValidationError):
            status_label("approved")
        with self.assertRaises(ValidationError):
            status_badge("")

    def test_text_helpers(self):
        self.assertEqual(capitalize("student"), "Student")
        self.assertEqual(capitalize(None), "")
        self.assertEqual(truncate_text("short"), "short")
        self.assertEqual(truncate_text("x" * 60, 10), "x" * 10 + "...")
        self.assertEqual(truncate_text(None), "")


if __name__ == "__main__":
    unittest.main()
