"""
Notification composition and the mail-client hand-off.

Sending a notification records it in `email_notifications` and returns a
`mailto:` link pre-filled with subject and body; delivery is left to the
recipient's own mail client. This is not a guaranteed-delivery channel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from confdesk.config import Settings, get_settings
from confdesk.db import RecordStore
from confdesk.formatting import (
    capitalize,
    format_currency,
    format_datetime,
    format_file_size,
    status_label,
)
from confdesk.models import EmailNotification, Paper, Payment, User, utc_now_iso

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "accepted": "Congratulations! Your paper has been ACCEPTED for presentation at {conference}.",
    "rejected": "We regret to inform you that your paper has been rejected.",
    "under_review": "Your paper is currently under review.",
    "revision_required": "Your paper requires revisions. Please review the comments and resubmit.",
}


@dataclass
class Notification:
    recipient_email: str
    subject: str
    body: str
    type: str
    mailto: str
    record: Optional[EmailNotification] = None

    @property
    def logged(self) -> bool:
        return self.record is not None


def mailto_link(email: str, subject: str, body: str) -> str:
    return f"mailto:{email}?subject={quote(subject)}&body={quote(body)}"


def _salutation(title: Optional[str], name: Optional[str]) -> str:
    return " ".join(part for part in (title, name) if part) or "Participant"


class NotificationService:
    def __init__(self, store: RecordStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    @property
    def _conference(self) -> str:
        return self.settings.conference_name

    def _url(self, path: str) -> str:
        return f"{self.settings.site_url.rstrip('/')}{path}"

    def _signature(self) -> str:
        return (
            f"For any queries, please contact us at: {self.settings.admin_email}\n\n"
            f"Best regards,\n{self._conference} Organizing Committee"
        )

    def _record(
        self,
        recipient_email: str,
        recipient_name: str,
        subject: str,
        body: str,
        notification_type: str,
    ) -> Optional[EmailNotification]:
        try:
            row = self.store.insert(
                "email_notifications",
                {
                    "recipient_email": recipient_email,
                    "recipient_name": recipient_name,
                    "subject": subject,
                    "body": body,
                    "type": notification_type,
                    "status": "opened_client",
                    "sent_at": utc_now_iso(),
                },
            )
        except Exception as exc:
            logger.warning("Could not record notification to %s: %s", recipient_email, exc)
            return None
        return EmailNotification.from_row(row)

    def send_user_notification(
        self,
        email: str,
        *,
        subject: str,
        body: str,
        notification_type: str = "general",
        recipient_name: str = "",
    ) -> Notification:
        record = self._record(email, recipient_name, subject, body, notification_type)
        logger.info("Prepared %s notification for %s", notification_type, email)
        return Notification(
            recipient_email=email,
            subject=subject,
            body=body,
            type=notification_type,
            mailto=mailto_link(email, subject, body),
            record=record,
        )

    def send_admin_notification(
        self, *, subject: str, body: str, notification_type: str = "alert"
    ) -> Notification:
        email = self.settings.admin_email
        full_type = f"admin_{notification_type}"
        record = self._record(email, "Admin", subject, body, full_type)
        return Notification(
            recipient_email=email,
            subject=subject,
            body=body,
            type=full_type,
            mailto=mailto_link(email, subject, body),
            record=record,
        )

    # Message builders

    def paper_status_update(self, paper: Paper, owner: Optional[User] = None) -> Optional[Notification]:
        email = owner.email if owner else paper.user_email
        if not email:
            logger.warning("No user email found for paper %s", paper.id)
            return None
        name = owner.full_name if owner else paper.user_name
        opening = STATUS_MESSAGES.get(
            paper.status, "Your paper status has been updated."
        ).format(conference=self._conference)
        comments = (
            f"\nReviewer Comments:\n{paper.review_comments}\n" if paper.review_comments else ""
        )
        body = (
            f"Dear {_salutation(owner.title if owner else None, name)},\n\n"
            f"{opening}\n\n"
            "Paper Details:\n"
            f"- Title: {paper.paper_title}\n"
            f"- Submission ID: {paper.id}\n"
            f"- New Status: {status_label(paper.status)}\n"
            f"- Review Date: {format_datetime(paper.review_date)}\n"
            f"{comments}\n"
            "You can view your submission details by logging into your account at:\n"
            f"{self._url('/papersubmission.html')}\n\n"
            f"{self._signature()}"
        )
        return self.send_user_notification(
            email,
            subject=f"Paper Status Update - {self._conference}",
            body=body,
            notification_type="paper_status_update",
            recipient_name=name or "",
        )

    def paper_submission_confirmation(self, owner: User, paper: Paper) -> Notification:
        body = (
            f"Dear {_salutation(owner.title, owner.full_name)},\n\n"
            f"Your paper has been successfully submitted to {self._conference}!\n\n"
            "Paper Details:\n"
            f"- Title: {paper.paper_title}\n"
            f"- Submission ID: {paper.id}\n"
            f"- Submission Date: {format_datetime(paper.created_at)}\n"
            f"- File Size: {format_file_size(paper.file_size_bytes)}\n\n"
            "Your paper is now under review. You will be notified once the review "
            "process is complete.\n\n"
            f"{self._signature()}"
        )
        return self.send_user_notification(
            owner.email,
            subject=f"Paper Submission Received - {self._conference}",
            body=body,
            notification_type="paper_submission_confirmation",
            recipient_name=owner.full_name,
        )

    def admin_new_submission(self, owner: User, paper: Paper) -> Notification:
        body = (
            "New paper submission received:\n\n"
            f"Submitted By: {_salutation(owner.title, owner.full_name)}\n"
            f"Email: {owner.email}\n"
            f"Phone: {owner.phone or ''}\n"
            f"Affiliation: {owner.affiliation or ''}\n\n"
            "Paper Details:\n"
            f"- Title: {paper.paper_title}\n"
            f"- Submission ID: {paper.id}\n"
            f"- File Name: {paper.file_name}\n"
            f"- File Size: {format_file_size(paper.file_size_bytes)}\n"
            f"- Submission Date: {format_datetime(paper.created_at)}\n\n"
            f"Abstract:\n{paper.abstract}\n\n"
            f"Please review this submission in the admin dashboard:\n{self._url('/admin.html')}"
        )
        return self.send_admin_notification(
            subject=f"New Paper Submission - {self._conference}",
            body=body,
            notification_type="new_paper_submission",
        )

    def registration_confirmation(self, user: User) -> Notification:
        payment_line = (
            "Your payment has been received and confirmed."
            if user.payment_completed
            else "Please complete your payment to finalize your registration."
        )
        body = (
            f"Dear {_salutation(user.title, user.full_name)},\n\n"
            f"Thank you for registering for {self._conference}!\n\n"
            "Registration Details:\n"
            f"- Name: {user.full_name}\n"
            f"- Email: {user.email}\n"
            f"- Category: {capitalize(user.category)}\n"
            f"- Registration Fee: {format_currency(user.registration_fee, user.currency)}\n\n"
            f"{payment_line}\n\n"
            f"{self._signature()}"
        )
        return self.send_user_notification(
            user.email,
            subject=f"Registration Confirmation - {self._conference}",
            body=body,
            notification_type="registration_confirmation",
            recipient_name=user.full_name,
        )

    def admin_new_registration(self, user: User) -> Notification:
        body = (
            "New registration received:\n\n"
            f"Name: {_salutation(user.title, user.full_name)}\n"
            f"Email: {user.email}\n"
            f"Phone: {user.phone or ''}\n"
            f"Affiliation: {user.affiliation or ''}\n"
            f"Designation: {user.designation or ''}\n"
            f"Category: {capitalize(user.category)}\n"
            f"Registration Fee: {format_currency(user.registration_fee, user.currency)}\n"
            f"Payment Status: {'Completed' if user.payment_completed else 'Pending'}\n"
            f"Registered at: {format_datetime(user.created_at)}"
        )
        return self.send_admin_notification(
            subject=f"New Registration - {self._conference}",
            body=body,
            notification_type="new_registration",
        )

    def payment_confirmation(self, user: User, payment: Payment) -> Notification:
        body = (
            f"Dear {_salutation(user.title, user.full_name)},\n\n"
            "Your payment has been successfully received!\n\n"
            "Payment Details:\n"
            f"- Amount: {format_currency(payment.amount, payment.currency)}\n"
            f"- Payment ID: {payment.transaction_payment_id}\n"
            f"- Payment Date: {format_datetime(payment.payment_date)}\n"
            f"- Payment Method: {capitalize(payment.payment_method)}\n\n"
            "Your registration is now complete. You will receive further updates "
            "about the conference via email.\n\n"
            f"{self._signature()}"
        )
        return self.send_user_notification(
            user.email,
            subject=f"Payment Received - {self._conference}",
            body=body,
            notification_type="payment_confirmation",
            recipient_name=user.full_name,
        )
