"""
Applicant confirmation notifications

Delivery is best-effort: the submission response never waits on it and a
delivery failure is logged, not raised.
"""
import html
import logging
import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText
from typing import Protocol

from fastapi import BackgroundTasks

from ..core.config import settings
from ..schemas.applications import programme_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfirmationNotification:
    """Message telling an applicant their application was received"""

    to: str
    first_name: str
    reference_number: str
    submitted_at: str
    programme: str

    @classmethod
    def from_record(cls, record: dict) -> "ConfirmationNotification":
        personal = record["personalInfo"]
        return cls(
            # Stored values are markup-escaped; the email body is plain text
            to=html.unescape(personal["email"]),
            first_name=html.unescape(personal["firstName"]),
            reference_number=record["referenceNumber"],
            submitted_at=record["submittedAt"],
            programme=record["programmeInfo"]["programme"],
        )

    @property
    def subject(self) -> str:
        return f"Application Confirmation - {settings.INSTITUTION_NAME}"

    def body(self) -> str:
        return (
            f"Dear {self.first_name},\n\n"
            f"Thank you for submitting your application to {settings.INSTITUTION_NAME}.\n\n"
            f"Your Reference Number: {self.reference_number}\n"
            f"Submitted on: {self.submitted_at}\n"
            f"Applied Programme: {programme_name(self.programme)}\n\n"
            "We have received your application and will review it carefully. "
            "You will be contacted within 7 business days regarding the status of your application.\n\n"
            "If you have any questions, please contact us at:\n"
            f"Email: {settings.CONTACT_EMAIL}\n"
            f"Phone: {settings.CONTACT_PHONE}\n\n"
            "Best regards,\n"
            f"{settings.INSTITUTION_NAME}\n"
            f"{settings.INSTITUTION_LOCATION}\n"
        )


class Notifier(Protocol):
    def send(self, notification: ConfirmationNotification) -> None: ...


class NotificationDispatcher(Protocol):
    def dispatch(self, notification: ConfirmationNotification) -> None: ...


class EmailNotifier:
    """Sends confirmations over SMTP, or logs them when email is disabled"""

    def __init__(
        self,
        enabled: bool = settings.EMAIL_ENABLED,
        host: str = settings.SMTP_HOST,
        port: int = settings.SMTP_PORT,
        username: str = settings.SMTP_USERNAME,
        password: str = settings.SMTP_PASSWORD,
        use_tls: bool = settings.SMTP_USE_TLS,
        sender: str = settings.MAIL_FROM,
    ):
        self.enabled = enabled
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender

    def build_message(self, notification: ConfirmationNotification) -> MIMEText:
        message = MIMEText(notification.body(), "plain", "utf-8")
        message["Subject"] = notification.subject
        message["From"] = self.sender
        message["To"] = notification.to
        message["Reply-To"] = self.sender
        return message

    def send(self, notification: ConfirmationNotification) -> None:
        if not self.enabled:
            logger.info(
                f"Email delivery disabled, confirmation for {notification.reference_number} not sent"
            )
            return

        message = self.build_message(notification)
        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)

        logger.info(f"Confirmation email sent for {notification.reference_number}")


def deliver_notification(notifier: Notifier, notification: ConfirmationNotification) -> None:
    """Run one delivery; failures are logged and swallowed"""
    try:
        notifier.send(notification)
    except Exception:
        logger.exception(
            f"Confirmation delivery failed for {notification.reference_number}"
        )


class BackgroundTaskDispatcher:
    """Hands notifications to FastAPI background tasks, run after the response is sent"""

    def __init__(self, background_tasks: BackgroundTasks, notifier: Notifier):
        self.background_tasks = background_tasks
        self.notifier = notifier

    def dispatch(self, notification: ConfirmationNotification) -> None:
        self.background_tasks.add_task(deliver_notification, self.notifier, notification)


def get_notifier() -> Notifier:
    """FastAPI dependency returning the configured notifier"""
    return EmailNotifier()
