"""
Notification service for outbound email.

Delivery is fire-and-forget: callers hand a payload to the dispatcher and get
control back immediately. Delivery runs on a process-wide thread pool and its
failures are logged and counted, never raised to the caller.

Providers:
- ConsoleEmailProvider: logs the message (development/testing)
- SMTPEmailProvider: sends via SMTP (STARTTLS, or SSL on port 465)
"""
import smtplib
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from threading import Lock
from typing import Optional

from hhs.lib.logging import get_logger
from hhs.lib.metrics import get_metrics_collector
from hhs.lib.settings import settings


logger = get_logger(__name__)


@dataclass(frozen=True)
class NotificationPayload:
    """What to send. Rendering rich templates is left to the provider."""
    kind: str
    subject: str
    body: str


class NotificationProvider(ABC):
    """
    Abstract base class for email delivery providers.
    """

    @abstractmethod
    def send(self, to: str, payload: NotificationPayload) -> bool:
        """
        Deliver the payload.

        Returns:
            True if sent successfully, False otherwise
        """


class ConsoleEmailProvider(NotificationProvider):
    """
    Console provider for development/testing.
    Logs messages instead of sending.
    """

    def send(self, to: str, payload: NotificationPayload) -> bool:
        logger.info(
            f"Email logged to console: {payload.subject}",
            extra={"to": to, "kind": payload.kind, "body": payload.body},
        )
        return True


class SMTPEmailProvider(NotificationProvider):
    """Email provider using SMTP."""

    def __init__(self):
        if not settings.smtp_username or not settings.smtp_password:
            raise ValueError(
                "SMTP credentials not configured. "
                "Set SMTP_USERNAME and SMTP_PASSWORD environment variables."
            )

        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_username = settings.smtp_username
        self.smtp_password = settings.smtp_password
        self.from_email = settings.smtp_from_email or settings.smtp_username
        self.from_name = settings.smtp_from_name

    def send(self, to: str, payload: NotificationPayload) -> bool:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = payload.subject
        msg['From'] = f'{self.from_name} <{self.from_email}>'
        msg['To'] = to
        msg.attach(MIMEText(payload.body, 'plain'))

        if self.smtp_port == 465:
            with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port) as server:
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

        logger.info("Email sent via SMTP", extra={"to": to, "kind": payload.kind})
        return True


def build_provider() -> NotificationProvider:
    """Select the provider named in settings."""
    provider_name = settings.notification_provider.lower()

    if provider_name == "console":
        return ConsoleEmailProvider()
    if provider_name == "smtp":
        try:
            return SMTPEmailProvider()
        except ValueError as e:
            logger.warning(f"SMTP provider not available ({e}), falling back to console provider")
            return ConsoleEmailProvider()
    raise ValueError(
        f"Unknown notification provider: {provider_name}. "
        f"Valid options: console, smtp"
    )


class NotificationDispatcher:
    """
    Submits deliveries to a thread pool and never lets their outcome reach
    the caller.
    """

    def __init__(self, provider: NotificationProvider, max_workers: int = 4):
        self.provider = provider
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="notify",
        )

    def notify(self, email: str, payload: NotificationPayload) -> None:
        """Queue delivery of payload to email and return immediately."""
        try:
            future = self._executor.submit(self.provider.send, email, payload)
        except RuntimeError:
            # Executor already shut down
            logger.error("Notification dispatcher is closed", extra={"to": email, "kind": payload.kind})
            get_metrics_collector().increment_notifications(payload.kind, status="failed")
            return
        future.add_done_callback(lambda f: self._on_done(f, email, payload))

    def _on_done(self, future: Future, email: str, payload: NotificationPayload) -> None:
        metrics = get_metrics_collector()
        exc = future.exception()
        if exc is not None:
            logger.error(
                f"Notification delivery failed: {exc}",
                extra={"to": email, "kind": payload.kind},
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            metrics.increment_notifications(payload.kind, status="failed")
        elif not future.result():
            logger.warning("Notification provider reported failure", extra={"to": email, "kind": payload.kind})
            metrics.increment_notifications(payload.kind, status="failed")
        else:
            metrics.increment_notifications(payload.kind, status="sent")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


# ===== Payload builders =====

def welcome_payload(name: str) -> NotificationPayload:
    return NotificationPayload(
        kind="welcome",
        subject="Welcome to Henna Harmony Studio",
        body=(
            f"Dear {name},\n\n"
            "Welcome to Henna Harmony Studio! You can now create designs "
            "and book consultations with our artists.\n\n"
            f"Start designing: {settings.frontend_url}\n"
        ),
    )


def booking_confirmation_payload(
    name: str,
    confirmation_code: str,
    scheduled_date: date,
    scheduled_time: str,
    consultation_type: str,
) -> NotificationPayload:
    return NotificationPayload(
        kind="booking_confirmation",
        subject=f"Booking Confirmed - {confirmation_code}",
        body=(
            f"Dear {name},\n\n"
            "Thank you for choosing Henna Harmony Studio.\n\n"
            f"Confirmation code: {confirmation_code}\n"
            f"Date: {scheduled_date.strftime('%A, %B %d, %Y')}\n"
            f"Time: {scheduled_time}\n"
            f"Consultation: {consultation_type.replace('_', ' ').title()}\n"
        ),
    )


# Process-wide dispatcher
_dispatcher: Optional[NotificationDispatcher] = None
_dispatcher_lock = Lock()


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get the process-wide dispatcher, creating it on first use."""
    global _dispatcher
    if _dispatcher is None:
        with _dispatcher_lock:
            if _dispatcher is None:
                _dispatcher = NotificationDispatcher(
                    build_provider(),
                    max_workers=settings.notification_workers,
                )
    return _dispatcher


def shutdown_notification_dispatcher() -> None:
    """Drain and close the process-wide dispatcher."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is not None:
            _dispatcher.shutdown(wait=True)
            _dispatcher = None
