import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)

NOTIFICATION_OUTBOX: list[tuple[str, str, str]] = []


def send_email(to_email: str, subject: str, message: str):
    if os.getenv("TESTING") == "1":
        NOTIFICATION_OUTBOX.append((to_email, subject, message))
        return
    server = os.getenv("SMTP_SERVER")
    if not server:
        logger.debug("SMTP_SERVER unset; dropping notification %r to %s", subject, to_email)
        return
    from_addr = os.getenv("EMAIL_FROM", "noreply@example.com")
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_email
    msg.set_content(message)
    with smtplib.SMTP(server) as s:
        s.send_message(msg)


def dispatch(to_email: str | None, subject: str, message: str) -> None:
    """Fire-and-forget delivery; failures are logged and never raised."""

    if not to_email:
        return
    try:
        send_email(to_email, subject, message)
    except (OSError, smtplib.SMTPException):
        logger.exception("notification %r to %s failed", subject, to_email)
