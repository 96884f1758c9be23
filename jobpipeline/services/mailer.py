"""SMTP delivery for the send-email task."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from jobpipeline.config import Settings, get_settings
from jobpipeline.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def build_message(sender: str, to: str, subject: str, body: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to
    msg.attach(MIMEText(body, "plain"))
    if body.lstrip().startswith("<"):
        msg.attach(MIMEText(body, "html"))
    return msg


def send_email_message(to: str, subject: str, body: str, settings: Optional[Settings] = None) -> None:
    """
    Send one email through the configured SMTP server.

    Raises:
        ConfigurationError: SMTP host is not configured
        smtplib.SMTPException / OSError: delivery failed (retryable)
    """
    settings = settings or get_settings()
    if not settings.smtp_host:
        raise ConfigurationError("SMTP not configured (set SMTP_HOST in .env)")
    if not to:
        raise ConfigurationError("Email recipient is required")

    msg = build_message(settings.email_sender, to, subject, body)

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
        if settings.smtp_use_tls:
            server.starttls()
        if settings.smtp_user:
            server.login(settings.smtp_user, settings.smtp_password)
        server.sendmail(settings.email_sender, [to], msg.as_string())

    logger.info(f"Sent email '{subject}' to {to}")
