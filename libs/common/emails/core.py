"""
Core email sending utilities over SMTP.
"""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


def is_email_configured() -> bool:
    settings = get_settings()
    return bool(settings.SMTP_USERNAME and settings.SMTP_PASSWORD)


def _send_sync(sender: str, to_email: str, message: str) -> None:
    settings = get_settings()
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        server.starttls()
        server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.sendmail(sender, to_email, message)


async def send_email(
    to_email: str,
    subject: str,
    body: str,
    html_body: Optional[str] = None,
) -> bool:
    """
    Send an email through the configured SMTP relay.

    Returns:
        True if the email was handed to the relay, False when SMTP is not
        configured or sending failed (failures are logged, never raised).
    """
    settings = get_settings()

    if not is_email_configured():
        logger.warning("SMTP_USERNAME/SMTP_PASSWORD not configured - email not sent")
        logger.info(f"Would have sent email to {to_email}: {subject}")
        return False

    if html_body:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
    else:
        msg = MIMEText(body, "plain")

    msg["Subject"] = subject
    msg["From"] = f"{settings.DEFAULT_FROM_NAME} <{settings.DEFAULT_FROM_EMAIL}>"
    msg["To"] = to_email

    try:
        logger.info(f"Sending email to {to_email}: {subject}")
        await asyncio.to_thread(
            _send_sync, settings.DEFAULT_FROM_EMAIL, to_email, msg.as_string()
        )
        logger.info(f"Email sent successfully to {to_email}")
        return True

    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"SMTP authentication failed: {e}")
        return False
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"SMTP error sending email: {type(e).__name__}: {e}")
        return False
