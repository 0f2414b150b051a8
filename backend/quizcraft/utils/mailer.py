"""Verification e-mail delivery over SMTP.

When no SMTP host is configured (local development, tests) the message
is not sent; the verification link is logged instead so the flow can
still be completed by hand.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ..config import settings

logger = logging.getLogger("quizcraft.mail")


def verification_url(token: str) -> str:
    return f"{settings.FRONTEND_URL}/verify-email?token={token}"


def _build_verification_message(to_email: str, name: str, url: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = settings.MAIL_FROM
    msg["To"] = to_email
    msg["Subject"] = "Verify your Quiz Craft account"
    text_content = f"""
Hi {name},

Thanks for signing up for Quiz Craft. Confirm your e-mail address by opening this link:

{url}

The link expires in {settings.VERIFICATION_TTL_HOURS} hours. If you did not create an account you can ignore this e-mail.
"""
    html_content = f"""
<html>
  <body>
    <h2>Hi {name},</h2>
    <p>Thanks for signing up for Quiz Craft. Confirm your e-mail address to start creating exams:</p>
    <p><a href="{url}">Verify e-mail address</a></p>
    <p>This link expires in <strong>{settings.VERIFICATION_TTL_HOURS} hours</strong>.</p>
    <p>If you did not create an account you can ignore this e-mail.</p>
  </body>
</html>
"""
    msg.attach(MIMEText(text_content, "plain"))
    msg.attach(MIMEText(html_content, "html"))
    return msg


def send_verification_email(to_email: str, name: str, token: str) -> tuple[bool, Optional[str]]:
    """Send the verification link to `to_email`.

    Returns `(sent, error)`. Delivery problems are logged and reported,
    never raised: registration must not fail because mail is down.
    """
    url = verification_url(token)
    if not settings.smtp_enabled:
        logger.info("smtp not configured; verification link for %s: %s", to_email, url)
        return False, None
    msg = _build_verification_message(to_email, name, url)
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as server:
            server.starttls()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except smtplib.SMTPException as e:
        logger.error("verification email to %s failed: %s", to_email, e)
        return False, str(e)
    except OSError as e:
        logger.error("smtp connection failed for %s: %s", to_email, e)
        return False, str(e)
    logger.info("verification email sent to %s", to_email)
    return True, None
