"""
Email Service

Sends HTML notifications over SMTP.
"""

import smtplib
import os
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
FROM_EMAIL = os.getenv("FROM_EMAIL") or SMTP_USER

SMTP_TIMEOUT_SECONDS = 20


def smtp_configured():
    """True when host, user and password are all set."""
    return bool(SMTP_HOST and SMTP_USER and SMTP_PASS)


def send_email(to, subject, html):
    """
    Send an HTML email.

    Port 465 uses implicit SSL; any other port upgrades with STARTTLS.

    Args:
        to (str): Recipient address
        subject (str): Subject line
        html (str): HTML body

    Returns:
        bool: True if the message was accepted by the SMTP server
    """
    if not smtp_configured():
        logger.warning(f"SMTP not configured; skipping email to {to}")
        return False

    message = MIMEMultipart("alternative")
    message["From"] = FROM_EMAIL
    message["To"] = to
    message["Subject"] = subject
    message.attach(MIMEText(html, "html"))

    try:
        if SMTP_PORT == 465:
            with smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS) as server:
                server.login(SMTP_USER, SMTP_PASS)
                server.send_message(message)
        else:
            with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS) as server:
                server.starttls()
                server.login(SMTP_USER, SMTP_PASS)
                server.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"Failed to send email to {to}: {e}")
        return False

    logger.info(f"Sent email to {to}")
    return True
