"""Deliver user feedback to the maintainers' inbox over SMTP."""

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Optional

from companion.core.config import Settings, get_settings
from companion.core.errors import UpstreamError, ValidationError
from companion.db.users_repo import UserRepo, get_user_repo

logger = logging.getLogger(__name__)

APP_SENDER_NAME = "Study Companion"


def build_message(feedback: str, user_id: str, user_name: str, user_email: str, settings: Settings) -> MIMEMultipart:
    msg = MIMEMultipart()
    msg["From"] = f'"{APP_SENDER_NAME}" <{settings.email_user}>'
    msg["To"] = settings.feedback_recipient or ""
    # replies go straight to the user
    msg["Reply-To"] = user_email
    msg["Subject"] = f"Feedback from {user_name}"
    body = f"""
<div style="border: 1px solid #ccc; padding: 20px; font-family: sans-serif;">
  <h2>User Feedback</h2>
  <p><strong>From:</strong> {html.escape(user_name)} ({html.escape(user_email)})</p>
  <p><strong>User ID:</strong> {html.escape(user_id)}</p>
  <hr />
  <h3>Message:</h3>
  <p style="background: #f5f5f5; padding: 15px;">{html.escape(feedback)}</p>
</div>
"""
    msg.attach(MIMEText(body, "html"))
    return msg


def smtp_send(msg: MIMEMultipart, settings: Settings) -> None:
    server = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30)
    try:
        server.starttls()
        server.login(settings.email_user, settings.email_password)
        server.sendmail(settings.email_user, [settings.feedback_recipient], msg.as_string())
    finally:
        server.quit()


def send_feedback(
    feedback: str,
    user_id: str,
    repo: Optional[UserRepo] = None,
    sender: Callable[[MIMEMultipart, Settings], None] = smtp_send,
) -> None:
    if not feedback or not feedback.strip():
        raise ValidationError("Feedback cannot be empty")
    settings = get_settings()
    if not (settings.email_user and settings.email_password and settings.feedback_recipient):
        raise UpstreamError("Email delivery is not configured")

    repo = repo or get_user_repo()
    user = repo.find_by_id(user_id)
    user_email = user.get("email") if user else "Unknown"
    user_name = (user.get("name") if user else None) or "Anonymous"

    msg = build_message(feedback.strip(), user_id, user_name, user_email, settings)
    try:
        sender(msg, settings)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Failed to send feedback from user %s: %s", user_id, exc)
        raise UpstreamError("Failed to send feedback") from exc
    logger.info("Feedback from user %s delivered", user_id)
