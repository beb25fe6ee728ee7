import smtplib
from email.message import EmailMessage
from typing import Optional
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def _sender() -> str:
    if settings.SMTP_FROM_NAME and settings.SMTP_FROM_EMAIL:
        return f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    return settings.SMTP_FROM_EMAIL or "no-reply@example.com"


def _build_message(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = _sender()
    msg["To"] = to_email
    if text_body:
        msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def send_email(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> bool:
    """Send one message over SMTP. Returns False instead of raising on any failure."""
    if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
        logger.warning("SMTP not configured; skipping email send")
        return False
    try:
        msg = _build_message(subject, to_email, html_body, text_body)
        # SSL (SMTPS) or STARTTLS
        timeout = settings.SMTP_TIMEOUT or 15
        debug = 1 if settings.SMTP_DEBUG else 0
        if settings.SMTP_USE_SSL:
            with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                server.set_debuglevel(debug)
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                server.set_debuglevel(debug)
                if settings.SMTP_USE_TLS:
                    server.starttls()
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        logger.info(f"Sent email to {to_email} with subject '{subject}'")
        return True
    except (smtplib.SMTPException, OSError) as exc:
        logger.error(f"Failed to send email to {to_email}: {exc}")
        return False


def send_otp_email(to_email: str, otp_code: str, expires_in_minutes: int, name: Optional[str] = None) -> bool:
    greeting = f"Hello {name}," if name else "Hello,"
    brand = settings.SMTP_FROM_NAME or "HRIS"
    subject = f"Your {brand} password reset code"
    text = (
        f"{greeting}\n\n"
        f"Your password reset code is {otp_code}. It expires in {expires_in_minutes} minutes.\n\n"
        "If you did not request a password reset, you can safely ignore this email."
    )
    html = f"""
    <div style='font-family: Arial, sans-serif; line-height: 1.5;'>
      <h2>Reset your password</h2>
      <p>{greeting}</p>
      <p>Use the following one-time code to reset your password. This code will expire in <strong>{expires_in_minutes} minutes</strong>.</p>
      <p style='font-size: 24px; font-weight: bold; letter-spacing: 4px;'>{otp_code}</p>
      <p>If you did not request a password reset, you can safely ignore this email.</p>
      <p>{brand} Team</p>
    </div>
    """
    return send_email(subject, to_email, html, text)
