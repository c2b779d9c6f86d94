import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from pathlib import Path

from educonnect.core.config import settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent.parent / "templates"


def load_template(name: str) -> str:
    """Load an HTML email template, or "" when it is missing."""
    path = TEMPLATE_DIR / name
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.error(f"Email template not found: {path}")
        return ""


def render_template(name: str, **kwargs: str) -> str:
    """Fill ``{{key}}`` placeholders with HTML-escaped values."""
    template = load_template(name)
    for key, value in kwargs.items():
        template = template.replace("{{" + key + "}}", escape(str(value)))
    return template


def email_configured() -> bool:
    return bool(settings.sendgrid_api_key or (settings.smtp_user and settings.smtp_password))


def _send_via_sendgrid(to_email: str, subject: str, html_content: str) -> bool:
    from sendgrid import SendGridAPIClient
    from sendgrid.helpers.mail import Mail

    message = Mail(
        from_email=settings.from_email,
        to_emails=to_email,
        subject=subject,
        html_content=html_content,
    )
    response = SendGridAPIClient(settings.sendgrid_api_key).send(message)
    logger.info(f"Email sent via SendGrid to {to_email} | status={response.status_code}")
    return True


def _send_via_smtp(to_email: str, subject: str, html_content: str) -> bool:
    msg = MIMEMultipart("alternative")
    msg["From"] = settings.smtp_user
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(html_content, "html"))

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
        server.starttls()
        server.login(settings.smtp_user, settings.smtp_password)
        server.send_message(msg)

    logger.info(f"Email sent via SMTP to {to_email} | subject={subject}")
    return True


def send_email_sync(to_email: str, subject: str, html_content: str) -> bool:
    """Send an email. Uses SendGrid if configured, otherwise SMTP.

    Never raises; returns False when nothing was sent.
    """
    if not email_configured():
        logger.debug(f"No email provider configured, skipping email to {to_email}")
        return False
    try:
        if settings.sendgrid_api_key:
            return _send_via_sendgrid(to_email, subject, html_content)
        return _send_via_smtp(to_email, subject, html_content)
    except Exception as e:
        logger.error(f"Failed to send email to {to_email} | error={e}")
        return False
