import html
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from pathlib import Path

from app.core.config import Settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def render_template(name: str, /, **values: str) -> str:
    """Load ``templates/<name>`` and fill its ``{{key}}`` placeholders with HTML-escaped values."""
    template = (TEMPLATE_DIR / name).read_text(encoding="utf-8")
    for key, value in values.items():
        template = template.replace("{{" + key + "}}", html.escape(value))
    return template


class EmailService:
    """Notification sender. SendGrid if configured, otherwise SMTP.

    One instance is built per request from the current settings and handed
    to the services that need it.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def configured(self) -> bool:
        s = self.settings
        return bool(s.sendgrid_api_key or (s.smtp_user and s.smtp_password))

    def _send_via_sendgrid(self, to_email: str, subject: str, html_content: str, reply_to: str | None) -> bool:
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail, ReplyTo

        message = Mail(
            from_email=self.settings.from_email,
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )
        if reply_to:
            message.reply_to = ReplyTo(reply_to)
        sg = SendGridAPIClient(self.settings.sendgrid_api_key)
        response = sg.send(message)
        logger.info(f"Email sent via SendGrid to {to_email} | status={response.status_code}")
        return 200 <= response.status_code < 300

    def _send_via_smtp(self, to_email: str, subject: str, html_content: str, reply_to: str | None) -> bool:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.settings.from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        if reply_to:
            msg["Reply-To"] = reply_to
        msg.attach(MIMEText(html_content, "html"))

        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port) as server:
            server.starttls()
            server.login(self.settings.smtp_user, self.settings.smtp_password)
            server.send_message(msg)

        logger.info(f"Email sent via SMTP to {to_email} | subject={subject}")
        return True

    def send(self, to_email: str, subject: str, html_content: str, reply_to: str | None = None) -> bool:
        """Send an email. Returns False on any delivery failure."""
        try:
            if self.settings.sendgrid_api_key:
                return self._send_via_sendgrid(to_email, subject, html_content, reply_to)
            elif self.settings.smtp_user and self.settings.smtp_password:
                return self._send_via_smtp(to_email, subject, html_content, reply_to)
            else:
                logger.warning("No email provider configured (set SENDGRID_API_KEY or SMTP_USER+SMTP_PASSWORD)")
                return False
        except Exception as e:
            logger.error(f"Failed to send email to {to_email} | error={e}")
            return False
